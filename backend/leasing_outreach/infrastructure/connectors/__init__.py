"""
Connector Infrastructure Package
SMS and email delivery providers
"""
