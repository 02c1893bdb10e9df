"""Core configuration"""
