"""Application services: triggers, channel execution, content and audit"""
