"""Leasing outreach engine: compliance-gated task dispatch for leasing leads"""
