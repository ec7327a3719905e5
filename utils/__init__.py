"""
Shared helpers for webhook verification, normalization and reconciliation
"""
