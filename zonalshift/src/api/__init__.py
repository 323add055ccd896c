"""
HTTP ingestion API
"""
