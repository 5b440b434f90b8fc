"""
Logging and metrics for the ingestion pipeline and lookup service.
"""
