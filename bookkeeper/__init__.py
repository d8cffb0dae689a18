"""
Bookkeeper: receipt ingestion, reconciliation and a natural-language auditor.
"""
