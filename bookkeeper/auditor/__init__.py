"""
Natural-language auditor over stored receipts.

Rule-based path: classify → synthesize → execute → format.
Model path: generate SQL → execute → phrase, with deterministic fallbacks.
"""
from bookkeeper.auditor.classifier import classify, extract_threshold
from bookkeeper.auditor.formatter import (
    NO_RESULTS_MESSAGE,
    extract_references,
    format_response,
    format_rows,
)
from bookkeeper.auditor.llm import OllamaClient, clean_sql
from bookkeeper.auditor.service import APOLOGY_MESSAGE, Auditor
from bookkeeper.auditor.synthesizer import synthesize

__all__ = [
    "APOLOGY_MESSAGE",
    "NO_RESULTS_MESSAGE",
    "Auditor",
    "OllamaClient",
    "classify",
    "clean_sql",
    "extract_references",
    "extract_threshold",
    "format_response",
    "format_rows",
    "synthesize",
]
