"""Utility helpers for summary records."""

from .summary_records import extract_snapshot, filter_unprocessed, merge_summary_records

__all__ = ["extract_snapshot", "filter_unprocessed", "merge_summary_records"]
