"""
Reporting module for sensitivity results.

Provides:
- ResultTable / ResultRow: fixed-column tables of sensitivity rows
- CSV export
"""

from .result_table import (
    ResultRow,
    ResultTable,
    export_to_csv,
)


__all__ = [
    "ResultRow",
    "ResultTable",
    "export_to_csv",
]
