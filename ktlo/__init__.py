"""Core (UI-agnostic) KTLO dashboard logic.

This package contains:
- workbook extraction (XLSX -> typed records -> JSON artifact)
- record normalization and classification rules
- filter state for the two dashboards
- view compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
