"""Core (UI-agnostic) VPR dashboard logic.

This package contains:
- record store (synthetic generation, CSV/XLSX -> pandas)
- filter normalization and record filtering
- aggregation engine (participant-weighted distributions)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
