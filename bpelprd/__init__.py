"""bpelprd - deterministic PRD extraction from BPEL processes."""

__version__ = "0.1.0"
