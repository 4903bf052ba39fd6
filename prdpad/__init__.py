"""prdpad: note autosave and canvas reconciliation for the PRD workspace."""

__version__ = "0.1.0"
