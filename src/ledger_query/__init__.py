"""Search and guarded bulk mutation over a remote personal-finance ledger."""

__version__ = "0.1.0"
