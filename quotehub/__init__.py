"""quotehub — cross-role RFQ message inbox."""

__version__ = "0.4.0"
