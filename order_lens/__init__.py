"""order-lens: order spreadsheet ingestion, normalisation and statistics."""

__version__ = "0.1.0"
