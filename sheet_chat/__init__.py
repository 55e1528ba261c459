"""Local chat-style spreadsheet upload, search, and CSV export."""

__version__ = "0.1.0"
