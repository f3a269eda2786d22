"""scriptflow: turn natural-language automation requests into Apps Script projects."""

__version__ = "0.3.0"
