"""Redact people in video with a mask that follows each tracked subject."""

__version__ = "0.1.0"
