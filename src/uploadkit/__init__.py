"""Batch file-upload pipeline: validation, previews, compression, and transport."""

__version__ = "0.1.0"
