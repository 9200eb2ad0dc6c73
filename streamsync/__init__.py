"""Streaming batch-dispatch pipeline for parallel rsync runs."""

__version__ = "0.1.0"
