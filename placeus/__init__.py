"""Placeus backend: video uploads, HLS transcoding, catalog and comments."""

__version__ = "1.0.0"
