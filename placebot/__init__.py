"""Places catalog enrichment: encyclopedia pages, photos, ratings and verification."""

__version__ = "0.1.0"
