"""Asset storage with a background media-processing pipeline."""

__version__ = "0.1.0"
