"""Thread memory: incremental, versioned conversation summaries."""

__version__ = "0.1.0"
