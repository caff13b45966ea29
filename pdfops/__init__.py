"""Parse and write PDF content streams, apply stream filters and handle font encodings."""

__version__ = "0.1.0"
__all__ = ["backend", "content", "encoding", "errors", "filters", "ops"]