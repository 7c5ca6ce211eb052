"""fare-watch: round-trip award and cash fare monitoring."""

__version__ = "0.1.0"
