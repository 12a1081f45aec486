"""Bridge between a single-screen operator console and a Google Sheet control surface."""

__version__ = "0.1.0"
