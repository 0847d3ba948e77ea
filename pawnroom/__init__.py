"""Two-player chess rooms over WebSockets."""

__version__ = "0.1.0"
