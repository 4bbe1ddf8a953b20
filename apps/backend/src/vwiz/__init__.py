"""Video Wizard render server."""

__version__ = "0.1.0"
