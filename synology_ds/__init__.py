"""A command-line client for Synology Download Station."""

__version__ = "0.1.0"
