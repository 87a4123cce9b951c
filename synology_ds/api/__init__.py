"""
Download Station API Layer.

This package handles all communication with the Synology Web API and the
classification of its numeric error codes.
"""

from .client import DownloadStationClient
from .codes import classify_error, describe_code

__all__ = ["DownloadStationClient", "classify_error", "describe_code"]
