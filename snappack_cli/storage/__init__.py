"""
Storage Layer.

This package handles all data persistence: the configuration file, the media
directory that holds downloaded files, and the media library database.
"""

from .config_manager import ConfigManager
from .library import MediaLibrary
from .sink import StorageSink

__all__ = ["ConfigManager", "MediaLibrary", "StorageSink"]
