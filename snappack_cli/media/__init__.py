"""
Media Processing Layer.

This package is responsible for fetching media payloads over HTTP and
validating that they decode as the kind of media they claim to be.
"""

from .fetcher import Fetcher, FetchResult
from .integrity import ImageProbe, MediaValidator, VideoProbe

__all__ = ["Fetcher", "FetchResult", "ImageProbe", "MediaValidator", "VideoProbe"]
