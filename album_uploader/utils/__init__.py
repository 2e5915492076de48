"""Utilities for album_uploader."""
from .events import EventEmitter

__all__ = ["EventEmitter"]
