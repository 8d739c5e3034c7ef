"""Filesystem side of file downloads: staging paths and atomic publish."""

from .publish import InstalledFile, atomic_publish, resolve_returned_path
from .staging import StagingArea, random_suffix

__all__ = [
    "InstalledFile",
    "StagingArea",
    "atomic_publish",
    "random_suffix",
    "resolve_returned_path",
]
