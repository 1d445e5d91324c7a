"""
Storage layer for synced content.
"""

from .filesystem import FileSink, StorageError

__all__ = ['FileSink', 'StorageError']
