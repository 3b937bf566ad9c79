"""
Persistence sinks for exported images.
"""

from .abstract import (
    PersistenceSink, PersistenceError, PersistenceDeniedError, SaveCallback
)
from .local import FileSink, MemorySink

__all__ = [
    'PersistenceSink',
    'PersistenceError',
    'PersistenceDeniedError',
    'SaveCallback',
    'FileSink',
    'MemorySink'
]
