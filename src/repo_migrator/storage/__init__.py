"""Storage for repositories and migration audit records."""

from .base import Storage
from .memory import InMemoryStorage

__all__ = ['Storage', 'InMemoryStorage']
