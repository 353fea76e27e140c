"""Utility modules."""

from diffcoex.utils.fileio import atomic_open, atomic_write_frame, atomic_write_json

__all__ = [
    'atomic_open',
    'atomic_write_frame',
    'atomic_write_json',
]
