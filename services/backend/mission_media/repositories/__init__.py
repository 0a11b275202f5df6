"""Repository implementations for data access."""

from .mission import MissionRepository, resolve_page_size

__all__ = [
    "MissionRepository",
    "resolve_page_size",
]
