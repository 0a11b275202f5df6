"""Pydantic schemas for request/response validation."""

from .mission import MissionListResponse, MissionRecord

__all__ = [
    "MissionRecord",
    "MissionListResponse",
]
