# src/needboard/realtime/__init__.py
"""In-process realtime state: sessions, rooms and their lifecycle."""

from .connection import Connection
from .hub import ConnectionHub
from .registry import SessionRegistry
from .rooms import RoomRouter

__all__ = [
    "Connection",
    "ConnectionHub",
    "RoomRouter",
    "SessionRegistry",
]
