"""SQLite storage shared by the memory and session stores."""

from .database import Database

__all__ = ["Database"]
