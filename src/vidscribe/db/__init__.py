"""Persistence: SQLAlchemy tables and the video / chunk stores."""

from vidscribe.db.connection import Database
from vidscribe.db.chunk_store import ChunkStore
from vidscribe.db.video_store import VideoStore

__all__ = ["ChunkStore", "Database", "VideoStore"]
