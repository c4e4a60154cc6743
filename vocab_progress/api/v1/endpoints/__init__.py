"""API endpoint modules for v1."""

from vocab_progress.api.v1.endpoints import achievements, progress, sessions

__all__ = ["achievements", "progress", "sessions"]
