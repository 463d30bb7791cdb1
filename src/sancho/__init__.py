"""Sancho: journal synchronization engine for note-taking clients."""

__version__ = "0.4.0"
