"""Data models for prdpad."""

from prdpad.models.note import Note
from prdpad.models.project import Project

__all__ = [
    "Note",
    "Project",
]
