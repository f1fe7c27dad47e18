"""Database layer for the CarLeads routing service."""

from .repository import Repository, get_repository

__all__ = [
    "Repository",
    "get_repository",
]
