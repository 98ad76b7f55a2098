"""Reservation store access."""

from .repository import Repository, create_session_factory

__all__ = ["Repository", "create_session_factory"]
