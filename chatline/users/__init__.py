"""User profiles and presence state."""

from .service import UserService

__all__ = ["UserService"]
