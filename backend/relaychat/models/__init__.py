"""ORM models package exports."""

from relaychat.models.message import Message

__all__ = ["Message"]
