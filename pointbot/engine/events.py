"""
pointbot.engine.events — Gateway Event Variants
================================================

Discord payloads are normalized into one of a closed set of frozen
dataclasses before any reward logic sees them.  Services only depend on
these plain values, so the reward rules can be tested without a gateway.

Slash commands are routed by discord.py's ``app_commands`` tree; the two
remaining inbound shapes are modelled here.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["PlainMessage", "ReactionAdded"]


@dataclass(frozen=True, slots=True)
class PlainMessage:
    """A guild text message (candidate for a ``!`` text command)."""

    user_id: int
    username: str
    guild_id: int | None
    channel_id: int
    message_id: int
    content: str
    is_bot: bool = False

    @property
    def command(self) -> str:
        """The first whitespace-separated token, lower-cased."""
        parts = self.content.strip().split(maxsplit=1)
        return parts[0].lower() if parts else ""


@dataclass(frozen=True, slots=True)
class ReactionAdded:
    """An emoji reaction added to a message.

    ``author_*`` fields describe the author of the reacted-to message and
    are resolved by the cog before the event reaches the services.
    """

    user_id: int
    username: str
    user_is_bot: bool
    guild_id: int | None
    channel_id: int
    message_id: int
    emoji: str
    author_id: int
    author_name: str
    author_is_bot: bool
