"""Notifier protocol — services and routes depend on this, not the concrete provider.

``send`` returns False on any delivery failure instead of raising, so callers
can report delivery problems separately from throttling.
"""

from typing import Protocol


class Notifier(Protocol):
    async def send(self, contact: str, subject: str, body: str) -> bool: ...
