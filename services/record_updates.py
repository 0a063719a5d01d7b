"""
Atomic read → decide → conditional-write loop shared by every credential service.

A service supplies a loader and a ``decide(doc)`` callback, plain or async (the
async form lets a decision await an off-loop password check). ``decide``
either raises (rejection with no state change) or returns a Decision holding
the field changes to persist, an optional error to raise *after* the write
(e.g. a failed OTP attempt that still bumps the counter), and a result value.

The write is a compare-and-set on the record's ``version``; when another
request wins the race the record is reloaded and ``decide`` re-runs against
fresh state, so two concurrent failures can never both observe the same
counter value.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from errors import AppError, ConcurrentUpdateError
from repositories.protocol import CredentialStore
from schemas.models.credential import CredentialDoc
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class Decision(Generic[T]):
    changes: dict = field(default_factory=dict)
    error: Optional[AppError] = None
    result: Optional[T] = None


async def apply_update(
    store: CredentialStore,
    load: Callable[[], Awaitable[CredentialDoc]],
    decide: Callable[[CredentialDoc], Union[Decision[T], Awaitable[Decision[T]]]],
    *,
    now: datetime,
    max_retries: int,
    initial: Optional[CredentialDoc] = None,
) -> tuple[CredentialDoc, Optional[T]]:
    """Run ``decide`` against the current record and persist its changes atomically.

    Args:
        store: Backing credential store.
        load: Coroutine factory returning the current record (raises when absent).
        decide: Decision callback, sync or async; see module docstring.
        now: The operation's single timestamp, stamped into ``updated_at``.
        max_retries: Compare-and-set attempts before ConcurrentUpdateError.
        initial: Already-loaded record to use for the first attempt.

    Returns:
        ``(record_after_write, decision.result)``
    """
    doc = initial
    for attempt in range(1, max_retries + 1):
        if doc is None:
            doc = await load()
        decision = decide(doc)
        if inspect.isawaitable(decision):
            decision = await decision

        if decision.changes:
            changes: dict[str, Any] = {**decision.changes, "updated_at": now}
            if not await store.compare_and_set(doc.account_id, doc.version, changes):
                log.info(
                    "credential_write_conflict",
                    account_id=doc.account_id,
                    attempt=attempt,
                )
                doc = None
                continue
            doc = doc.with_changes(changes)

        if decision.error is not None:
            raise decision.error
        return doc, decision.result

    log.warning("credential_write_abandoned", retries=max_retries)
    raise ConcurrentUpdateError()
