"""Optimistic transactions and capped batch writes over async SQLAlchemy.

``run_transaction`` gives the work coroutine a :class:`Transaction` handle.
Every versioned record read through the handle is remembered; at commit time
written records are flushed with version-checked UPDATEs and records that were
only read are re-checked against the database. Any mismatch aborts the attempt
and the whole read-compute-write coroutine runs again on a fresh session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import inspect, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from perks_api.core.errors import BatchTooLargeError, TransientConflictError
from perks_api.core.settings import settings
from perks_api.observability.promotions import get_promotion_store

T = TypeVar("T")
M = TypeVar("M")

SessionFactory = async_sessionmaker[AsyncSession]

_CONFLICT_SQLSTATES = {"40001", "40P01"}


class ReadSetConflict(StaleDataError):
    """A record read by the transaction changed before commit."""


class Transaction:
    """Read-tracking facade over a session for a single attempt."""

    def __init__(self, session: AsyncSession, *, attempt: int) -> None:
        self.session = session
        self.attempt = attempt
        self._reads: dict[tuple[type, Any], Any] = {}

    async def get(self, model: type[M], ident: Any) -> M | None:
        record = await self.session.get(model, ident, populate_existing=True)
        self._remember(model, ident, record)
        return record

    def add(self, record: Any) -> None:
        self.session.add(record)

    def _remember(self, model: type, ident: Any, record: Any) -> None:
        if _version_column(model) is None:
            return
        self._reads.setdefault((model, ident), record)

    async def verify_read_set(self) -> None:
        """Compare every tracked record's version with the stored row.

        Must run after flush: records this attempt wrote already carry their
        bumped version, so only foreign modifications show up as mismatches.
        """

        for (model, ident), record in self._reads.items():
            version_col = _version_column(model)
            expected = getattr(record, version_col.key) if record is not None else None
            stmt = select(version_col).where(inspect(model).primary_key[0] == ident)
            current = (await self.session.execute(stmt)).scalar_one_or_none()
            if current != expected:
                raise ReadSetConflict(
                    f"{model.__name__} {ident} changed during transaction "
                    f"(expected version {expected}, found {current})"
                )


def _version_column(model: type) -> Any:
    return inspect(model).version_id_col


def is_conflict(error: BaseException) -> bool:
    """Whether ``error`` signals a concurrent-modification collision."""

    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, DBAPIError):
        orig = error.orig
        if getattr(orig, "sqlstate", None) in _CONFLICT_SQLSTATES:
            return True
        if "database is locked" in str(orig):
            return True
    return False


async def run_transaction(
    session_factory: SessionFactory,
    work: Callable[[Transaction], Awaitable[T]],
    *,
    label: str,
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` as an optimistic transaction with bounded retries.

    Business errors raised by ``work`` propagate after rollback without retry.
    """

    attempts = max_attempts or settings.transaction_max_attempts
    backoff = settings.transaction_retry_backoff_seconds
    store = get_promotion_store()

    for attempt in range(1, attempts + 1):
        async with session_factory() as session:
            tx = Transaction(session, attempt=attempt)
            try:
                result = await work(tx)
                await session.flush()
                await tx.verify_read_set()
                await session.commit()
                return result
            except Exception as error:
                await session.rollback()
                if not is_conflict(error):
                    raise
                store.record_conflict(label)
                logger.warning(
                    "Optimistic transaction conflict",
                    transaction=label,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(error),
                )
        if attempt < attempts and backoff:
            await asyncio.sleep(backoff * attempt)

    logger.error("Optimistic transaction exhausted retries", transaction=label, attempts=attempts)
    raise TransientConflictError(transaction=label, attempts=attempts)


async def write_batch(session_factory: SessionFactory, records: Sequence[Any], *, limit: int | None = None) -> int:
    """Insert pre-built records in one atomic commit capped at ``limit`` operations."""

    cap = limit or settings.batch_write_limit
    if len(records) > cap:
        raise BatchTooLargeError(
            f"Batch of {len(records)} operations exceeds limit of {cap}",
            size=len(records),
            limit=cap,
        )
    if not records:
        return 0

    async with session_factory() as session:
        session.add_all(list(records))
        await session.commit()
    return len(records)


__all__ = [
    "ReadSetConflict",
    "SessionFactory",
    "Transaction",
    "is_conflict",
    "run_transaction",
    "write_batch",
]
