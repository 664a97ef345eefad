"""Fan one promotional grant out to many members in capped batch commits."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence
from uuid import UUID

from loguru import logger

from perks_api.core.errors import ChunkCommitError
from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.db.transactions import SessionFactory, write_batch
from perks_api.models.promotions import Provenance, RewardKind
from perks_api.observability.promotions import get_promotion_store

from .issuer import issue_coupon, issue_gift_card
from .template_store import TemplateStore


@dataclass
class ChunkResult:
    index: int
    size: int
    committed: bool
    reason: str | None = None


@dataclass
class DistributionResult:
    template_id: UUID
    kind: RewardKind
    requested_count: int
    chunks: List[ChunkResult] = field(default_factory=list)

    @property
    def distributed_count(self) -> int:
        return sum(chunk.size for chunk in self.chunks if chunk.committed)

    @property
    def failed_chunks(self) -> List[ChunkResult]:
        return [chunk for chunk in self.chunks if not chunk.committed]

    @property
    def succeeded(self) -> bool:
        return not self.failed_chunks


def partition(items: Sequence, size: int) -> List[Sequence]:
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    return [items[start : start + size] for start in range(0, len(items), size)]


class BatchDistributor:
    """Issue one instance of a template per member, one atomic batch per chunk.

    Chunks commit independently and concurrently. A failed chunk is reported in
    the result; chunks that already committed stay committed.
    """

    def __init__(self, session_factory: SessionFactory, *, chunk_size: int | None = None) -> None:
        self._session_factory = session_factory
        self._chunk_size = chunk_size or settings.batch_write_limit
        self._store = get_promotion_store()

    async def distribute(self, template_id: UUID, kind: RewardKind, user_ids: Iterable[UUID]) -> DistributionResult:
        kind = RewardKind(kind)
        async with self._session_factory() as session:
            template = await TemplateStore(session).get_template(kind, template_id)

        targets = sorted(set(user_ids), key=str)
        result = DistributionResult(template_id=template_id, kind=kind, requested_count=len(targets))
        if not targets:
            logger.info("Distribution skipped, no target members", template_id=str(template_id), kind=kind.value)
            return result

        now = utcnow()
        source = Provenance.CAMPAIGN.value
        if kind == RewardKind.COUPON:
            reserved_codes: set[str] = set()
            records = [
                issue_coupon(user_id, template, source=source, now=now, reserved_codes=reserved_codes)
                for user_id in targets
            ]
        else:
            records = [issue_gift_card(user_id, template, source=source, now=now) for user_id in targets]

        chunks = partition(records, self._chunk_size)
        tasks = [asyncio.create_task(self._commit_chunk(index, chunk)) for index, chunk in enumerate(chunks)]
        # In-flight chunk commits finish even when the caller is cancelled.
        result.chunks = list(await asyncio.shield(asyncio.gather(*tasks)))

        log = logger.info if result.succeeded else logger.warning
        log(
            "Distribution finished",
            template_id=str(template_id),
            kind=kind.value,
            requested=result.requested_count,
            distributed=result.distributed_count,
            chunks=len(result.chunks),
            failed_chunks=len(result.failed_chunks),
        )
        return result

    async def _commit_chunk(self, index: int, records: Sequence) -> ChunkResult:
        try:
            written = await write_batch(self._session_factory, records, limit=self._chunk_size)
        except Exception as exc:
            error = ChunkCommitError(chunk=index, size=len(records), cause=type(exc).__name__)
            self._store.record_chunk(committed=False, size=len(records))
            logger.opt(exception=exc).error("Distribution chunk failed", code=error.code, **error.context)
            reason = f"{error.message} ({type(exc).__name__})"
            return ChunkResult(index=index, size=len(records), committed=False, reason=reason)
        self._store.record_chunk(committed=True, size=written)
        logger.debug("Distribution chunk committed", chunk=index, size=written)
        return ChunkResult(index=index, size=written, committed=True)


__all__ = ["BatchDistributor", "ChunkResult", "DistributionResult", "partition"]
