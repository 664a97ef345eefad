"""Worker wiring for periodic coupon expiry sweeps."""

from __future__ import annotations

import asyncio
from typing import Dict

from loguru import logger

from perks_api.core.settings import settings
from perks_api.db.transactions import SessionFactory
from perks_api.jobs.promotions import expire_coupon_instances


class CouponExpiryWorker:
    """Periodically expires member coupons past their validity window."""

    # meta: worker: coupon-expiry

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        interval_seconds: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.coupon_expiry_interval_seconds
        self._batch_size = batch_size or settings.coupon_expiry_batch_size
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.is_running: bool = False

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())
        self.is_running = True
        logger.info(
            "Coupon expiry worker started",
            interval_seconds=self.interval_seconds,
            batch_size=self._batch_size,
        )

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        self.is_running = False
        logger.info("Coupon expiry worker stopped")

    async def run_once(self) -> Dict[str, int]:
        return await expire_coupon_instances(session_factory=self._session_factory, limit=self._batch_size)

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - logged and retried next interval
                logger.exception("Coupon expiry iteration failed", error=str(exc))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
