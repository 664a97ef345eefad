"""Best-effort staff alerts fanned out after ledger events."""

from __future__ import annotations

from typing import Optional

from loguru import logger
from sqlalchemy import select

from perks_api.core.settings import get_settings
from perks_api.db.transactions import SessionFactory
from perks_api.models.promotions import GiftCardInstance
from perks_api.models.user import User

from .backend import LoggingPushBackend, PushBackend


class StaffNotifier:
    """Looks up staff device tokens and pushes alerts without ever raising."""

    def __init__(
        self,
        session_factory: SessionFactory,
        backend: Optional[PushBackend] = None,
        *,
        roles: list[str] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._backend = backend or self._build_default_backend()
        self._roles = roles if roles is not None else list(get_settings().staff_notification_roles)

    @staticmethod
    def _build_default_backend() -> Optional[PushBackend]:
        if not get_settings().push_notifications_enabled:
            return None
        return LoggingPushBackend()

    async def staff_push_tokens(self) -> list[str]:
        if not self._roles:
            return []
        async with self._session_factory() as session:
            stmt = select(User.push_token).where(User.role.in_(self._roles), User.push_token.is_not(None))
            tokens = (await session.execute(stmt)).scalars().all()
        return sorted({token for token in tokens if token})

    async def notify_gift_card_redeemed(self, instance: GiftCardInstance) -> int:
        """Alert staff that a gift card was used in store; returns pushes delivered."""

        if self._backend is None:
            return 0
        metadata = {"userGiftCardId": str(instance.id), "userId": str(instance.user_id)}
        return await self._broadcast(
            title="Gift card redeemed",
            body=f"{instance.name} was redeemed in store.",
            metadata=metadata,
        )

    async def _broadcast(self, *, title: str, body: str, metadata: dict[str, str]) -> int:
        try:
            tokens = await self.staff_push_tokens()
        except Exception as exc:
            logger.warning("Staff token lookup failed", error=str(exc))
            return 0

        delivered = 0
        for token in tokens:
            try:
                await self._backend.send_push(token, title, body, metadata=metadata)
                delivered += 1
            except Exception as exc:
                logger.warning("Staff push delivery failed", recipient=token[-8:], error=str(exc))
        logger.info("Staff notification fan-out finished", title=title, recipients=len(tokens), delivered=delivered)
        return delivered
