"""Point balances and their append-only transaction log.

The balance lives on the ``users`` row and every change to it is written
together with exactly one ``PointTransaction`` so the signed sum of a member's
transactions always equals the balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select

from perks_api.core.errors import InsufficientPoints, UserNotFound
from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.db.transactions import SessionFactory, Transaction, run_transaction
from perks_api.models.ledger import PointTransaction, PointTransactionKind
from perks_api.models.user import User


@dataclass
class LedgerAccount:
    user_id: UUID
    balance: int
    opened: bool


@dataclass
class LedgerAudit:
    user_id: UUID
    balance: int
    transaction_sum: int
    transaction_count: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.transaction_sum


@dataclass
class PointChange:
    balance: int
    transaction: PointTransaction | None


def current_balance(user: User) -> int:
    return int(user.loyalty_points or 0)


def apply_points(
    tx: Transaction,
    user: User,
    amount: int,
    *,
    kind: PointTransactionKind,
    reason: str,
    reference: str | None = None,
    now: datetime | None = None,
) -> PointTransaction:
    """Change ``user``'s balance by ``amount`` and append the paired audit record."""

    if amount == 0:
        raise ValueError("Point transactions require a non-zero amount")

    balance = current_balance(user)
    new_balance = balance + amount
    if new_balance < 0:
        raise InsufficientPoints(balance=balance, required=-amount)

    user.loyalty_points = new_balance
    record = PointTransaction(
        user_id=user.id,
        kind=kind,
        amount=amount,
        reason=reason,
        reference=reference,
        created_at=now or utcnow(),
    )
    tx.add(record)
    return record


class UserLedger:
    """Coordinates balance reads and point grants for members."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_account(self, user_id: UUID) -> LedgerAccount:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFound(user_id=str(user_id))
            return LedgerAccount(
                user_id=user.id,
                balance=current_balance(user),
                opened=user.loyalty_points is not None,
            )

    async def list_transactions(self, user_id: UUID, *, limit: int = 50) -> list[PointTransaction]:
        async with self._session_factory() as session:
            stmt = (
                select(PointTransaction)
                .where(PointTransaction.user_id == user_id)
                .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
                .limit(limit)
            )
            return list((await session.execute(stmt)).scalars().all())

    async def audit(self, user_id: UUID) -> LedgerAudit:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFound(user_id=str(user_id))
            stmt = select(
                func.coalesce(func.sum(PointTransaction.amount), 0),
                func.count(PointTransaction.id),
            ).where(PointTransaction.user_id == user_id)
            total, count = (await session.execute(stmt)).one()
            return LedgerAudit(
                user_id=user_id,
                balance=current_balance(user),
                transaction_sum=int(total),
                transaction_count=int(count),
            )

    async def _change(
        self,
        user_id: UUID,
        amount: int,
        *,
        kind: PointTransactionKind,
        reason: str,
        reference: str | None,
        label: str,
    ) -> PointChange:
        async def work(tx: Transaction) -> PointChange:
            user = await tx.get(User, user_id)
            if user is None:
                raise UserNotFound(user_id=str(user_id))
            record = apply_points(tx, user, amount, kind=kind, reason=reason, reference=reference)
            return PointChange(balance=current_balance(user), transaction=record)

        change = await run_transaction(self._session_factory, work, label=label)
        logger.info(
            "Recorded point transaction",
            user_id=str(user_id),
            amount=amount,
            kind=kind.value,
            balance=change.balance,
        )
        return change

    async def grant_points(
        self,
        user_id: UUID,
        amount: int,
        *,
        reason: str,
        reference: str | None = None,
    ) -> PointChange:
        if amount <= 0:
            raise ValueError("Granted points must be positive")
        return await self._change(
            user_id,
            amount,
            kind=PointTransactionKind.EARN,
            reason=reason,
            reference=reference,
            label="ledger.grant",
        )

    async def adjust_points(self, user_id: UUID, amount: int, *, reason: str) -> PointChange:
        """Administrative credit or debit; debits cannot overdraw the balance."""

        return await self._change(
            user_id,
            amount,
            kind=PointTransactionKind.ADJUSTMENT,
            reason=reason,
            reference=None,
            label="ledger.adjust",
        )

    async def earn_for_booking(self, user_id: UUID, booking_id: str, amount: float) -> PointChange:
        """Credit points for a completed booking at the configured earn rate."""

        rate = settings.points_per_amount
        points = int(amount // rate) if rate > 0 and amount > 0 else 0
        if points <= 0:
            account = await self.get_account(user_id)
            logger.debug("Booking earned no points", user_id=str(user_id), booking_id=booking_id, amount=amount)
            return PointChange(balance=account.balance, transaction=None)

        return await self.grant_points(
            user_id,
            points,
            reason=f"Completed booking #{booking_id[:6]}",
            reference=booking_id,
        )


__all__ = [
    "LedgerAccount",
    "LedgerAudit",
    "PointChange",
    "UserLedger",
    "apply_points",
    "current_balance",
]
