"""Per-request caller context passed explicitly into service operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4


@dataclass(frozen=True)
class RequestContext:
    user_id: UUID
    role: str = "client"
    request_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
