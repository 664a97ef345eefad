"""Push delivery backends used for staff alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from loguru import logger


class PushBackend(Protocol):
    """Protocol for push notification connectors."""

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        ...


class LoggingPushBackend:
    """Records pushes in the application log when no transport is configured."""

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        logger.info("Push notification queued", recipient=recipient[-8:], title=title, metadata=metadata or {})


@dataclass
class InMemoryPushBackend:
    """Keeps every push in memory; used by tests and local runs."""

    sent_messages: List[dict[str, object]] = field(default_factory=list)

    @property
    def recipients(self) -> List[str]:
        return [str(message["recipient"]) for message in self.sent_messages]

    async def send_push(
        self,
        recipient: str,
        title: str,
        body: str,
        *,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        self.sent_messages.append(
            {
                "recipient": recipient,
                "title": title,
                "body": body,
                "metadata": metadata or {},
            }
        )
