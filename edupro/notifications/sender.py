"""
Push notification transport.

Delivery is fire-and-forget: ``notify`` never raises, failures are logged and
swallowed so the workflow that triggered the message is never affected.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from edupro.core.config import settings

logger = logging.getLogger(__name__)

# Expo rejects push requests carrying more messages than this
MAX_MESSAGES_PER_REQUEST = 100


class NotificationSender(Protocol):
    async def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        route_hint: Optional[str] = None,
    ) -> None:
        ...


class ExpoPushSender:
    """Sends through the Expo push HTTP API (one message per token, up to 100 per request)."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint or settings.push_endpoint
        self.timeout = timeout if timeout is not None else settings.push_timeout_seconds
        self._client = client

    def _messages(
        self, tokens: Sequence[str], title: str, body: str, route_hint: Optional[str]
    ) -> List[Dict[str, Any]]:
        data: Dict[str, Any] = {"route": route_hint} if route_hint else {}
        return [
            {
                "to": token,
                "sound": "default",
                "title": title,
                "body": body,
                "data": data,
                "priority": "high",
            }
            for token in tokens
        ]

    async def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        route_hint: Optional[str] = None,
    ) -> None:
        messages = self._messages(tokens, title, body, route_hint)
        chunks = [
            messages[i:i + MAX_MESSAGES_PER_REQUEST]
            for i in range(0, len(messages), MAX_MESSAGES_PER_REQUEST)
        ]
        if self._client is not None:
            await self._send_chunks(self._client, chunks)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                await self._send_chunks(client, chunks)

    async def _send_chunks(self, client: httpx.AsyncClient, chunks: List[List[Dict[str, Any]]]) -> None:
        """POST every chunk. A failed chunk is logged and the rest still go out; raises only if all fail."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        last_error: Optional[httpx.HTTPError] = None
        failed = 0
        for n, chunk in enumerate(chunks, start=1):
            try:
                response = await client.post(self.endpoint, json=chunk, headers=headers, timeout=self.timeout)
                response.raise_for_status()
            except httpx.HTTPError as e:
                failed += 1
                last_error = e
                logger.warning("Push chunk %d/%d (%d messages) failed: %s", n, len(chunks), len(chunk), e)
                continue
            logger.debug("Push result: %s", response.text)
        if last_error is not None and failed == len(chunks):
            raise last_error


class NullSender:
    """Used when PUSH_ENABLED is false."""

    async def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        route_hint: Optional[str] = None,
    ) -> None:
        logger.debug("Push disabled; dropping %r to %d device(s)", title, len(tokens))


async def notify(
    sender: NotificationSender,
    tokens: Sequence[Optional[str]],
    title: str,
    body: str,
    route_hint: Optional[str] = None,
) -> int:
    """Best-effort delivery. Returns how many tokens were handed to the transport (0 on failure)."""
    targets = list(dict.fromkeys(t for t in tokens if t))
    if not targets:
        return 0
    try:
        await sender.send(targets, title, body, route_hint)
    except Exception:
        logger.exception("Failed to send notification %r to %d device(s)", title, len(targets))
        return 0
    logger.info("Sent notification %r to %d device(s)", title, len(targets))
    return len(targets)


def get_notification_sender() -> NotificationSender:
    """FastAPI dependency; tests override it with a recording sender."""
    if not settings.push_enabled:
        return NullSender()
    return ExpoPushSender()
