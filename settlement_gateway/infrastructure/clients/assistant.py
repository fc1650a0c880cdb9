"""Assistant API HTTP client - polls a conversation run until its reply is ready"""

import asyncio
import time
import httpx
from typing import Dict
from settlement_gateway.domain.exceptions import ExternalCollaboratorError
from settlement_gateway.config import settings
from settlement_gateway.infrastructure.observability.metrics import (
    assistant_poll_failures_counter,
    assistant_poll_latency_histogram,
)

PENDING_STATUSES = ("queued", "in_progress")


class AssistantClient:
    """Client for the external assistant conversation API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        poll_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.assistant_api_base
        self.api_key = api_key if api_key is not None else settings.assistant_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.poll_interval = poll_interval if poll_interval is not None else settings.assistant_poll_interval_seconds
        self.poll_timeout = poll_timeout or settings.assistant_poll_timeout_seconds
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def get_latest_reply(self, conversation_handle: str, timeout: float | None = None) -> str:
        """
        Poll the latest run of a conversation until it completes.

        Requirements:
        - "queued" and "in_progress" keep polling every poll_interval seconds
        - "completed" returns the reply text
        - Any other status is a failure for the turn
        - The whole poll gives up after timeout (default poll_timeout) seconds

        Raises:
            ExternalCollaboratorError: On timeout, HTTP errors, failed runs, or invalid response
        """
        deadline = timeout or self.poll_timeout
        started = time.monotonic()
        try:
            reply = await asyncio.wait_for(self._poll(conversation_handle), timeout=deadline)
        except asyncio.TimeoutError as e:
            assistant_poll_failures_counter.inc()
            raise ExternalCollaboratorError(f"Assistant reply not ready after {deadline}s") from e
        except ExternalCollaboratorError:
            assistant_poll_failures_counter.inc()
            raise
        assistant_poll_latency_histogram.observe(time.monotonic() - started)
        return reply

    async def _poll(self, conversation_handle: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    response = await client.get(
                        f"{self.base_url}/v1/conversations/{conversation_handle}/latest-run",
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                    data = response.json()
                    status = data["status"]
                except httpx.TimeoutException as e:
                    raise ExternalCollaboratorError(f"Assistant API timeout after {self.timeout}s") from e
                except httpx.HTTPStatusError as e:
                    raise ExternalCollaboratorError(f"Assistant API error: {e.response.status_code}") from e
                except httpx.RequestError as e:
                    raise ExternalCollaboratorError(f"Assistant API unreachable: {e}") from e
                except (KeyError, ValueError, TypeError) as e:
                    raise ExternalCollaboratorError(f"Invalid run data from assistant: {e}") from e

                if status == "completed":
                    reply = data.get("reply")
                    if not isinstance(reply, str):
                        raise ExternalCollaboratorError("Completed run carried no reply text")
                    return reply
                if status not in PENDING_STATUSES:
                    raise ExternalCollaboratorError(f"Assistant run ended with status {status!r}")

                await asyncio.sleep(self.poll_interval)
