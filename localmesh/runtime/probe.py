"""Readiness probe for adapter containers.

An adapter is ready once its published port accepts a TCP connection.
The probe makes a fixed number of attempts with a fixed delay between them;
cancellation of the calling task interrupts it between or during attempts.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from localmesh.errors import UnreadyError
from localmesh.protocols import LoggerProtocol

Connector = Callable[[str, int], Awaitable[None]]


async def tcp_connect(host: str, port: int) -> None:
    """Open and immediately close a TCP connection."""
    _, writer = await asyncio.open_connection(host, port)
    writer.close()
    await writer.wait_closed()


class ReadinessProbe:
    """Bounded-retry connectivity check."""

    def __init__(
        self,
        retries: int,
        delay: float,
        logger: LoggerProtocol,
        connect: Optional[Connector] = None,
        attempt_timeout: float = 2.0,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self._retries = retries
        self._delay = delay
        self._connect = connect or tcp_connect
        self._attempt_timeout = attempt_timeout
        self._logger = logger.bind(component="readiness_probe")

    @property
    def retries(self) -> int:
        return self._retries

    async def wait_ready(self, name: str, host: str, port: int) -> int:
        """Probe until the port answers.

        Returns:
            The attempt number that succeeded (1-based).

        Raises:
            UnreadyError: after exactly `retries` failed attempts.
        """
        for attempt in range(1, self._retries + 1):
            try:
                await asyncio.wait_for(self._connect(host, port), timeout=self._attempt_timeout)
                self._logger.debug("probe_succeeded", name=name, attempt=attempt)
                return attempt
            except (OSError, asyncio.TimeoutError) as e:
                self._logger.debug(
                    "probe_attempt_failed",
                    name=name,
                    attempt=attempt,
                    retries=self._retries,
                    error=str(e) or type(e).__name__,
                )

            if attempt < self._retries:
                await asyncio.sleep(self._delay)

        raise UnreadyError(name, self._retries, f"{host}:{port}")


__all__ = ["ReadinessProbe", "tcp_connect", "Connector"]
