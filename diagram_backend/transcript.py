"""Websocket client for the live transcription stream."""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from diagram_backend.models import Utterance

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 60.0
MAX_ATTEMPTS = 10


def backoff_delay(attempt: int, base: float = BASE_DELAY_SECONDS, cap: float = MAX_DELAY_SECONDS) -> float:
    """Delay before reconnect attempt ``attempt`` (1-based): 1, 2, 4 ... capped."""
    return min(base * (2 ** max(0, attempt - 1)), cap)


class TranscriptListener:
    """Receives utterances (one JSON object per message) and hands them on.

    Reconnects with exponential backoff after abnormal disconnects or failed
    connects; gives up after ``max_attempts`` consecutive failures. A clean
    close from the server ends the listener.
    """

    def __init__(
        self,
        url: str,
        on_utterance: Callable[[Utterance], Any],
        connect: Callable = websockets.connect,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        max_delay: float = MAX_DELAY_SECONDS,
        sleep: Callable = asyncio.sleep,
    ):
        self.url = url
        self.on_utterance = on_utterance
        self._connect = connect
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.status = "idle"
        self.attempts = 0
        self.received = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.status = "stopped"
        logger.info("[TRANSCRIPT] Listener stopped")

    async def run(self):
        self.attempts = 0
        while True:
            self.status = "connecting" if self.attempts == 0 else "reconnecting"
            try:
                async with self._connect(self.url) as ws:
                    self.attempts = 0
                    self.status = "connected"
                    logger.info("[TRANSCRIPT] Connected to %s", self.url)
                    async for raw in ws:
                        await self._handle(raw)
                self.status = "closed"
                logger.info("[TRANSCRIPT] Stream closed by server")
                return
            except (WebSocketException, OSError) as e:
                self.attempts += 1
                if self.attempts > self.max_attempts:
                    self.status = "failed"
                    logger.error("[TRANSCRIPT] Giving up after %d attempts: %s", self.max_attempts, e)
                    return
                delay = backoff_delay(self.attempts, self.base_delay, self.max_delay)
                logger.warning("[TRANSCRIPT] Connection lost (%s); retry %d/%d in %.0fs",
                               e, self.attempts, self.max_attempts, delay)
                await self._sleep(delay)

    async def _handle(self, raw: Any):
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("[TRANSCRIPT] Ignoring non-JSON message")
            return
        items = data if isinstance(data, list) else [data]
        for item in items:
            try:
                utterance = Utterance.from_dict(item)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("[TRANSCRIPT] Ignoring malformed utterance: %s", e)
                continue
            self.received += 1
            result = self.on_utterance(utterance)
            if inspect.isawaitable(result):
                await result

    def to_dict(self):
        return {
            "url": self.url,
            "status": self.status,
            "running": self.running,
            "attempts": self.attempts,
            "received": self.received,
        }
