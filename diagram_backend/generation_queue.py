"""Generation queue

Turns accepted utterances into buffered artifacts without blocking the
editing session. Utterances are deduplicated by identity, processed in FIFO
order by a fixed number of workers, and every generation runs as its own task
so it can be cancelled.

Usage:
    queue = GenerationQueue(buffer, create_provider("worker"), canvas=canvas)
    artifact_id = queue.enqueue(utterance)   # None if not worth generating
    await queue.join()
    buffer.get(artifact_id).status           # generated | error
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set

from diagram_backend.buffer import ArtifactBuffer, ArtifactNotFound, ArtifactNotReady, InvalidTransition
from diagram_backend.canvas import CanvasSurface
from diagram_backend.changes import Change
from diagram_backend.models import ArtifactStatus, BufferedArtifact, SessionIdentity, Utterance
from diagram_backend.prompt import build_prompt
from diagram_backend.providers.base import ProviderFn

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Generation cancelled"


class GenerationQueue:
    """Deduplicating FIFO of utterances awaiting generation."""

    def __init__(
        self,
        buffer: ArtifactBuffer,
        provider: ProviderFn,
        canvas: Optional[CanvasSurface] = None,
        identity: Optional[SessionIdentity] = None,
        max_concurrency: int = 1,
        min_words: int = 3,
    ):
        self.buffer = buffer
        self.provider = provider
        self.canvas = canvas
        self.identity = identity
        self.max_concurrency = max(1, int(max_concurrency))
        self.min_words = min_words
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._workers: List[asyncio.Task] = []
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._stopped: Set[asyncio.Task] = set()

    # --- intake ---------------------------------------------------------------

    def qualifies(self, utterance: Utterance) -> bool:
        if not utterance.content or not utterance.content.strip():
            return False
        return utterance.word_count >= self.min_words

    def enqueue(self, utterance: Utterance) -> Optional[str]:
        """Accept an utterance for generation.

        Returns the artifact id, or None when the utterance is too short to
        be worth a request. Re-delivery of a tracked utterance is a no-op.
        Must be called from the event loop thread.
        """
        if not self.qualifies(utterance):
            logger.debug("[QUEUE] Skipping short utterance from %s", utterance.call_id)
            return None
        return self._admit(utterance)

    def _admit(self, utterance: Utterance) -> str:
        artifact_id = utterance.artifact_id
        if artifact_id in self.buffer:
            logger.debug("[QUEUE] Duplicate utterance %s ignored", artifact_id)
            return artifact_id
        queue = self._ensure_workers()
        self.buffer.add_diagram(utterance)
        queue.put_nowait(artifact_id)
        logger.info("[QUEUE] Enqueued %s (%d waiting)", artifact_id, queue.qsize())
        return artifact_id

    def _ensure_workers(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            # first use, or a new loop after the old one was closed
            self._loop = loop
            self._queue = asyncio.Queue()
            self._workers = []
            self._in_flight = {}
            self._stopped = set()
        self._workers = [w for w in self._workers if not w.done()]
        while len(self._workers) < self.max_concurrency:
            self._workers.append(loop.create_task(self._worker(len(self._workers))))
        return self._queue

    # --- processing -----------------------------------------------------------

    async def _worker(self, index: int):
        queue = self._queue
        while True:
            artifact_id = await queue.get()
            try:
                await self._process(artifact_id)
            except Exception:
                logger.exception("[QUEUE] Worker %d failed on %s", index, artifact_id)
            finally:
                queue.task_done()

    async def _process(self, artifact_id: str):
        artifact = self.buffer.find(artifact_id)
        if artifact is None or artifact.status != ArtifactStatus.PENDING:
            # discarded or cancelled while waiting
            return

        task = asyncio.ensure_future(self._generate(artifact))
        self._in_flight[artifact_id] = task
        try:
            await asyncio.wait({task})
        finally:
            if self._in_flight.get(artifact_id) is task:
                del self._in_flight[artifact_id]

        # a stop request may arrive after the task finished but before we resumed
        stopped = task in self._stopped
        self._stopped.discard(task)
        if task.cancelled() or stopped:
            logger.info("[QUEUE] Generation for %s cancelled", artifact_id)
            return
        error = task.exception()
        if error is not None:
            self._settle(artifact_id, ArtifactStatus.ERROR, error=str(error) or type(error).__name__)
            logger.warning("[QUEUE] Generation for %s failed: %s", artifact_id, error)
            return

        changes = task.result()
        if not changes:
            current = self.buffer.find(artifact_id)
            if current is not None and current.status == ArtifactStatus.PENDING:
                self.buffer.remove_diagram(artifact_id)
            logger.info("[QUEUE] No changes for %s, discarded", artifact_id)
            return
        if self._settle(artifact_id, ArtifactStatus.GENERATED, changes=changes):
            logger.info("[QUEUE] Generated %d change(s) for %s", len(changes), artifact_id)

    async def _generate(self, artifact: BufferedArtifact) -> List[Change]:
        shapes, bindings = [], []
        if self.canvas is not None:
            shapes = self.canvas.get_current_shapes()
            bindings = self.canvas.get_current_bindings()
        prompt = build_prompt(artifact.source_utterance, shapes, bindings, identity=self.identity)
        changes: List[Change] = []
        async for change in self.provider(prompt):
            changes.append(change)
        return changes

    def _settle(self, artifact_id: str, status: ArtifactStatus, changes=None, error=None) -> bool:
        """Record a generation outcome unless the artifact moved on meanwhile."""
        try:
            self.buffer.transition(artifact_id, status, changes=changes, error=error)
            return True
        except (ArtifactNotFound, InvalidTransition):
            logger.info("[QUEUE] Late result for %s discarded", artifact_id)
            return False

    # --- control --------------------------------------------------------------

    def cancel(self, artifact_id: str) -> bool:
        """Stop a queued or in-flight generation; the artifact is marked errored.

        Returns False when the artifact is no longer pending.
        """
        artifact = self.buffer.get(artifact_id)
        if artifact.status != ArtifactStatus.PENDING:
            return False
        self.buffer.transition(artifact_id, ArtifactStatus.ERROR, error=CANCELLED_MESSAGE)
        self._stop(artifact_id)
        logger.info("[QUEUE] Cancelled %s", artifact_id)
        return True

    def discard(self, artifact_id: str) -> bool:
        """Drop an artifact in any state, stopping its generation if running."""
        self._stop(artifact_id)
        return self.buffer.remove_diagram(artifact_id)

    def _stop(self, artifact_id: str):
        task = self._in_flight.get(artifact_id)
        if task is not None:
            self._stopped.add(task)
            task.cancel()

    def retry(self, artifact_id: str) -> str:
        """Discard an errored artifact and queue its utterance again."""
        artifact = self.buffer.get(artifact_id)
        if artifact.status != ArtifactStatus.ERROR:
            raise ArtifactNotReady(f"Artifact {artifact_id} is {artifact.status.value}, only errored artifacts can be retried")
        self.buffer.remove_diagram(artifact_id)
        logger.info("[QUEUE] Retrying %s", artifact_id)
        return self._admit(artifact.source_utterance)

    @property
    def in_flight(self) -> List[str]:
        return list(self._in_flight)

    @property
    def waiting(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def join(self):
        """Wait until every accepted utterance has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self):
        tasks = list(self._in_flight.values()) + self._workers
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._in_flight = {}
        self._stopped = set()
        self._queue = None
        self._loop = None
