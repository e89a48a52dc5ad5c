"""Identity-keyed store of buffered diagram artifacts.

Shared between the generation queue, the applier and the HTTP layer. Every
write replaces the whole record under one lock.
"""

from collections import OrderedDict
from dataclasses import replace
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from diagram_backend.models import ArtifactStatus, BufferedArtifact, Utterance

logger = logging.getLogger(__name__)


class ArtifactNotFound(KeyError):
    """No artifact with that id is buffered."""


class ArtifactNotReady(Exception):
    """The artifact is not in a state that allows the operation."""


class InvalidTransition(Exception):
    pass


# Allowed status moves; discard (removal) is always allowed and not listed.
TRANSITIONS = {
    ArtifactStatus.PENDING: {ArtifactStatus.GENERATED, ArtifactStatus.ERROR},
    ArtifactStatus.GENERATED: {ArtifactStatus.APPLIED},
    ArtifactStatus.APPLIED: set(),
    ArtifactStatus.ERROR: set(),
}

Listener = Callable[[List[BufferedArtifact]], None]


class ArtifactBuffer:
    def __init__(self):
        self._items: "OrderedDict[str, BufferedArtifact]" = OrderedDict()
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._version = 0

    @property
    def version(self) -> int:
        """Bumped on every mutation; lets pollers skip unchanged snapshots."""
        return self._version

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _changed(self) -> None:
        # caller holds the lock
        self._version += 1

    def _notify(self) -> None:
        snapshot = self.diagrams()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("[BUFFER] Listener failed: %s", e)

    def add_diagram(self, utterance: Utterance) -> str:
        """Track an utterance as a pending artifact; re-adding is a no-op."""
        artifact_id = utterance.artifact_id
        with self._lock:
            if artifact_id in self._items:
                return artifact_id
            self._items[artifact_id] = BufferedArtifact(id=artifact_id, source_utterance=utterance)
            self._changed()
        self._notify()
        return artifact_id

    def __contains__(self, artifact_id: str) -> bool:
        with self._lock:
            return artifact_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, artifact_id: str) -> BufferedArtifact:
        with self._lock:
            try:
                return self._items[artifact_id]
            except KeyError:
                raise ArtifactNotFound(artifact_id) from None

    def find(self, artifact_id: str) -> Optional[BufferedArtifact]:
        with self._lock:
            return self._items.get(artifact_id)

    def diagrams(self) -> List[BufferedArtifact]:
        """Artifacts in insertion order."""
        with self._lock:
            return list(self._items.values())

    def update_diagram(self, artifact_id: str, **partial: Any) -> BufferedArtifact:
        """Replace fields of an artifact without status validation."""
        if "changes" in partial and partial["changes"] is not None:
            partial["changes"] = tuple(partial["changes"])
        if "status" in partial:
            partial["status"] = ArtifactStatus(partial["status"])
        with self._lock:
            current = self._items.get(artifact_id)
            if current is None:
                raise ArtifactNotFound(artifact_id)
            updated = replace(current, **partial)
            self._items[artifact_id] = updated
            self._changed()
        self._notify()
        return updated

    def transition(
        self,
        artifact_id: str,
        status: ArtifactStatus,
        changes: Optional[Iterable[Any]] = None,
        error: Optional[str] = None,
    ) -> BufferedArtifact:
        """Move an artifact along the status machine, atomically with its payload."""
        with self._lock:
            current = self._items.get(artifact_id)
            if current is None:
                raise ArtifactNotFound(artifact_id)
            if status not in TRANSITIONS[current.status]:
                raise InvalidTransition(f"{artifact_id}: {current.status.value} -> {status.value}")
            fields: Dict[str, Any] = {"status": status, "error": error}
            if changes is not None:
                fields["changes"] = tuple(changes)
            if status == ArtifactStatus.GENERATED and not fields.get("changes", current.changes):
                raise InvalidTransition(f"{artifact_id}: cannot be generated without changes")
            updated = replace(current, **fields)
            self._items[artifact_id] = updated
            self._changed()
        self._notify()
        return updated

    def remove_diagram(self, artifact_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(artifact_id, None) is not None
            if removed:
                self._changed()
        if removed:
            self._notify()
        return removed

    def clear_diagrams(self) -> int:
        with self._lock:
            count = len(self._items)
            self._items.clear()
            self._changed()
        self._notify()
        return count
