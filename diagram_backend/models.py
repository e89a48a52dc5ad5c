"""Data models for the diagram backend."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import math
import random
import time
import uuid

from diagram_backend.changes import Change


@dataclass(frozen=True)
class Utterance:
    """One transcription snippet as delivered by the transcript stream."""
    call_id: str
    content: str
    start: float = 0.0
    end: float = 0.0
    duration: float = 0.0
    emitted_at: float = 0.0  # ms since epoch, as emitted by the transcriber
    user: Optional[str] = None

    def __post_init__(self):
        # the id suffix after the last "-" must stay a plain non-negative number
        if not math.isfinite(self.emitted_at) or self.emitted_at < 0:
            raise ValueError(f"emitted_at must be a non-negative timestamp, got {self.emitted_at!r}")

    @property
    def key(self) -> Tuple[str, float]:
        return (self.call_id, self.emitted_at)

    @property
    def artifact_id(self) -> str:
        if float(self.emitted_at).is_integer():
            emitted = str(int(self.emitted_at))
        else:
            emitted = format(Decimal(repr(float(self.emitted_at))), "f")
        return f"{self.call_id}-{emitted}"

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Utterance":
        """Build from wire JSON; accepts snake_case and camelCase keys."""
        def pick(snake: str, camel: str, default=None):
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        call_id = pick("call_id", "callId")
        if call_id is None:
            raise ValueError("Utterance is missing call_id")
        return cls(
            call_id=str(call_id),
            content=str(data.get("content") or ""),
            start=float(data.get("start") or 0),
            end=float(data.get("end") or 0),
            duration=float(data.get("duration") or 0),
            emitted_at=float(pick("emitted_at", "emittedAt", 0) or 0),
            user=data.get("user"),
        )

    def to_dict(self):
        return {
            "call_id": self.call_id,
            "content": self.content,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "emitted_at": self.emitted_at,
            "user": self.user,
        }


class ArtifactStatus(str, Enum):
    PENDING = "pending"
    GENERATED = "generated"
    APPLIED = "applied"
    ERROR = "error"


@dataclass(frozen=True)
class BufferedArtifact:
    """Snapshot of one utterance's generation result.

    Never mutated; the buffer swaps in a new record on every change so status
    and changes are always read together.
    """
    id: str
    source_utterance: Utterance
    status: ArtifactStatus = ArtifactStatus.PENDING
    changes: Tuple[Change, ...] = ()
    generated_at: float = field(default_factory=lambda: time.time() * 1000)
    error: Optional[str] = None

    def to_dict(self):
        return {
            "id": self.id,
            "message": self.source_utterance.to_dict(),
            "status": self.status.value,
            "changes": [c.to_wire() for c in self.changes],
            "generatedAt": self.generated_at,
            "error": self.error,
        }


SESSION_COLORS = ["blue", "green", "orange", "violet", "red", "light-blue", "light-green", "yellow"]


@dataclass(frozen=True)
class SessionIdentity:
    """Who is editing; passed explicitly to whatever needs it."""
    id: str
    name: str
    color: str

    @classmethod
    def generate(cls, name: Optional[str] = None) -> "SessionIdentity":
        user_id = f"user-{uuid.uuid4().hex[:8]}"
        return cls(
            id=user_id,
            name=(name or "").strip() or f"Guest {user_id[-4:]}",
            color=random.choice(SESSION_COLORS),
        )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "color": self.color}
