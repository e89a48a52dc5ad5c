"""FastAPI backend for transcript-driven diagram generation."""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

from diagram_backend.applier import ChangeApplier
from diagram_backend.buffer import ArtifactBuffer, ArtifactNotFound, ArtifactNotReady, InvalidTransition
from diagram_backend.canvas import InMemoryCanvas
from diagram_backend.changes import parse_changes
from diagram_backend.config import Config
from diagram_backend.generation_queue import GenerationQueue
from diagram_backend.models import ArtifactStatus, SessionIdentity, Utterance
from diagram_backend.providers import create_provider
from diagram_backend.transcript import TranscriptListener

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

for problem in Config.validate():
    logger.warning("[CONFIG] %s", problem)

# Global state
buffer = ArtifactBuffer()
canvas = InMemoryCanvas()
identity = SessionIdentity.generate()

# Initialize provider based on configuration
try:
    provider = create_provider(Config.GENERATION_PROVIDER)
    logger.info("[MAIN] Provider initialized: %s", Config.GENERATION_PROVIDER)
except ValueError as e:
    logger.error("[MAIN] %s", e)
    logger.warning("[MAIN] Falling back to worker provider...")
    provider = create_provider("worker")

queue = GenerationQueue(
    buffer,
    provider,
    canvas=canvas,
    identity=identity,
    max_concurrency=Config.GENERATION_MAX_CONCURRENCY,
    min_words=Config.MIN_UTTERANCE_WORDS,
)
applier = ChangeApplier(canvas, buffer, gap=Config.APPLY_GAP, start_y=Config.APPLY_START_Y)
listener: Optional[TranscriptListener] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if listener is not None:
        await listener.stop()
    await queue.close()


app = FastAPI(title="Transcript Diagrams", lifespan=lifespan)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request models
class UtteranceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    call_id: str = Field(alias="callId")
    content: str
    start: float = 0.0
    end: float = 0.0
    duration: float = 0.0
    emitted_at: float = Field(0.0, alias="emittedAt", ge=0)
    user: Optional[str] = None

    def to_utterance(self) -> Utterance:
        return Utterance(
            call_id=self.call_id,
            content=self.content,
            start=self.start,
            end=self.end,
            duration=self.duration,
            emitted_at=self.emitted_at,
            user=self.user,
        )


class AddDiagramRequest(UtteranceRequest):
    changes: Optional[List[Dict[str, Any]]] = None


class DiagramPatch(BaseModel):
    status: Optional[str] = None
    error: Optional[str] = None
    changes: Optional[List[Dict[str, Any]]] = None


class SessionRequest(BaseModel):
    name: Optional[str] = None


class TranscriptStartRequest(BaseModel):
    url: Optional[str] = None


def _not_found(artifact_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"No diagram with id {artifact_id}")


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "provider": Config.GENERATION_PROVIDER,
        "config_problems": Config.validate(),
        "diagrams": len(buffer),
        "in_flight": queue.in_flight,
        "waiting": queue.waiting,
    }


@app.get("/session")
async def get_session():
    return identity.to_dict()


@app.post("/session")
async def new_session(request: SessionRequest):
    """Start a new editing identity; generation requests carry it from now on."""
    global identity
    identity = SessionIdentity.generate(request.name)
    queue.identity = identity
    logger.info("[SESSION] New identity %s (%s)", identity.id, identity.name)
    return identity.to_dict()


@app.post("/utterances")
async def post_utterance(request: UtteranceRequest):
    """Feed one utterance into the generation queue."""
    artifact_id = queue.enqueue(request.to_utterance())
    return {"id": artifact_id, "accepted": artifact_id is not None}


@app.get("/diagrams")
async def list_diagrams():
    return {"diagrams": [a.to_dict() for a in buffer.diagrams()]}


@app.get("/diagrams/stream")
async def diagram_stream(request: Request):
    """Stream buffer snapshots via Server-Sent Events."""

    async def event_generator():
        last_version = -1
        idle = 0
        while True:
            if await request.is_disconnected():
                break
            if buffer.version != last_version:
                last_version = buffer.version
                idle = 0
                snapshot = {"diagrams": [a.to_dict() for a in buffer.diagrams()]}
                yield f"data: {json.dumps(snapshot)}\n\n"
            else:
                idle += 1
                if idle >= 20:
                    # Send heartbeat to keep connection alive
                    idle = 0
                    yield ": heartbeat\n\n"
            await asyncio.sleep(0.25)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        }
    )


@app.post("/diagrams")
async def add_diagram(request: AddDiagramRequest):
    """Track an utterance without generating; optional changes mark it generated."""
    try:
        changes = parse_changes(request.changes) if request.changes else None
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json()))
    artifact_id = buffer.add_diagram(request.to_utterance())
    if changes:
        try:
            buffer.transition(artifact_id, ArtifactStatus.GENERATED, changes=changes)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
    return buffer.get(artifact_id).to_dict()


@app.patch("/diagrams/{artifact_id}")
async def patch_diagram(artifact_id: str, request: DiagramPatch):
    partial: Dict[str, Any] = request.model_dump(exclude_unset=True)
    try:
        if partial.get("changes") is None:
            partial.pop("changes", None)
        else:
            partial["changes"] = parse_changes(partial["changes"])
        if "status" in partial:
            partial["status"] = ArtifactStatus(partial["status"])
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    status = partial.pop("status", None)
    try:
        if status is not None:
            # status moves go through the state machine together with their payload
            return buffer.transition(
                artifact_id,
                status,
                changes=partial.get("changes"),
                error=partial.get("error"),
            ).to_dict()
        current = buffer.get(artifact_id)
        if "changes" in partial and not partial["changes"] and current.status == ArtifactStatus.GENERATED:
            raise HTTPException(status_code=409, detail="A generated diagram needs at least one change")
        return buffer.update_diagram(artifact_id, **partial).to_dict()
    except ArtifactNotFound:
        raise _not_found(artifact_id)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.delete("/diagrams/{artifact_id}")
async def delete_diagram(artifact_id: str):
    if not queue.discard(artifact_id):
        raise _not_found(artifact_id)
    return {"id": artifact_id, "removed": True}


@app.delete("/diagrams")
async def clear_diagrams():
    cleared = sum(queue.discard(artifact.id) for artifact in buffer.diagrams())
    return {"cleared": cleared}


@app.post("/diagrams/{artifact_id}/apply")
async def apply_diagram(artifact_id: str):
    try:
        report = applier.apply(artifact_id)
    except ArtifactNotFound:
        raise _not_found(artifact_id)
    except (ArtifactNotReady, InvalidTransition) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return report.to_dict()


@app.post("/diagrams/{artifact_id}/cancel")
async def cancel_diagram(artifact_id: str):
    try:
        cancelled = queue.cancel(artifact_id)
    except ArtifactNotFound:
        raise _not_found(artifact_id)
    return {"id": artifact_id, "cancelled": cancelled}


@app.post("/diagrams/{artifact_id}/retry")
async def retry_diagram(artifact_id: str):
    try:
        new_id = queue.retry(artifact_id)
    except ArtifactNotFound:
        raise _not_found(artifact_id)
    except ArtifactNotReady as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"id": new_id, "status": buffer.get(new_id).status.value}


@app.get("/canvas/shapes")
async def canvas_shapes():
    return {
        "shapes": canvas.get_current_shapes(),
        "bindings": canvas.get_current_bindings(),
    }


@app.post("/transcript/start")
async def transcript_start(request: TranscriptStartRequest):
    """Connect to the transcription websocket and feed the queue."""
    global listener
    url = request.url or Config.TRANSCRIPT_WS_URL
    if listener is not None and listener.running:
        if listener.url == url:
            return listener.to_dict()
        await listener.stop()
    listener = TranscriptListener(url, queue.enqueue)
    listener.start()
    logger.info("[TRANSCRIPT] Listening on %s", url)
    return listener.to_dict()


@app.post("/transcript/stop")
async def transcript_stop():
    global listener
    if listener is None:
        return {"status": "idle", "running": False}
    await listener.stop()
    status = listener.to_dict()
    listener = None
    return status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8010)
