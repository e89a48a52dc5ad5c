from __future__ import annotations
import json
import logging
from typing import AsyncIterator, Optional

import httpx

from diagram_backend.changes import Change
from diagram_backend.config import Config
from diagram_backend.prompt import GenerationPrompt
from diagram_backend.providers.base import GenerationError
from diagram_backend.schema import normalize_events, parse_sse_line

logger = logging.getLogger(__name__)


async def generate(
    prompt: GenerationPrompt,
    *,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Change]:
    """
    POST the prompt to the generation worker and yield changes as the
    ``data: <json>`` lines arrive. The stream ends when the server closes it.
    """
    url = url or Config.GENERATION_URL
    timeout = timeout or Config.GENERATION_TIMEOUT_SECONDS

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            async with client.stream("POST", url, json=prompt.to_wire()) as r:
                r.raise_for_status()
                async for line in r.aiter_lines():
                    try:
                        obj = parse_sse_line(line)
                    except json.JSONDecodeError:
                        logger.warning("[WORKER] Ignoring undecodable line: %s", line[:80])
                        continue
                    if obj is None:
                        continue
                    if isinstance(obj, dict) and obj.get("error"):
                        raise GenerationError(str(obj["error"]))
                    for change in normalize_events(obj):
                        yield change
    except httpx.HTTPError as e:
        raise GenerationError(f"Generation request failed: {e}") from e
