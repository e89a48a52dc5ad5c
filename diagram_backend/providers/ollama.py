from __future__ import annotations
import json
from typing import AsyncIterator, Optional

import httpx

from diagram_backend.changes import Change
from diagram_backend.config import Config
from diagram_backend.prompt import GenerationPrompt
from diagram_backend.providers.base import GenerationError
from diagram_backend.schema import normalize_events, try_parse_json


async def generate(
    prompt: GenerationPrompt,
    *,
    base_url: Optional[str] = None,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Change]:
    """
    Local model through Ollama's /api/chat. The reply streams as NDJSON
    chunks; changes are only known once the whole JSON document is in.
    """
    base_url = (base_url or Config.OLLAMA_URL).rstrip("/")
    model = model or Config.OLLAMA_MODEL

    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt.to_text()}],
        "stream": True,
        "format": "json",
    }

    parts = []
    try:
        async with httpx.AsyncClient(timeout=Config.GENERATION_TIMEOUT_SECONDS, transport=transport) as client:
            async with client.stream("POST", f"{base_url}/api/chat", json=payload) as r:
                r.raise_for_status()
                async for line in r.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = json.loads(line)
                    if chunk.get("error"):
                        raise GenerationError(str(chunk["error"]))
                    parts.append((chunk.get("message") or {}).get("content", "") or "")
                    if chunk.get("done"):
                        break
    except httpx.HTTPError as e:
        raise GenerationError(f"Ollama request failed: {e}") from e
    except json.JSONDecodeError as e:
        raise GenerationError(f"Ollama sent a malformed chunk: {e}") from e

    content = "".join(parts)
    if not content.strip():
        return
    try:
        parsed = try_parse_json(content)
    except ValueError as e:
        raise GenerationError(f"Ollama reply is not JSON: {e}") from e
    for change in normalize_events(parsed):
        yield change
