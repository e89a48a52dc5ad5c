from __future__ import annotations
import json
from typing import AsyncIterator, Optional

import httpx

from diagram_backend.changes import Change
from diagram_backend.config import Config
from diagram_backend.prompt import GenerationPrompt
from diagram_backend.providers.base import GenerationError
from diagram_backend.schema import normalize_events, parse_sse_line, try_parse_json


def _chunk_text(data: dict) -> str:
    try:
        cand0 = (data.get("candidates") or [])[0]
    except IndexError:
        return ""
    parts = ((cand0.get("content") or {}).get("parts") or [])
    return "".join([p.get("text", "") for p in parts if isinstance(p, dict)])


async def generate(
    prompt: GenerationPrompt,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Change]:
    """
    Gemini Developer API, streamGenerateContent with alt=sse.
    """
    api_key = (api_key or Config.GEMINI_API_KEY or "").strip()
    if not api_key:
        raise GenerationError("GEMINI_API_KEY is not set. Add it to .env to enable Gemini.")

    base_url = (base_url or Config.GEMINI_BASE_URL).rstrip("/")
    model = (model or Config.GEMINI_MODEL).strip()

    # Gemini REST: POST /v1beta/models/{model}:streamGenerateContent
    url = f"{base_url}/v1beta/models/{model}:streamGenerateContent"

    body = {
        "contents": [
            {"role": "user", "parts": [{"text": prompt.to_text()}]}
        ],
        "generationConfig": {"responseMimeType": "application/json"},
    }

    headers = {
        "Content-Type": "application/json",
        "x-goog-api-key": api_key,
    }

    parts = []
    try:
        async with httpx.AsyncClient(timeout=Config.GENERATION_TIMEOUT_SECONDS, transport=transport) as client:
            async with client.stream("POST", url, params={"alt": "sse"}, json=body, headers=headers) as r:
                r.raise_for_status()
                async for line in r.aiter_lines():
                    data = parse_sse_line(line)
                    if isinstance(data, dict):
                        parts.append(_chunk_text(data))
    except httpx.HTTPError as e:
        raise GenerationError(f"Gemini request failed: {e}") from e
    except json.JSONDecodeError as e:
        raise GenerationError(f"Gemini sent a malformed event: {e}") from e

    text = "".join(parts)
    if not text.strip():
        return
    try:
        parsed = try_parse_json(text)
    except ValueError as e:
        raise GenerationError(f"Gemini reply is not JSON: {e}") from e
    for change in normalize_events(parsed):
        yield change
