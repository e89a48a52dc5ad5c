from __future__ import annotations
from typing import AsyncIterator, Callable

from diagram_backend.changes import Change
from diagram_backend.prompt import GenerationPrompt


class GenerationError(Exception):
    """The generation service failed or spoke an unexpected protocol."""


# A provider streams the changes generated for one prompt
ProviderFn = Callable[[GenerationPrompt], AsyncIterator[Change]]
