import pytest

from diagram_backend.buffer import ArtifactBuffer
from diagram_backend.canvas import InMemoryCanvas
from diagram_backend.changes import Criterion, MatrixOption
from diagram_backend.models import Utterance


def make_utterance(content="we should compare the three vendors", call_id="call-1", emitted_at=1000, **kwargs):
    return Utterance(call_id=call_id, content=content, emitted_at=emitted_at, **kwargs)


def options(*titles):
    return [MatrixOption(id=t.lower(), title=t) for t in titles]


def criteria(*specs):
    out = []
    for spec in specs:
        if isinstance(spec, tuple):
            title, weight = spec
        else:
            title, weight = spec, None
        out.append(Criterion(id=title.lower(), title=title, weight=weight))
    return out


@pytest.fixture
def buffer():
    return ArtifactBuffer()


@pytest.fixture
def canvas():
    return InMemoryCanvas()
