"""Shared test fixtures for the converter service."""

import io
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from docx import Document
from fastapi.testclient import TestClient

from functions.relay import SinkClosed
from main import create_app
from settings import Settings


class RecordingSink:
    """Event sink that keeps every event in memory."""

    def __init__(self, reject_after=None):
        self.events = []
        self.close_calls = 0
        self.closed = False
        self._reject_after = reject_after

    async def send(self, event):
        if self.closed:
            raise SinkClosed("closed")
        if self._reject_after is not None and len(self.events) >= self._reject_after:
            raise SinkClosed("client went away")
        self.events.append(event)

    async def close(self):
        self.close_calls += 1
        self.closed = True

    @property
    def types(self):
        return [event.type for event in self.events]


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def rejecting_sink():
    """Sink that accepts two events and then behaves like a closed connection."""
    return RecordingSink(reject_after=2)


@pytest.fixture
def fake_stream():
    """Factory for upstream fragment streams, optionally failing at the end."""

    def _make(fragments, error=None, closed=None):
        async def _gen():
            try:
                for fragment in fragments:
                    yield fragment
                if error is not None:
                    raise error
            finally:
                if closed is not None:
                    closed.append(True)

        return _gen()

    return _make


@pytest.fixture
def prompt_file(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text("Convert the blog post into an HTML fragment.", encoding="utf-8")
    return path


@pytest.fixture
def settings(prompt_file):
    return Settings(
        ollama_host="http://ollama.test:11434",
        default_model="test-model",
        serve_static=False,
        prompt_path=str(prompt_file),
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def make_docx():
    def _make(paragraphs):
        doc = Document()
        for text in paragraphs:
            doc.add_paragraph(text)
        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def parse_sse():
    def _parse(body):
        events = []
        for frame in body.split("\n\n"):
            if frame.startswith("data: "):
                events.append(json.loads(frame[len("data: "):]))
        return events

    return _parse


VALID_HTML = (
    "<section>\n<h2>Intro</h2>\n<p>Hello world.</p>\n</section>\n"
    "<section>\n<h3>Details</h3>\n<p>More text.</p>\n</section>"
)


@pytest.fixture
def valid_html():
    return VALID_HTML


@pytest.fixture
def ollama_client():
    """Patched ollama AsyncClient class; the instance lists no models by default."""
    with patch("functions.llm.AsyncClient") as mock_cls:
        mock_cls.return_value.list = AsyncMock(return_value=SimpleNamespace(models=[]))
        mock_cls.return_value.close = AsyncMock()
        yield mock_cls
