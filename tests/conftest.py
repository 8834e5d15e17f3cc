"""Pytest fixtures for fieldsync tests"""
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from fieldsync import (
    EventBus,
    Media,
    MemoryStore,
    Occurrence,
    Sample,
    SyncConfig,
)

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
HOST_URL = "https://warehouse.example.org"
SAMPLES_URL = f"{HOST_URL}/api/v1/samples"
REMOTE_MEDIA_BYTES = b"remote photo bytes"


class Warehouse:
    """
    Fake warehouse built on httpx.MockTransport.

    Records every request; answers with the queued responses in order, or
    with a generated success body mirroring the submission.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.fetches: List[httpx.Request] = []
        self.responses: List[Any] = []
        self.next_id = 1000

    def queue(self, status_code: int, body: Any = None) -> None:
        self.responses.append((status_code, body))

    def queue_error(self, exc: Exception) -> None:
        self.responses.append(exc)

    def _echo(self, submission: Dict[str, Any]) -> Dict[str, Any]:
        self.next_id += 1
        node = {"id": self.next_id, "external_key": submission["external_key"]}
        for kind in ("samples", "occurrences", "media"):
            if submission.get(kind):
                node[kind] = [self._echo(child) for child in submission[kind]]
        return node

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            # remote media download
            self.fetches.append(request)
            return httpx.Response(200, content=REMOTE_MEDIA_BYTES)
        self.requests.append(request)
        if self.responses:
            answer = self.responses.pop(0)
            if isinstance(answer, Exception):
                raise answer
            status_code, body = answer
            if isinstance(body, (bytes, str)):
                return httpx.Response(status_code, content=body)
            return httpx.Response(status_code, json=body)
        submission = submission_of(request)
        return httpx.Response(200, json={"data": self._echo(submission)})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def submission_of(request: httpx.Request) -> Dict[str, Any]:
    """Extract the submitted record from a JSON or multipart request."""
    content_type = request.headers.get("content-type", "")
    body = request.content
    if content_type.startswith("application/json"):
        return json.loads(body)["data"]

    # multipart: find the "submission" part
    boundary = content_type.split("boundary=")[1].encode()
    for part in body.split(b"--" + boundary):
        if b'name="submission"' in part:
            payload = part.split(b"\r\n\r\n", 1)[1].rstrip(b"\r\n-")
            return json.loads(payload)["data"]
    raise AssertionError("No submission part in multipart body")


@pytest.fixture
def warehouse():
    """Fake warehouse with a request log."""
    return Warehouse()


@pytest.fixture
def config():
    """Sync config pointing at the fake warehouse."""
    return SyncConfig(
        host_url=HOST_URL,
        api_key="test-key",
        app_name="field-app",
        app_secret="s3cret",
        website_id=23,
        survey_id=101,
        user="recorder",
        password="pa55",
        timeout=5,
    )


@pytest.fixture
def event_bus():
    """Isolated event bus."""
    return EventBus()


@pytest.fixture
def memory_store():
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def make_sample() -> Callable[..., Sample]:
    """Factory for a valid sample with one occurrence."""

    def factory(with_media: bool = False, **attributes: Any) -> Sample:
        sample = Sample({"location": "51.5074,-0.1278", **attributes}, survey_id=101)
        occurrence = Occurrence({"taxon": 1234, "comment": "by the pond"})
        if with_media:
            occurrence.add_media(Media.create(PNG_DATA_URI, "image/png"))
        sample.add_occurrence(occurrence)
        return sample

    return factory
