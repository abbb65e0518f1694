"""
Shared fixtures: an in-memory stand-in for the shared requests.Session.
"""

import threading
import time
from typing import Callable, Dict, Optional, Union

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, content=b"", on_close: Optional[Callable] = None):
        self.status_code = status_code
        self._content = content
        self._on_close = on_close
        self.closed = False

    @property
    def content(self):
        return self._content

    @property
    def text(self):
        return self._content.decode("utf-8", errors="replace")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i : i + chunk_size]

    def close(self):
        if not self.closed and self._on_close:
            self._on_close()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


Route = Union[int, bytes, Exception, Callable[[], FakeResponse]]


class FakeSession:
    """
    Maps URLs to canned answers. A route is an int (status, empty body), bytes
    (200 with that body), an exception to raise, or a callable returning a response.
    Tracks how many GET bodies are open at the same time.
    """

    def __init__(self, head_routes: Optional[Dict[str, Route]] = None,
                 get_routes: Optional[Dict[str, Route]] = None, delay: float = 0.0):
        self.head_routes = dict(head_routes or {})
        self.get_routes = dict(get_routes or {})
        self.delay = delay
        self.calls = []
        self.kwargs = []
        self.max_open = 0
        self._open = 0
        self._lock = threading.Lock()

    def _release(self):
        with self._lock:
            self._open -= 1

    def _answer(self, routes, method, url, kwargs=None):
        with self._lock:
            self.calls.append((method, url))
            self.kwargs.append((method, url, kwargs or {}))
        if url not in routes:
            return FakeResponse(404)
        route = routes[url]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route()
        if isinstance(route, int):
            return FakeResponse(route)
        with self._lock:
            self._open += 1
            self.max_open = max(self.max_open, self._open)
        if self.delay:
            time.sleep(self.delay)
        return FakeResponse(200, route, on_close=self._release)

    def head(self, url, **kwargs):
        return self._answer(self.head_routes, "HEAD", url, kwargs)

    def get(self, url, **kwargs):
        return self._answer(self.get_routes, "GET", url, kwargs)

    def urls(self, method):
        return [u for m, u in self.calls if m == method]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None


def listing_xml(*blobs, next_marker=""):
    items = "".join(
        f"<Blob><Name>{name}</Name><Url>{url}</Url></Blob>" for name, url in blobs
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<EnumerationResults ContainerName="c"><Blobs>{items}</Blobs>'
        f"<NextMarker>{next_marker}</NextMarker></EnumerationResults>"
    ).encode("utf-8")


@pytest.fixture
def fake_session():
    return FakeSession()
