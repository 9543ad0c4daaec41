"""Tests for the obscuring handler.

Drives a small FastAPI app through ObscuringHandler with TestClient.
Each test builds its own store, so nothing leaks between tests.
"""

from __future__ import annotations

import asyncio
import hashlib

import pytest
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from starlette.datastructures import URL

from obscurer.errors import HEADER_FAILURE_MESSAGES, REMOVAL_FAILURE_MESSAGE, StoreError
from obscurer.handler import ObscuringHandler
from obscurer.store import MemoryStore
from obscurer.transform import MD5Obscurer


def _hashed(path: str) -> str:
    return "/" + hashlib.md5(path.lstrip("/").encode()).hexdigest()


class FailingPutStore(MemoryStore):
    def put(self, obscured, original):
        raise StoreError("whoa")


class FailingRemoveStore(MemoryStore):
    def remove(self, obscured):
        raise StoreError("whoa")


def _make_inner(seen: list[str], headers: dict[str, str] | None = None) -> FastAPI:
    """Inner app with one route that records the path it was asked for."""
    inner = FastAPI()

    @inner.get("/this/is/the/way")
    def the_way(request: Request):
        seen.append(request.url.path)
        return PlainTextResponse("we made it!", headers=headers)

    @inner.get("/explode")
    def explode():
        raise RuntimeError("inner failure")

    return inner


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def obscurer():
    return MD5Obscurer()


def _client(inner, obscurer, store) -> TestClient:
    return TestClient(ObscuringHandler(inner, obscurer=obscurer, store=store))


class TestDeobscure:
    def test_unobscured_request(self, obscurer, store):
        seen: list[str] = []
        client = _client(_make_inner(seen), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 200
        assert r.text == "we made it!"
        assert seen == ["/this/is/the/way"]
        assert store.size() == 0

    def test_obscured_request(self, obscurer, store):
        seen: list[str] = []
        client = _client(_make_inner(seen), obscurer, store)
        original = URL("http://testserver/this/is/the/way")
        obscured = obscurer.obscure(original)
        store.load({str(obscured): str(original)})

        r = client.get(str(obscured))
        assert r.status_code == 200
        assert seen == ["/this/is/the/way"]
        assert store.size() == 1
        assert store.get(obscured) == original

    def test_obscured_request_keeps_query(self, obscurer, store):
        inner = FastAPI()

        @inner.get("/items")
        def items(page: int):
            return {"page": page}

        client = _client(inner, obscurer, store)
        store.put(URL(_hashed("/items")), URL("/items"))

        r = client.get(_hashed("/items") + "?page=3")
        assert r.status_code == 200
        assert r.json() == {"page": 3}

    def test_unknown_obscured_path_is_404(self, obscurer, store):
        client = _client(_make_inner([]), obscurer, store)
        obscured = obscurer.obscure(URL("http://testserver/this/is/not/the/way"))

        r = client.get(str(obscured))
        assert r.status_code == 404
        assert r.json() == {"detail": "Not Found"}
        assert store.size() == 0

    def test_non_http_scope_passes_through(self, obscurer, store):
        calls = []

        async def inner(scope, receive, send):
            calls.append(scope["type"])

        handler = ObscuringHandler(inner, obscurer=obscurer, store=store)
        asyncio.run(handler({"type": "lifespan"}, None, None))
        assert calls == ["lifespan"]


class TestEviction:
    def test_404_evicts_mapping(self, obscurer, store):
        client = _client(_make_inner([]), obscurer, store)
        original = URL("http://testserver/gone")
        obscured = obscurer.obscure(original)
        store.put(obscured, original)

        r = client.get(str(obscured))
        assert r.status_code == 404
        assert store.get(obscured) is None
        assert store.size() == 0

    def test_404_leaves_other_mappings(self, obscurer, store):
        client = _client(_make_inner([]), obscurer, store)
        kept = URL("http://testserver/this/is/the/way")
        gone = URL("http://testserver/gone")
        store.put(obscurer.obscure(kept), kept)
        store.put(obscurer.obscure(gone), gone)

        r = client.get(str(obscurer.obscure(gone)))
        assert r.status_code == 404
        assert store.size() == 1
        assert store.get(obscurer.obscure(kept)) == kept

    def test_removal_failure(self, obscurer):
        client = _client(_make_inner([]), obscurer, FailingRemoveStore())

        r = client.get(_hashed("/this/is/not/the/way"))
        assert r.status_code == 500
        assert r.text == REMOVAL_FAILURE_MESSAGE


class TestLocationHeaders:
    @pytest.mark.parametrize("header", ["Location", "Content-Location"])
    def test_header_obscured(self, obscurer, store, header):
        client = _client(_make_inner([], {header: "/hey/der"}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 200
        assert r.headers[header] == _hashed("hey/der")
        assert store.size() == 1
        assert store.get(URL(_hashed("hey/der"))) == URL("/hey/der")
        assert r.text == "we made it!"

    def test_absolute_location_keeps_other_components(self, obscurer, store):
        location = "https://example.com/hey/der?page=2#top"
        client = _client(_make_inner([], {"Location": location}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 200
        assert r.headers["Location"] == f"https://example.com{_hashed('hey/der')}?page=2#top"
        assert str(store.get(URL(r.headers["Location"]))) == location

    @pytest.mark.parametrize("header", ["Location", "Content-Location"])
    def test_invalid_url(self, obscurer, store, header):
        client = _client(_make_inner([], {header: "example.com\foo"}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES[header]
        assert r.headers["content-type"].startswith("text/plain")
        assert header.lower() not in r.headers
        assert store.size() == 0

    @pytest.mark.parametrize("header", ["Location", "Content-Location"])
    def test_put_failure(self, obscurer, header):
        client = _client(_make_inner([], {header: "/hey/der"}), obscurer, FailingPutStore())

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES[header]

    def test_redirect_target_is_served_after_obscuring(self, obscurer, store):
        seen: list[str] = []
        inner = _make_inner(seen)

        @inner.get("/start")
        def start():
            return Response(status_code=303, headers={"Location": "/this/is/the/way"})

        client = _client(inner, obscurer, store)
        r = client.get("/start", follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["Location"] == _hashed("this/is/the/way")

        r = client.get(r.headers["Location"])
        assert r.status_code == 200
        assert seen == ["/this/is/the/way"]


class TestLinkHeader:
    def test_link_obscured(self, obscurer, store):
        client = _client(_make_inner([], {"Link": "</hey/der>"}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 200
        assert r.headers["Link"] == f"<{_hashed('hey/der')}>"
        assert store.size() == 1

    def test_link_parameters_preserved(self, obscurer, store):
        link = "</hey/der>; rel='next'"
        client = _client(_make_inner([], {"Link": link}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.headers["Link"] == f"<{_hashed('hey/der')}>; rel='next'"

    def test_invalid_url(self, obscurer, store):
        link = "<example.com\foo>; rel='next'"
        client = _client(_make_inner([], {"Link": link}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES["Link"]

    def test_missing_angle_brackets(self, obscurer, store):
        client = _client(_make_inner([], {"Link": "/hey/der; rel='next'"}), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES["Link"]

    def test_put_failure(self, obscurer):
        link = "</hey/der>; rel='next'"
        client = _client(_make_inner([], {"Link": link}), obscurer, FailingPutStore())

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES["Link"]


class TestRepeatedLinks:
    def test_all_link_fields_kept(self, obscurer, store):
        inner = FastAPI()

        @inner.get("/pages")
        def pages():
            response = PlainTextResponse("page 2")
            response.headers.append("Link", "</a>; rel=next")
            response.headers.append("Link", "</b>; rel=prev")
            return response

        client = _client(inner, obscurer, store)
        r = client.get("/pages")
        assert r.status_code == 200
        assert r.headers.get_list("link") == [
            f"<{_hashed('a')}>; rel=next",
            f"<{_hashed('b')}>; rel=prev",
        ]
        assert store.size() == 2


class TestPrecedence:
    def test_all_headers_obscured(self, obscurer, store):
        headers = {
            "Location": "/a",
            "Content-Location": "/b",
            "Link": "</c>; rel='next'",
        }
        client = _client(_make_inner([], headers), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 200
        assert r.headers["Location"] == _hashed("a")
        assert r.headers["Content-Location"] == _hashed("b")
        assert r.headers["Link"] == f"<{_hashed('c')}>; rel='next'"
        assert store.size() == 3

    def test_first_failure_wins(self, obscurer, store):
        headers = {
            "Location": "example.com\foo",
            "Link": "<example.com\foo>",
        }
        client = _client(_make_inner([], headers), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES["Location"]

    def test_failure_stops_later_headers(self, obscurer, store):
        headers = {
            "Content-Location": "example.com\foo",
            "Link": "</c>",
        }
        client = _client(_make_inner([], headers), obscurer, store)

        r = client.get("/this/is/the/way")
        assert r.status_code == 500
        assert r.text == HEADER_FAILURE_MESSAGES["Content-Location"]
        assert store.size() == 0


class TestInnerFailure:
    def test_inner_exception_propagates(self, obscurer, store):
        client = _client(_make_inner([]), obscurer, store)
        with pytest.raises(RuntimeError, match="inner failure"):
            client.get("/explode")


class TestDefaults:
    def test_handlers_do_not_share_state(self):
        a = ObscuringHandler(FastAPI())
        b = ObscuringHandler(FastAPI())
        assert a.store is not b.store
        assert a.obscurer is not b.obscurer
        assert isinstance(a.obscurer, MD5Obscurer)

    def test_add_middleware(self, obscurer, store):
        seen: list[str] = []
        app = _make_inner(seen, {"Location": "/hey/der"})
        app.add_middleware(ObscuringHandler, obscurer=obscurer, store=store)
        client = TestClient(app)

        r = client.get("/this/is/the/way")
        assert r.headers["Location"] == _hashed("hey/der")

        r = client.get(_hashed("this/is/the/way"))
        assert r.status_code == 404

        store.put(URL(_hashed("this/is/the/way")), URL("/this/is/the/way"))
        r = client.get(_hashed("this/is/the/way"))
        assert r.status_code == 200
        assert seen == ["/this/is/the/way", "/this/is/the/way"]
