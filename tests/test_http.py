import http.client
import io
import urllib.error
import urllib.request

import pytest

from storyforest.catalog import googlebooks_service, openlibrary_service
from storyforest.catalog.http import build_url, http_get_json


URL = "https://openlibrary.org/search.json?q=moon"


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class TruncatedResponse(FakeResponse):
    def read(self, *args):
        raise http.client.IncompleteRead(b"{")


@pytest.fixture
def urlopen(monkeypatch):
    """Install a fake ``urlopen``; set ``.result`` to bytes or an exception."""

    class Opener:
        result = b"{}"
        requests = []

        def __call__(self, request, timeout=None):
            self.requests.append((request, timeout))
            if isinstance(self.result, BaseException):
                raise self.result
            if isinstance(self.result, FakeResponse):
                return self.result
            return FakeResponse(self.result)

    opener = Opener()
    opener.requests = []
    monkeypatch.setattr(urllib.request, "urlopen", opener)
    return opener


def _http_error(code):
    return urllib.error.HTTPError(URL, code, "error", {}, None)


def test_returns_parsed_json(urlopen):
    urlopen.result = b'{"docs": [{"title": "Goodnight Moon"}]}'
    assert http_get_json(URL, timeout=3) == {"docs": [{"title": "Goodnight Moon"}]}

    request, timeout = urlopen.requests[0]
    assert timeout == 3
    assert request.get_header("User-agent").startswith("StoryForest/")
    assert request.get_header("Accept") == "application/json"


def test_timeout_defaults_to_settings(urlopen, settings):
    settings.http_timeout = 7.5
    http_get_json(URL)
    assert urlopen.requests[0][1] == 7.5


@pytest.mark.parametrize(
    "failure",
    [
        _http_error(404),
        _http_error(503),
        urllib.error.URLError("name resolution failed"),
        TimeoutError("timed out"),
        http.client.BadStatusLine("garbage"),
        http.client.RemoteDisconnected("closed"),
    ],
)
def test_network_failures_return_none(urlopen, failure):
    urlopen.result = failure
    assert http_get_json(URL) is None


def test_truncated_body_returns_none(urlopen):
    urlopen.result = TruncatedResponse(b"")
    assert http_get_json(URL) is None


@pytest.mark.parametrize("body", [b"<html>oops</html>", b"", b"[1, 2, 3]", b'"moon"'])
def test_unusable_bodies_return_none(urlopen, body):
    urlopen.result = body
    assert http_get_json(URL) is None


def test_build_url_drops_none_params():
    assert build_url("https://x.test/a") == "https://x.test/a"
    url = build_url("https://x.test/a", {"q": "goodnight moon", "key": None, "maxResults": 5})
    assert url == "https://x.test/a?q=goodnight+moon&maxResults=5"


def test_google_request_omits_key_without_api_key(http_responses, settings):
    settings.google_books_api_key = None
    googlebooks_service.search_books_google("moon")
    assert "key=" not in http_responses.calls[0]


@pytest.mark.parametrize(
    "failure",
    [http.client.BadStatusLine("garbage"), TruncatedResponse(b"")],
)
def test_search_endpoint_survives_broken_upstream(client, urlopen, monkeypatch, failure):
    monkeypatch.setattr(openlibrary_service, "http_get_json", http_get_json)
    monkeypatch.setattr(googlebooks_service, "http_get_json", http_get_json)
    urlopen.result = failure

    resp = client.get("/api/public/books/search", params={"q": "rabbit"})

    assert resp.status_code == 200
    assert [b["title"] for b in resp.json()] == ["The Rabbit Listened"]
    assert len(urlopen.requests) == 2
