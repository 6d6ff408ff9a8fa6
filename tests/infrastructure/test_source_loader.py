"""Tests for reading ontology documents from content, paths and URLs."""

import httpx
import pytest

from ontocli.domain.errors import SourceLoadError
from ontocli.infrastructure.source_loader import fetch_url, load_source, read_path

DOCUMENT = "<urn:a> <urn:p> <urn:b> ."


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestLoadSource:
    def test_inline_content(self):
        assert load_source(content=DOCUMENT) == DOCUMENT

    def test_path(self, ontology_file):
        assert "cnv:Command" in load_source(path=str(ontology_file))

    @pytest.mark.parametrize("kwargs", [
        {},
        {"content": DOCUMENT, "path": "x.ttl"},
        {"content": DOCUMENT, "url": "https://example.org/a.ttl"},
    ])
    def test_exactly_one_source_is_required(self, kwargs):
        with pytest.raises(SourceLoadError) as exc:
            load_source(**kwargs)
        assert exc.value.to_dict()["stage"] == "load"

    def test_empty_content_counts_as_given(self):
        assert load_source(content="") == ""


class TestReadPath:
    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceLoadError) as exc:
            read_path(str(tmp_path / "missing.ttl"))
        assert exc.value.details["path"].endswith("missing.ttl")

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "latin1.ttl"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(SourceLoadError):
            read_path(str(path))


class TestFetchUrl:
    def test_successful_fetch_sends_turtle_accept_header(self):
        seen = {}

        def handler(request):
            seen["accept"] = request.headers["accept"]
            return httpx.Response(200, text=DOCUMENT)

        with _client(handler) as client:
            assert load_source(url="https://example.org/acme.ttl", client=client) == DOCUMENT
        assert seen["accept"].startswith("text/turtle")

    def test_http_error_status(self):
        with _client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(SourceLoadError) as exc:
                fetch_url("https://example.org/missing.ttl", client=client)
        assert exc.value.details["status_code"] == 404

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(SourceLoadError) as exc:
                fetch_url("https://example.org/acme.ttl", client=client)
        assert exc.value.identifier == "https://example.org/acme.ttl"

    def test_unsupported_scheme(self):
        with pytest.raises(SourceLoadError):
            fetch_url("ftp://example.org/acme.ttl")
