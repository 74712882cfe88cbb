"""Tests for core/client.py -- BookStackClient over a mocked requests.Session.

Covers:
- URL construction, session headers, SSL and retry adapter wiring
- thread-local sessions
- HTTP status -> BookStackError subclass mapping
- connection failures
- offset pagination in the list_all_* helpers
- request payloads for create/update/delete/export/search
"""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from bookstack_sync.config import Config
from bookstack_sync.core.client import BookStackClient
from bookstack_sync.core.enums import EntityType, ExportFormat
from bookstack_sync.exceptions import (
    AuthenticationFailed,
    BookStackError,
    ConnectionFailed,
    NotFound,
    RateLimited,
    ServerError,
    ValidationFailed,
)

REQUEST = "bookstack_sync.core.client.requests.Session.request"


def _response(status=200, payload=None, text="", headers=None, content=b""):
    response = Mock()
    response.status_code = status
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    response.text = text
    response.content = content
    response.headers = headers or {}
    response.encoding = "utf-8"
    return response


def _page(page_id, name="Page", **extra):
    return {"id": page_id, "name": name, "book_id": 1, "chapter_id": 0, **extra}


# ---------------------------------------------------------------------------
# Construction and session
# ---------------------------------------------------------------------------


def test_api_url_construction(mock_config):
    client = BookStackClient(mock_config)
    assert client.api_url == "https://wiki.example.com/api/"
    assert client.base_url == "https://wiki.example.com"


def test_api_url_with_trailing_slash():
    config = Config(url="https://wiki.example.com/", token_id="a", token_secret="b")
    assert BookStackClient(config).api_url == "https://wiki.example.com/api/"


def test_session_headers_and_ssl(mock_config):
    """Token auth header and JSON accept header are set on the session."""
    session = BookStackClient(mock_config).session
    assert session.headers["Authorization"] == "Token test-id:test-secret"
    assert session.headers["Accept"] == "application/json"
    assert session.verify is True


def test_session_insecure():
    config = Config(
        url="https://wiki.example.com",
        token_id="a",
        token_secret="b",
        verify_ssl=False,
    )
    assert BookStackClient(config).session.verify is False


def test_retry_adapter_mounted(mock_config):
    adapter = BookStackClient(mock_config).session.get_adapter("https://wiki.example.com")
    assert adapter.max_retries.total == 3
    assert 503 in adapter.max_retries.status_forcelist
    assert "POST" not in adapter.max_retries.allowed_methods


def test_no_retries_when_disabled():
    config = Config(
        url="https://wiki.example.com", token_id="a", token_secret="b", max_retries=0
    )
    adapter = BookStackClient(config).session.get_adapter("https://wiki.example.com")
    assert adapter.max_retries.total == 0


def test_session_is_thread_local(mock_config):
    """Each thread gets its own Session; a thread reuses its own."""
    client = BookStackClient(mock_config)
    main_session = client.session
    assert client.session is main_session

    other = []
    thread = threading.Thread(target=lambda: other.append(client.session))
    thread.start()
    thread.join()

    assert other[0] is not main_session


# ---------------------------------------------------------------------------
# Transport and error classification
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_get_book_success(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": 1, "name": "Handbook"})

    book = BookStackClient(mock_config).get_book(1)

    assert book.id == 1
    assert book.name == "Handbook"
    args, kwargs = mock_request.call_args
    assert args == ("GET", "https://wiki.example.com/api/books/1")
    assert kwargs["timeout"] == (10, 30)


@patch(REQUEST)
def test_404_raises_not_found(mock_request, mock_config):
    mock_request.return_value = _response(404, payload={"error": {"message": "nope"}})

    with pytest.raises(NotFound) as exc_info:
        BookStackClient(mock_config).get_book(7)

    assert exc_info.value.resource == "book"
    assert exc_info.value.resource_id == 7
    assert exc_info.value.status_code == 404


@patch(REQUEST)
def test_401_raises_authentication_failed(mock_request, mock_config):
    mock_request.return_value = _response(401, payload={})
    with pytest.raises(AuthenticationFailed):
        BookStackClient(mock_config).list_books()


@patch(REQUEST)
def test_422_raises_validation_failed(mock_request, mock_config):
    error = {"message": "The given data was invalid.", "validation": {"name": ["required"]}}
    mock_request.return_value = _response(422, payload={"error": error})

    with pytest.raises(ValidationFailed) as exc_info:
        BookStackClient(mock_config).update_book(1, name="x")

    assert exc_info.value.errors == error


@patch(REQUEST)
def test_429_carries_retry_after(mock_request, mock_config):
    mock_request.return_value = _response(429, payload={}, headers={"Retry-After": "5"})

    with pytest.raises(RateLimited) as exc_info:
        BookStackClient(mock_config).list_pages()

    assert exc_info.value.retry_after == 5.0


@patch(REQUEST)
def test_429_with_unparseable_retry_after(mock_request, mock_config):
    mock_request.return_value = _response(429, payload={}, headers={"Retry-After": "soon"})

    with pytest.raises(RateLimited) as exc_info:
        BookStackClient(mock_config).list_pages()

    assert exc_info.value.retry_after is None


@patch(REQUEST)
def test_5xx_raises_server_error_with_text_body(mock_request, mock_config):
    mock_request.return_value = _response(503, text="maintenance")

    with pytest.raises(ServerError) as exc_info:
        BookStackClient(mock_config).get_page(3)

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "maintenance"


@patch(REQUEST)
def test_other_4xx_raises_base_error(mock_request, mock_config):
    mock_request.return_value = _response(
        403, payload={"error": {"message": "Permission denied"}}
    )

    with pytest.raises(BookStackError) as exc_info:
        BookStackClient(mock_config).get_page(3)

    assert type(exc_info.value) is BookStackError
    assert exc_info.value.status_code == 403
    assert "Permission denied" in str(exc_info.value)


@pytest.mark.parametrize(
    "error", [requests.ConnectionError("refused"), requests.Timeout("slow")]
)
def test_network_failure_raises_connection_failed(error, mock_config):
    with patch(REQUEST, side_effect=error):
        with pytest.raises(ConnectionFailed, match="wiki.example.com"):
            BookStackClient(mock_config).get_book(1)


# ---------------------------------------------------------------------------
# Listing and pagination
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_list_all_pages_follows_offset(mock_request, mock_config):
    mock_request.side_effect = [
        _response(payload={"data": [_page(1), _page(2)], "total": 3}),
        _response(payload={"data": [_page(3)], "total": 3}),
    ]

    pages = BookStackClient(mock_config).list_all_pages(page_size=2, book_id=1)

    assert [p.id for p in pages] == [1, 2, 3]
    assert mock_request.call_count == 2
    first, second = (c.kwargs["params"] for c in mock_request.call_args_list)
    assert first == {"count": 2, "offset": 0, "filter[book_id]": 1}
    assert second["offset"] == 2


@patch(REQUEST)
def test_list_all_stops_on_exact_total(mock_request, mock_config):
    mock_request.return_value = _response(
        payload={"data": [{"id": 1}, {"id": 2}], "total": 2}
    )

    books = BookStackClient(mock_config).list_all_books(page_size=2)

    assert len(books) == 2
    assert mock_request.call_count == 1


def _capped_listing(items, cap=500):
    """Serve *items* like BookStack: at most *cap* per call, real total."""

    def serve(method, url, params=None, **kwargs):
        start = params["offset"]
        size = min(params["count"], cap)
        return _response(
            payload={"data": items[start : start + size], "total": len(items)}
        )

    return serve


@patch(REQUEST)
def test_list_all_continues_past_server_cap(mock_request, mock_config):
    mock_request.side_effect = _capped_listing([_page(i) for i in range(1, 1201)])

    pages = BookStackClient(mock_config).list_all_pages(page_size=5000)

    assert [p.id for p in pages] == list(range(1, 1201))
    assert mock_request.call_count == 3
    counts = [c.kwargs["params"]["count"] for c in mock_request.call_args_list]
    assert counts == [500, 500, 500]


@patch(REQUEST)
def test_list_all_short_batches_below_total(mock_request, mock_config):
    mock_request.side_effect = _capped_listing(
        [{"id": i} for i in range(1, 8)], cap=3
    )

    books = BookStackClient(mock_config).list_all_books(page_size=5)

    assert [b.id for b in books] == list(range(1, 8))


@patch(REQUEST)
def test_list_all_without_total_stops_on_short_batch(mock_request, mock_config):
    mock_request.side_effect = [
        _response(payload={"data": [{"id": 1}, {"id": 2}]}),
        _response(payload={"data": [{"id": 3}]}),
    ]

    books = BookStackClient(mock_config).list_all_books(page_size=2)

    assert [b.id for b in books] == [1, 2, 3]
    assert mock_request.call_count == 2


@patch(REQUEST)
def test_list_all_stops_on_empty_batch(mock_request, mock_config):
    mock_request.return_value = _response(payload={"data": [], "total": 10})

    assert BookStackClient(mock_config).list_all_books() == []
    assert mock_request.call_count == 1


@patch(REQUEST)
def test_list_chapters_filter(mock_request, mock_config):
    mock_request.return_value = _response(payload={"data": [{"id": 9}], "total": 1})

    chapters = BookStackClient(mock_config).list_chapters(book_id=4)

    assert chapters[0].id == 9
    assert mock_request.call_args.kwargs["params"]["filter[book_id]"] == 4
    assert mock_request.call_args.args[1].endswith("/api/chapters")


@patch(REQUEST)
def test_validate_connection_returns_total(mock_request, mock_config):
    mock_request.return_value = _response(payload={"data": [{"id": 1}], "total": 12})
    assert BookStackClient(mock_config).validate_connection() == 12


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_create_page_payload(mock_request, mock_config):
    mock_request.return_value = _response(payload=_page(10, "Intro", chapter_id=5))

    page = BookStackClient(mock_config).create_page(1, "Intro", "# Intro", chapter_id=5)

    assert page.id == 10
    assert page.chapter_id == 5
    args, kwargs = mock_request.call_args
    assert args[0] == "POST"
    assert kwargs["json"] == {
        "book_id": 1,
        "name": "Intro",
        "markdown": "# Intro",
        "chapter_id": 5,
    }


@patch(REQUEST)
def test_create_page_without_chapter_or_markdown(mock_request, mock_config):
    mock_request.return_value = _response(payload=_page(10))

    BookStackClient(mock_config).create_page(1, "Intro", "<p>x</p>", is_markdown=False)

    assert mock_request.call_args.kwargs["json"] == {
        "book_id": 1,
        "name": "Intro",
        "html": "<p>x</p>",
    }


@pytest.mark.parametrize(
    "name, content, message",
    [("  ", "body", "Invalid page name"), ("Intro", "", "Invalid content")],
)
@patch(REQUEST)
def test_create_page_validates_locally(mock_request, name, content, message, mock_config):
    with pytest.raises(ValueError, match=message):
        BookStackClient(mock_config).create_page(1, name, content)
    mock_request.assert_not_called()


@patch(REQUEST)
def test_update_page_sends_only_given_fields(mock_request, mock_config):
    mock_request.return_value = _response(payload=_page(4, "Renamed"))

    BookStackClient(mock_config).update_page(4, name="Renamed")

    args, kwargs = mock_request.call_args
    assert args == ("PUT", "https://wiki.example.com/api/pages/4")
    assert kwargs["json"] == {"name": "Renamed"}


@patch(REQUEST)
def test_update_missing_page_raises_not_found(mock_request, mock_config):
    mock_request.return_value = _response(404, payload={})

    with pytest.raises(NotFound) as exc_info:
        BookStackClient(mock_config).update_page(99, content="# x")

    assert exc_info.value.resource == "page"


@patch(REQUEST)
def test_create_chapter_rejects_long_name(mock_request, mock_config):
    with pytest.raises(ValueError, match="255"):
        BookStackClient(mock_config).create_chapter(1, "x" * 256)
    mock_request.assert_not_called()


@patch(REQUEST)
def test_create_shelf_with_books(mock_request, mock_config):
    mock_request.return_value = _response(payload={"id": 2, "name": "Docs"})

    BookStackClient(mock_config).create_shelf("Docs", book_ids=[1, 3])

    assert mock_request.call_args.kwargs["json"] == {"name": "Docs", "books": [1, 3]}


@patch(REQUEST)
def test_delete_page(mock_request, mock_config):
    mock_request.return_value = _response(204, text="")

    assert BookStackClient(mock_config).delete_page(8) is True
    assert mock_request.call_args.args == ("DELETE", "https://wiki.example.com/api/pages/8")


# ---------------------------------------------------------------------------
# Export and search
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_export_page_markdown(mock_request, mock_config):
    mock_request.return_value = _response(text="# Exported\n")

    content = BookStackClient(mock_config).export_page(5)

    assert content == "# Exported\n"
    assert mock_request.call_args.args[1].endswith("/api/pages/5/export/markdown")


@patch(REQUEST)
def test_export_book_pdf_is_bytes(mock_request, mock_config):
    mock_request.return_value = _response(content=b"%PDF-1.7")

    content = BookStackClient(mock_config).export_book(1, ExportFormat.PDF)

    assert content == b"%PDF-1.7"


@patch(REQUEST)
def test_export_missing_chapter(mock_request, mock_config):
    mock_request.return_value = _response(404, payload={})

    with pytest.raises(NotFound) as exc_info:
        BookStackClient(mock_config).export_chapter(6)

    assert exc_info.value.resource == "chapter"
    assert exc_info.value.resource_id == 6


@patch(REQUEST)
def test_search(mock_request, mock_config):
    mock_request.return_value = _response(
        payload={
            "data": [
                {
                    "id": 3,
                    "name": "Intro",
                    "type": "page",
                    "preview_html": {"content": "<strong>Intro</strong>"},
                    "book_id": 1,
                }
            ],
            "total": 1,
        }
    )

    results = BookStackClient(mock_config).search("intro", count=5)

    assert results[0].type == EntityType.PAGE
    assert results[0].preview == "<strong>Intro</strong>"
    assert mock_request.call_args.kwargs["params"] == {
        "query": "intro",
        "count": 5,
        "offset": 0,
    }
