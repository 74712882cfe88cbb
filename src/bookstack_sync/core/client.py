import logging
import threading
from typing import Any, Callable, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import Config
from ..exceptions import (
    AuthenticationFailed,
    BookStackError,
    ConnectionFailed,
    NotFound,
    RateLimited,
    ServerError,
    ValidationFailed,
)
from ..validators import validate_content, validate_name, validate_page_name
from .enums import EntityType, ExportFormat
from .models import Book, Chapter, Page, SearchResult, Shelf

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retries only apply to requests that are safe to repeat.
_RETRY_METHODS = frozenset({"GET", "PUT", "DELETE"})
_RETRY_STATUSES = (429, 502, 503, 504)

# Listing endpoints silently cap ``count`` at this value.
MAX_PAGE_SIZE = 500


class BookStackClient:
    """Thin wrapper over the BookStack REST API.

    Every remote failure is raised as a ``BookStackError`` subclass so the
    sync pipelines can tell an authentication problem from a missing
    entity or a transient server fault.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.api_url = self._get_api_url()

    @property
    def session(self) -> requests.Session:
        """Session bound to the current thread."""
        return self._get_session()

    @property
    def base_url(self) -> str:
        return self.config.url.rstrip("/")

    def _get_api_url(self) -> str:
        return f"{self.config.url.rstrip('/')}/api/"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = self.config.verify_ssl
        session.headers.update(
            {
                "Authorization": f"Token {self.config.token_id}:{self.config.token_secret}",
                "Accept": "application/json",
            }
        )
        if self.config.max_retries > 0:
            retry = Retry(
                total=self.config.max_retries,
                backoff_factor=0.5,
                status_forcelist=_RETRY_STATUSES,
                allowed_methods=_RETRY_METHODS,
                respect_retry_after_header=True,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        resource: str | None = None,
        resource_id: int | str | None = None,
    ) -> requests.Response:
        """Send one request and classify any failure.

        Raises:
            ConnectionFailed: The server could not be reached.
            AuthenticationFailed, NotFound, ValidationFailed, RateLimited,
            ServerError, BookStackError: Non-2xx responses.
        """
        url = self.api_url + endpoint
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=json,
                timeout=(10, self.config.timeout),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise ConnectionFailed(self.base_url) from exc

        if response.status_code >= 400:
            raise self._classify_error(response, resource, resource_id)
        return response

    def _classify_error(
        self,
        response: requests.Response,
        resource: str | None,
        resource_id: int | str | None,
    ) -> BookStackError:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = response.text or None

        match status:
            case 401:
                return AuthenticationFailed()
            case 404:
                return NotFound(
                    resource or "resource",
                    resource_id if resource_id is not None else "unknown",
                )
            case 422:
                errors = body.get("error", body) if isinstance(body, dict) else body
                return ValidationFailed(errors or {})
            case 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    return RateLimited(
                        float(retry_after) if retry_after else None
                    )
                except ValueError:
                    return RateLimited()
            case _ if status >= 500:
                return ServerError(status, body)
            case _:
                message = f"BookStack API request failed (HTTP {status})"
                if isinstance(body, dict) and isinstance(body.get("error"), dict):
                    detail = body["error"].get("message")
                    if detail:
                        message += f": {detail}"
                return BookStackError(message, status_code=status, response=body)

    def _get_json(self, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        response = self._request("GET", endpoint, **kwargs)
        return response.json() or {}

    def _list(
        self,
        entity: EntityType,
        factory: Callable[[dict[str, Any]], T],
        count: int,
        offset: int,
        filters: dict[str, Any] | None = None,
    ) -> tuple[list[T], int]:
        params: dict[str, Any] = {"count": count, "offset": offset}
        for key, value in (filters or {}).items():
            params[f"filter[{key}]"] = value
        data = self._get_json(entity.api_endpoint, params=params)
        items = [factory(item) for item in data.get("data") or []]
        return items, int(data.get("total") or 0)

    def _list_all(
        self,
        entity: EntityType,
        factory: Callable[[dict[str, Any]], T],
        page_size: int,
        filters: dict[str, Any] | None = None,
    ) -> list[T]:
        """Follow ``offset`` until the listing is exhausted.

        The reported ``total`` decides when to stop; a batch shorter than
        requested only ends the listing when the server reports no total.
        """
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        results: list[T] = []
        offset = 0
        while True:
            batch, total = self._list(
                entity, factory, page_size, offset, filters
            )
            if not batch:
                break
            results.extend(batch)
            offset += len(batch)
            if total:
                if offset >= total:
                    break
            elif len(batch) < page_size:
                break
        logger.debug(
            "Listed %d %s (page size %d)",
            len(results),
            entity.api_endpoint,
            page_size,
        )
        return results

    def _export(
        self, entity: EntityType, entity_id: int, fmt: ExportFormat
    ) -> str | bytes:
        response = self._request(
            "GET",
            f"{entity.api_endpoint}/{entity_id}/export/{fmt.value}",
            resource=entity.singular,
            resource_id=entity_id,
        )
        if fmt.is_binary:
            return response.content
        response.encoding = response.encoding or "utf-8"
        return response.text

    @staticmethod
    def _check_name(name: str, field_name: str) -> None:
        is_valid, error_msg = validate_name(name, field_name)
        if not is_valid:
            raise ValueError(f"Invalid name: {error_msg}")

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def validate_connection(self) -> int:
        """Validate credentials by listing a single book.

        Returns:
            Total number of books visible to the token.
        """
        _, total = self._list(EntityType.BOOK, Book.from_api, 1, 0)
        return total

    # ------------------------------------------------------------------
    # Shelves
    # ------------------------------------------------------------------

    def list_shelves(self, count: int = 100, offset: int = 0) -> list[Shelf]:
        return self._list(EntityType.SHELF, Shelf.from_api, count, offset)[0]

    def list_all_shelves(self, page_size: int = 500) -> list[Shelf]:
        return self._list_all(EntityType.SHELF, Shelf.from_api, page_size)

    def get_shelf(self, shelf_id: int) -> Shelf:
        return Shelf.from_api(
            self._get_json(
                f"shelves/{shelf_id}", resource="shelf", resource_id=shelf_id
            )
        )

    def create_shelf(
        self,
        name: str,
        description: str | None = None,
        book_ids: list[int] | None = None,
    ) -> Shelf:
        self._check_name(name, "Shelf name")
        data: dict[str, Any] = {"name": name}
        if description is not None:
            data["description"] = description
        if book_ids:
            data["books"] = book_ids
        return Shelf.from_api(
            self._request("POST", "shelves", json=data).json()
        )

    def update_shelf(
        self,
        shelf_id: int,
        name: str | None = None,
        description: str | None = None,
        book_ids: list[int] | None = None,
    ) -> Shelf:
        data = {
            k: v
            for k, v in {
                "name": name,
                "description": description,
                "books": book_ids,
            }.items()
            if v is not None
        }
        return Shelf.from_api(
            self._request(
                "PUT",
                f"shelves/{shelf_id}",
                json=data,
                resource="shelf",
                resource_id=shelf_id,
            ).json()
        )

    def delete_shelf(self, shelf_id: int) -> bool:
        self._request(
            "DELETE",
            f"shelves/{shelf_id}",
            resource="shelf",
            resource_id=shelf_id,
        )
        return True

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def list_books(self, count: int = 100, offset: int = 0) -> list[Book]:
        return self._list(EntityType.BOOK, Book.from_api, count, offset)[0]

    def list_all_books(self, page_size: int = 500) -> list[Book]:
        return self._list_all(EntityType.BOOK, Book.from_api, page_size)

    def get_book(self, book_id: int) -> Book:
        return Book.from_api(
            self._get_json(
                f"books/{book_id}", resource="book", resource_id=book_id
            )
        )

    def create_book(self, name: str, description: str | None = None) -> Book:
        self._check_name(name, "Book name")
        data: dict[str, Any] = {"name": name}
        if description is not None:
            data["description"] = description
        return Book.from_api(self._request("POST", "books", json=data).json())

    def update_book(
        self,
        book_id: int,
        name: str | None = None,
        description: str | None = None,
    ) -> Book:
        data = {
            k: v
            for k, v in {"name": name, "description": description}.items()
            if v is not None
        }
        return Book.from_api(
            self._request(
                "PUT",
                f"books/{book_id}",
                json=data,
                resource="book",
                resource_id=book_id,
            ).json()
        )

    def delete_book(self, book_id: int) -> bool:
        self._request(
            "DELETE", f"books/{book_id}", resource="book", resource_id=book_id
        )
        return True

    def export_book(
        self, book_id: int, fmt: ExportFormat = ExportFormat.MARKDOWN
    ) -> str | bytes:
        return self._export(EntityType.BOOK, book_id, fmt)

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    def list_chapters(
        self, count: int = 100, offset: int = 0, book_id: int | None = None
    ) -> list[Chapter]:
        filters = {"book_id": book_id} if book_id is not None else None
        return self._list(
            EntityType.CHAPTER, Chapter.from_api, count, offset, filters
        )[0]

    def list_all_chapters(
        self, page_size: int = 500, book_id: int | None = None
    ) -> list[Chapter]:
        filters = {"book_id": book_id} if book_id is not None else None
        return self._list_all(
            EntityType.CHAPTER, Chapter.from_api, page_size, filters
        )

    def get_chapter(self, chapter_id: int) -> Chapter:
        return Chapter.from_api(
            self._get_json(
                f"chapters/{chapter_id}",
                resource="chapter",
                resource_id=chapter_id,
            )
        )

    def create_chapter(
        self, book_id: int, name: str, description: str | None = None
    ) -> Chapter:
        self._check_name(name, "Chapter name")
        data: dict[str, Any] = {"book_id": book_id, "name": name}
        if description is not None:
            data["description"] = description
        return Chapter.from_api(
            self._request("POST", "chapters", json=data).json()
        )

    def update_chapter(
        self,
        chapter_id: int,
        name: str | None = None,
        description: str | None = None,
        book_id: int | None = None,
    ) -> Chapter:
        data = {
            k: v
            for k, v in {
                "name": name,
                "description": description,
                "book_id": book_id,
            }.items()
            if v is not None
        }
        return Chapter.from_api(
            self._request(
                "PUT",
                f"chapters/{chapter_id}",
                json=data,
                resource="chapter",
                resource_id=chapter_id,
            ).json()
        )

    def delete_chapter(self, chapter_id: int) -> bool:
        self._request(
            "DELETE",
            f"chapters/{chapter_id}",
            resource="chapter",
            resource_id=chapter_id,
        )
        return True

    def export_chapter(
        self, chapter_id: int, fmt: ExportFormat = ExportFormat.MARKDOWN
    ) -> str | bytes:
        return self._export(EntityType.CHAPTER, chapter_id, fmt)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def list_pages(
        self, count: int = 100, offset: int = 0, book_id: int | None = None
    ) -> list[Page]:
        filters = {"book_id": book_id} if book_id is not None else None
        return self._list(
            EntityType.PAGE, Page.from_api, count, offset, filters
        )[0]

    def list_all_pages(
        self, page_size: int = 500, book_id: int | None = None
    ) -> list[Page]:
        filters = {"book_id": book_id} if book_id is not None else None
        return self._list_all(
            EntityType.PAGE, Page.from_api, page_size, filters
        )

    def get_page(self, page_id: int) -> Page:
        return Page.from_api(
            self._get_json(
                f"pages/{page_id}", resource="page", resource_id=page_id
            )
        )

    def create_page(
        self,
        book_id: int,
        name: str,
        content: str,
        chapter_id: int | None = None,
        is_markdown: bool = True,
    ) -> Page:
        is_valid, error_msg = validate_page_name(name)
        if not is_valid:
            raise ValueError(f"Invalid page name: {error_msg}")

        is_valid, error_msg = validate_content(content)
        if not is_valid:
            raise ValueError(f"Invalid content: {error_msg}")

        data: dict[str, Any] = {"book_id": book_id, "name": name}
        data["markdown" if is_markdown else "html"] = content
        if chapter_id:
            data["chapter_id"] = chapter_id

        return Page.from_api(self._request("POST", "pages", json=data).json())

    def update_page(
        self,
        page_id: int,
        name: str | None = None,
        content: str | None = None,
        is_markdown: bool = True,
    ) -> Page:
        data: dict[str, Any] = {}
        if name is not None:
            is_valid, error_msg = validate_page_name(name)
            if not is_valid:
                raise ValueError(f"Invalid page name: {error_msg}")
            data["name"] = name
        if content is not None:
            is_valid, error_msg = validate_content(content)
            if not is_valid:
                raise ValueError(f"Invalid content: {error_msg}")
            data["markdown" if is_markdown else "html"] = content

        return Page.from_api(
            self._request(
                "PUT",
                f"pages/{page_id}",
                json=data,
                resource="page",
                resource_id=page_id,
            ).json()
        )

    def delete_page(self, page_id: int) -> bool:
        self._request(
            "DELETE", f"pages/{page_id}", resource="page", resource_id=page_id
        )
        return True

    def export_page(
        self, page_id: int, fmt: ExportFormat = ExportFormat.MARKDOWN
    ) -> str | bytes:
        return self._export(EntityType.PAGE, page_id, fmt)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self, query: str, count: int = 100, offset: int = 0
    ) -> list[SearchResult]:
        data = self._get_json(
            "search",
            params={"query": query, "count": count, "offset": offset},
        )
        return [SearchResult.from_api(item) for item in data.get("data") or []]
