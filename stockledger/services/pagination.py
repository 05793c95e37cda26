"""Forward-only keyset pagination with opaque cursors.

A cursor encodes the sort key of the last row of the previous page. The next
page is every row strictly after that key in the query's order, so rows
inserted while a caller is paging never shift the window. Callers must treat
the token as opaque; going back is done by remembering earlier cursors
(see ``PageNavigator``), not by a backward query.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query

from stockledger.config import settings
from stockledger.errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class SortKey:
    column: Any  # mapped attribute, e.g. Item.name_lowercase
    descending: bool = False


@dataclass
class Page(Generic[T]):
    items: list[T]
    next_cursor: str | None = None

    @property
    def has_next(self) -> bool:
        return self.next_cursor is not None


def _dump_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"dt": value.isoformat()}
    if isinstance(value, date):
        return {"d": value.isoformat()}
    if hasattr(value, "value"):  # str enums
        return value.value
    return value


def _load_value(value: Any) -> Any:
    if isinstance(value, dict):
        if "dt" in value:
            return datetime.fromisoformat(value["dt"])
        if "d" in value:
            return date.fromisoformat(value["d"])
        raise ValueError("unknown cursor value")
    return value


def encode_cursor(values: list[Any]) -> str:
    raw = json.dumps([_dump_value(v) for v in values], separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(token: str, expected_len: int) -> list[Any]:
    try:
        padded = token + "=" * (-len(token) % 4)
        values = json.loads(base64.urlsafe_b64decode(padded.encode()))
        if not isinstance(values, list) or len(values) != expected_len:
            raise ValueError("cursor shape")
        return [_load_value(v) for v in values]
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise ValidationError("Invalid page cursor") from e


def check_page_size(page_size: int) -> None:
    if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"page_size must be between 1 and {settings.MAX_PAGE_SIZE}")


def _after(keys: list[SortKey], values: list[Any]):
    """Rows strictly after ``values`` in ``keys`` order (lexicographic over the keys)."""
    clauses = []
    for i, key in enumerate(keys):
        equal_prefix = [k.column == v for k, v in zip(keys[:i], values[:i])]
        step = key.column < values[i] if key.descending else key.column > values[i]
        clauses.append(and_(*equal_prefix, step))
    return or_(*clauses)


def paginate(query: Query, keys: list[SortKey], page_size: int, cursor: str | None = None) -> Page:
    """Return one page of ``query``. ``keys`` must end with a unique column."""
    check_page_size(page_size)
    if cursor:
        query = query.filter(_after(keys, decode_cursor(cursor, len(keys))))
    query = query.order_by(*[k.column.desc() if k.descending else k.column.asc() for k in keys])
    rows = query.limit(page_size).all()

    next_cursor = None
    if len(rows) == page_size:
        last = rows[-1]
        next_cursor = encode_cursor([getattr(last, k.column.key) for k in keys])
    return Page(items=rows, next_cursor=next_cursor)


@dataclass
class PageNavigator(Generic[T]):
    """Caller-side page stack: cursors[n] is the token that opens page n + 1."""

    fetch: Callable[[int, str | None], Page[T]]
    page_size: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)
    page_number: int = 0
    cursors: list[str | None] = field(default_factory=lambda: [None])
    current: Page[T] | None = None

    def _load(self, page_number: int) -> Page[T]:
        page = self.fetch(self.page_size, self.cursors[page_number - 1])
        if len(self.cursors) <= page_number:
            self.cursors.append(page.next_cursor)
        else:
            self.cursors[page_number] = page.next_cursor
        self.page_number = page_number
        self.current = page
        return page

    @property
    def has_next(self) -> bool:
        return self.current is not None and self.current.has_next

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    def first(self) -> Page[T]:
        return self._load(1)

    def next(self) -> Page[T]:
        if self.current is None:
            return self.first()
        if not self.has_next:
            raise ValidationError("No further pages")
        return self._load(self.page_number + 1)

    def previous(self) -> Page[T]:
        if not self.has_previous:
            raise ValidationError("Already on the first page")
        return self._load(self.page_number - 1)
