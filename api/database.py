"""
File-backed record store for the FastAPI application.

Books and reviews live in memory as ordered lists of dicts and each list is
mirrored to its own JSON file. Every write rewrites the whole file.
"""

import json
import math
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

from api.models import BookCreate, ReviewCreate
from utilities.dates import parse_iso_datetime, to_iso_timestamp, utc_now

logger = structlog.get_logger(__name__)

Record = Dict[str, Any]
PathLike = Union[str, Path]

BOOKS_KEY = "books"
REVIEWS_KEY = "reviews"
TOP_RATED_LIMIT = 10

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_REVIEW_ID = re.compile(r"^review-(\d+)$")


class BookNotFoundError(LookupError):
    """Raised when a review references a book id that is not in the collection."""

    def __init__(self, book_id: str):
        super().__init__(book_id)
        self.book_id = book_id


def load_collection(path: PathLike, key: str) -> List[Record]:
    """
    Load one collection from a JSON file.

    Accepts either ``{key: [...]}`` or a bare list. Anything else, and any
    read or parse failure, yields an empty collection.

    Args:
        path: Collection file
        key: Name of the array inside the JSON object

    Returns:
        List of records in file order
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Failed to load collection", path=str(path), error=str(e))
        return []

    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    if isinstance(payload, list):
        return payload

    logger.warning("Expected array in collection file, defaulting to empty", path=str(path), key=key)
    return []


def save_collection(path: PathLike, key: str, items: List[Record]) -> None:
    """Overwrite the collection file with ``{key: items}``, pretty-printed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({key: items}, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def _field(record: Any, name: str) -> Any:
    """Field of a record, or None when the entry is not a JSON object."""
    return record.get(name) if isinstance(record, dict) else None


def _leading_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def next_book_id(books: List[Record]) -> str:
    """Next book id: one past the largest numeric id, or "1"."""
    numeric_ids = [n for n in (_leading_int(_field(book, "id")) for book in books) if n is not None]
    return str(max(numeric_ids) + 1 if numeric_ids else 1)


def next_review_id(reviews: List[Record]) -> str:
    """Next review id: review-<N> one past the largest existing N, or review-1."""
    numbers = []
    for review in reviews:
        review_id = _field(review, "id")
        if not isinstance(review_id, str):
            continue
        match = _REVIEW_ID.match(review_id)
        if match:
            numbers.append(int(match.group(1)))
    return f"review-{max(numbers) + 1 if numbers else 1}"


def _score(book: Record) -> float:
    def number(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return value

    return number(_field(book, "rating")) * number(_field(book, "reviewCount"))


class RecordStore:
    """
    In-memory books and reviews collections mirrored to JSON files.

    Reads are served from memory. Each write holds the store lock across id
    generation, mutation and persistence, so concurrent writes cannot lose
    records or hand out the same id twice.
    """

    def __init__(
        self,
        books_path: PathLike,
        reviews_path: PathLike,
        books: Optional[List[Record]] = None,
        reviews: Optional[List[Record]] = None
    ):
        self.books_path = Path(books_path)
        self.reviews_path = Path(reviews_path)
        self.books: List[Record] = books if books is not None else []
        self.reviews: List[Record] = reviews if reviews is not None else []
        self._lock = threading.RLock()

    @classmethod
    def from_files(cls, books_path: PathLike, reviews_path: PathLike) -> "RecordStore":
        """Load both collections from disk."""
        store = cls(
            books_path,
            reviews_path,
            books=load_collection(books_path, BOOKS_KEY),
            reviews=load_collection(reviews_path, REVIEWS_KEY),
        )
        logger.info(
            "Collections loaded",
            books=len(store.books),
            reviews=len(store.reviews),
            books_path=str(store.books_path),
            reviews_path=str(store.reviews_path)
        )
        return store

    # Reads

    def list_books(self) -> List[Record]:
        return self.books

    def get_book(self, book_id: str) -> Optional[Record]:
        return next((book for book in self.books if _field(book, "id") == book_id), None)

    def books_published_between(self, start: datetime, end: datetime) -> List[Record]:
        """
        Books whose datePublished falls within [start, end].

        Books with a missing or unparseable datePublished are skipped.
        """
        results = []
        for book in self.books:
            published_at = parse_iso_datetime(_field(book, "datePublished"))
            if published_at is not None and start <= published_at <= end:
                results.append(book)
        return results

    def top_rated(self, limit: int = TOP_RATED_LIMIT) -> List[Record]:
        """Books ordered by rating * reviewCount, highest first."""
        return sorted(self.books, key=_score, reverse=True)[:limit]

    def featured_books(self) -> List[Record]:
        return [book for book in self.books if _field(book, "featured") is True]

    def reviews_for_book(self, book_id: str) -> List[Record]:
        return [review for review in self.reviews if _field(review, "bookId") == book_id]

    # Writes

    def create_book(self, payload: BookCreate) -> Record:
        """
        Append a new book and persist the books collection.

        Args:
            payload: Validated request body

        Returns:
            The stored book record
        """
        with self._lock:
            book = payload.to_book(next_book_id(self.books)).to_record()
            self.books.append(book)
            save_collection(self.books_path, BOOKS_KEY, self.books)

        logger.info("Book created", book_id=book["id"], title=book["title"])
        return book

    def create_review(self, payload: ReviewCreate) -> Record:
        """
        Append a new review, bump the book's reviewCount and persist both collections.

        Args:
            payload: Validated request body

        Returns:
            The stored review record

        Raises:
            BookNotFoundError: If payload.bookId is not a known book; nothing is changed
        """
        with self._lock:
            book = self.get_book(payload.bookId)
            if book is None:
                raise BookNotFoundError(payload.bookId)

            review = payload.to_review(
                next_review_id(self.reviews),
                timestamp=to_iso_timestamp(utc_now())
            ).to_record()
            self.reviews.append(review)
            count = _leading_int(book.get("reviewCount")) or 0
            book["reviewCount"] = count + 1

            save_collection(self.reviews_path, REVIEWS_KEY, self.reviews)
            save_collection(self.books_path, BOOKS_KEY, self.books)

        logger.info("Review created", review_id=review["id"], book_id=review["bookId"])
        return review
