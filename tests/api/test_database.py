"""
Unit tests for the file-backed record store.
Tests loading, saving, id generation and the read queries.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from api.database import (
    BookNotFoundError, RecordStore, load_collection, next_book_id,
    next_review_id, save_collection
)
from api.models import BookCreate, ReviewCreate


def utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestLoadCollection:
    """Test cases for load_collection."""

    def test_keyed_object(self, tmp_path):
        path = tmp_path / "books.json"
        path.write_text(json.dumps({"books": [{"id": "1"}, {"id": "2"}]}))
        assert load_collection(path, "books") == [{"id": "1"}, {"id": "2"}]

    def test_bare_array(self, tmp_path):
        path = tmp_path / "books.json"
        path.write_text(json.dumps([{"id": "7"}]))
        assert load_collection(path, "books") == [{"id": "7"}]

    def test_wrong_shape_defaults_to_empty(self, tmp_path):
        path = tmp_path / "books.json"
        path.write_text(json.dumps({"items": [{"id": "1"}]}))
        assert load_collection(path, "books") == []

    def test_missing_file_defaults_to_empty(self, tmp_path):
        assert load_collection(tmp_path / "nope.json", "books") == []

    def test_invalid_json_defaults_to_empty(self, tmp_path):
        path = tmp_path / "books.json"
        path.write_text("{broken")
        assert load_collection(path, "books") == []


class TestSaveCollection:
    """Test cases for save_collection."""

    def test_pretty_printed_with_trailing_newline(self, tmp_path):
        path = tmp_path / "reviews.json"
        save_collection(path, "reviews", [{"id": "review-1"}])
        assert path.read_text(encoding="utf-8") == '{\n  "reviews": [\n    {\n      "id": "review-1"\n    }\n  ]\n}\n'

    def test_round_trip(self, tmp_path, sample_books):
        path = tmp_path / "nested" / "books.json"
        save_collection(path, "books", sample_books)
        assert load_collection(path, "books") == sample_books

    def test_overwrites_previous_contents(self, tmp_path):
        path = tmp_path / "books.json"
        save_collection(path, "books", [{"id": "1"}, {"id": "2"}])
        save_collection(path, "books", [{"id": "3"}])
        assert load_collection(path, "books") == [{"id": "3"}]


class TestIdGeneration:
    """Test cases for the next-id scans."""

    def test_next_book_id_after_max(self):
        assert next_book_id([{"id": "1"}, {"id": "3"}, {"id": "5"}]) == "6"

    def test_next_book_id_empty(self):
        assert next_book_id([]) == "1"

    def test_next_book_id_ignores_non_numeric(self):
        assert next_book_id([{"id": "abc"}, {"title": "no id"}]) == "1"
        assert next_book_id([{"id": "abc"}, {"id": "4"}]) == "5"

    def test_next_book_id_reads_leading_digits(self):
        assert next_book_id([{"id": "12abc"}, {"id": "3"}]) == "13"

    def test_next_book_id_accepts_numeric_ids(self):
        assert next_book_id([{"id": 9}, {"id": "2"}]) == "10"

    def test_next_review_id_after_max(self):
        assert next_review_id([{"id": "review-1"}, {"id": "review-4"}]) == "review-5"

    def test_next_review_id_empty(self):
        assert next_review_id([]) == "review-1"

    def test_non_object_entries_skipped(self):
        assert next_book_id([{"id": "4"}, "junk", None, 7]) == "5"
        assert next_review_id(["junk", {"id": "review-2"}]) == "review-3"

    def test_next_review_id_ignores_other_formats(self):
        reviews = [{"id": "review-x"}, {"id": "rev-9"}, {"id": "review-2a"}, {"id": 12}]
        assert next_review_id(reviews) == "review-1"


class TestRecordStore:
    """Test cases for RecordStore reads and writes."""

    @pytest.fixture
    def store(self, data_dir):
        return RecordStore.from_files(data_dir / "books.json", data_dir / "reviews.json")

    def test_from_files(self, store, sample_books, sample_reviews):
        assert store.list_books() == sample_books
        assert store.reviews == sample_reviews

    def test_get_book(self, store):
        assert store.get_book("5")["title"] == "Introduction to Algorithms"
        assert store.get_book("2") is None

    def test_published_between_skips_unparseable_dates(self, store):
        store.books.append({"id": "8", "datePublished": "sometime"})
        store.books.append({"id": "9"})
        books = store.books_published_between(utc(1900, 1, 1), utc(2100, 1, 1))
        assert [book["id"] for book in books] == ["1", "3", "5"]

    def test_top_rated_treats_missing_values_as_zero(self, tmp_path):
        store = RecordStore(tmp_path / "b.json", tmp_path / "r.json", books=[
            {"id": "1", "rating": 5},
            {"id": "2", "rating": 2, "reviewCount": 1},
            {"id": "3", "reviewCount": 50},
        ])
        assert [book["id"] for book in store.top_rated()] == ["2", "1", "3"]

    def test_top_rated_limit(self, store):
        assert [book["id"] for book in store.top_rated(limit=2)] == ["5", "1"]

    def test_featured_requires_true(self, store):
        assert [book["id"] for book in store.featured_books()] == ["1"]

    def test_reviews_for_book(self, store):
        assert [review["id"] for review in store.reviews_for_book("3")] == ["review-4"]

    def test_create_book(self, store, data_dir):
        book = store.create_book(BookCreate(
            title="Cosmos", author="Carl Sagan", price=15, datePublished="1980-09-01", pages=396
        ))
        assert book["id"] == "6"
        assert book["pages"] == 396
        saved = json.loads((data_dir / "books.json").read_text(encoding="utf-8"))["books"]
        assert saved[-1] == book

    def test_create_review_increments_review_count(self, store, data_dir):
        review = store.create_review(ReviewCreate(
            bookId="1", author="Reader", rating=5, title="Great", comment="Loved it"
        ))
        assert review["id"] == "review-5"
        assert store.get_book("1")["reviewCount"] == 11

        saved_books = json.loads((data_dir / "books.json").read_text(encoding="utf-8"))["books"]
        saved_reviews = json.loads((data_dir / "reviews.json").read_text(encoding="utf-8"))["reviews"]
        assert saved_books[0]["reviewCount"] == 11
        assert saved_reviews[-1] == review

    def test_create_review_for_book_without_count(self, tmp_path):
        store = RecordStore(tmp_path / "b.json", tmp_path / "r.json", books=[{"id": "1"}])
        store.create_review(ReviewCreate(bookId="1", author="A", rating=3, title="T", comment="C"))
        assert store.books[0]["reviewCount"] == 1

    def test_create_review_unknown_book_changes_nothing(self, tmp_path):
        store = RecordStore(tmp_path / "b.json", tmp_path / "r.json", books=[{"id": "1"}])
        with pytest.raises(BookNotFoundError) as exc_info:
            store.create_review(ReviewCreate(bookId="2", author="A", rating=3, title="T", comment="C"))

        assert exc_info.value.book_id == "2"
        assert store.reviews == []
        assert not (tmp_path / "b.json").exists()
        assert not (tmp_path / "r.json").exists()

    def test_reads_tolerate_non_object_entries(self, tmp_path):
        path = tmp_path / "books.json"
        path.write_text(json.dumps({"books": [{"id": "1", "featured": True, "datePublished": "2020-01-01"}, "junk"]}))
        store = RecordStore.from_files(path, tmp_path / "reviews.json")
        store.reviews.append(["junk"])

        assert store.list_books()[1] == "junk"
        assert store.get_book("2") is None
        assert [book["id"] for book in store.featured_books()] == ["1"]
        assert [book["id"] for book in store.books_published_between(utc(2019, 1, 1), utc(2021, 1, 1))] == ["1"]
        assert store.top_rated()[-1] == "junk"
        assert store.reviews_for_book("1") == []

    def test_create_book_after_non_object_entry(self, tmp_path):
        store = RecordStore(tmp_path / "b.json", tmp_path / "r.json", books=[{"id": "1"}, "junk"])
        book = store.create_book(BookCreate(title="T", author="A", price=1, datePublished="2024-01-01"))
        assert book["id"] == "2"
        assert load_collection(tmp_path / "b.json", "books") == [{"id": "1"}, "junk", book]

    def test_concurrent_creates_get_unique_ids(self, store, data_dir):
        def create(n):
            return store.create_book(BookCreate(
                title=f"Volume {n}", author="Anon", price=n, datePublished="2024-01-01"
            ))["id"]

        with ThreadPoolExecutor(max_workers=8) as executor:
            ids = list(executor.map(create, range(20)))

        assert len(set(ids)) == 20
        assert sorted(int(book_id) for book_id in ids) == list(range(6, 26))
        saved = json.loads((data_dir / "books.json").read_text(encoding="utf-8"))["books"]
        assert len(saved) == 23
        assert {book["id"] for book in saved[3:]} == set(ids)
