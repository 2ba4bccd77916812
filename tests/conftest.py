"""
Pytest configuration and shared fixtures.
"""

import json

import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app

TEST_API_KEY = "test-api-key"


@pytest.fixture
def sample_books():
    """Create sample book records for testing."""
    return [
        {
            "id": "1",
            "title": "The Principles of Quantum Mechanics",
            "author": "Paul A.M. Dirac",
            "description": "Foundations of quantum theory",
            "price": 45.99,
            "image": "/images/quantum.jpg",
            "isbn": "978-0198520115",
            "genre": ["Physics"],
            "tags": ["Classic"],
            "datePublished": "2019-06-15",
            "language": "English",
            "publisher": "Oxford University Press",
            "rating": 4.5,
            "reviewCount": 10,
            "inStock": True,
            "featured": True
        },
        {
            "id": "3",
            "title": "Molecular Biology of the Cell",
            "author": "Bruce Alberts",
            "description": "Cells in depth",
            "price": 89.5,
            "image": "",
            "isbn": "978-0815344322",
            "genre": ["Biology"],
            "tags": [],
            "datePublished": "2021-03-01",
            "language": "English",
            "publisher": "Garland Science",
            "rating": 5,
            "reviewCount": 2,
            "inStock": True,
            "featured": False
        },
        {
            "id": "5",
            "title": "Introduction to Algorithms",
            "author": "Thomas H. Cormen",
            "description": "",
            "price": 72,
            "image": "",
            "isbn": "",
            "genre": ["Computer Science"],
            "tags": ["Textbook"],
            "datePublished": "2020-01-01",
            "language": "English",
            "publisher": "MIT Press",
            "rating": 3,
            "reviewCount": 20,
            "inStock": False,
            "featured": "true"
        }
    ]


@pytest.fixture
def sample_reviews():
    """Create sample review records for testing."""
    return [
        {
            "id": "review-1",
            "bookId": "1",
            "author": "Dr. Sarah Chen",
            "rating": 5,
            "title": "Still the reference",
            "comment": "Dense but rewarding.",
            "timestamp": "2024-01-15T10:30:00.000Z",
            "verified": True
        },
        {
            "id": "review-4",
            "bookId": "3",
            "author": "Lina Farouk",
            "rating": 4,
            "title": "Beautifully illustrated",
            "comment": "The figures help a lot.",
            "timestamp": "2024-03-20T16:05:10.000Z",
            "verified": False
        }
    ]


@pytest.fixture
def data_dir(tmp_path, sample_books, sample_reviews):
    """Write the sample collections to a temporary data directory."""
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "books.json").write_text(json.dumps({"books": sample_books}, indent=2) + "\n")
    (directory / "reviews.json").write_text(json.dumps({"reviews": sample_reviews}, indent=2) + "\n")
    return directory


@pytest.fixture
def api_config(tmp_path, data_dir):
    """Create API configuration pointing at the temporary data and log directories."""
    return APIConfig(
        data_dir=str(data_dir),
        log_dir=str(tmp_path / "logging"),
        api_keys=f"{TEST_API_KEY}, second-key"
    )


@pytest.fixture
def client(api_config):
    """Create test client with the application started."""
    with TestClient(create_app(api_config)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"x-api-key": TEST_API_KEY}


@pytest.fixture
def read_collection(data_dir):
    """Read a collection file back from disk."""
    def _read(name):
        return json.loads((data_dir / f"{name}.json").read_text(encoding="utf-8"))[name]
    return _read
