"""
API models and schemas for the FastAPI application.
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from utilities.dates import parse_iso_datetime, to_iso_timestamp

Number = Union[int, float]

# Error types whose message is shown to the client unchanged
CLIENT_ERROR_TYPES = {"missing_fields", "invalid_field", "invalid_body"}


def _to_number(value: Any) -> Optional[Number]:
    """Coerce a JSON number or numeric string to a finite number, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _to_integer(value: Any) -> Optional[int]:
    number = _to_number(value)
    if number is None or not float(number).is_integer():
        return None
    return int(number)


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_field", message)


def _require(data: Any, fields: Sequence[str]) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise PydanticCustomError("invalid_body", "Request body must be a JSON object.")
    missing = [field for field in fields if data.get(field) is None]
    if missing:
        raise PydanticCustomError(
            "missing_fields",
            "Missing required fields: {fields}",
            {"fields": ", ".join(missing)}
        )
    return data


def describe_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """
    Turn request validation errors into the single message sent to the client.

    Only the first error is reported, which follows the order the fields
    are declared in.
    """
    if not errors:
        return "Invalid request."

    error = errors[0]
    error_type = error.get("type")
    loc = [part for part in error.get("loc", ()) if part != "body"]

    if error_type in CLIENT_ERROR_TYPES:
        return error["msg"]
    if error_type == "json_invalid":
        return "Request body must be valid JSON."
    if not loc:
        return "Request body must be a JSON object."
    return f'Field "{loc[-1]}" is invalid: {error["msg"]}'


class Book(BaseModel):
    """Book record as stored in the books collection."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Numeric string identifier")
    title: Any
    author: Any
    description: Any = ""
    price: Number
    image: Any = ""
    isbn: Any = ""
    genre: List[Any] = Field(default_factory=list)
    tags: List[Any] = Field(default_factory=list)
    datePublished: str = Field(..., description="ISO-8601 publication date")
    language: Any = "English"
    publisher: Any = ""
    rating: Number = 0
    reviewCount: int = Field(0, ge=0)
    inStock: bool = True
    featured: bool = False
    pages: Optional[int] = Field(None, gt=0)

    def to_record(self) -> Dict[str, Any]:
        """Dump the book for the collection file, leaving out pages when unknown."""
        return self.model_dump(exclude_none=True)


class Review(BaseModel):
    """Review record as stored in the reviews collection."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Identifier of the form review-<N>")
    bookId: Any
    author: Any
    rating: Number
    title: Any
    comment: Any
    timestamp: str = Field(..., description="ISO-8601 creation time")
    verified: bool = False

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()


class BookCreate(BaseModel):
    """Request body for creating a book."""
    model_config = ConfigDict(extra="ignore")

    title: Any
    author: Any
    price: Number
    datePublished: str
    rating: Number = 0
    pages: Optional[int] = None
    reviewCount: int = 0
    description: Any = ""
    image: Any = ""
    isbn: Any = ""
    genre: List[Any] = Field(default_factory=list)
    tags: List[Any] = Field(default_factory=list)
    language: Any = "English"
    publisher: Any = ""
    inStock: bool = True
    featured: bool = False

    @model_validator(mode="before")
    @classmethod
    def check_required_fields(cls, data):
        return _require(data, ["title", "author", "price", "datePublished"])

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        price = _to_number(v)
        if price is None or price < 0:
            raise _invalid('Field "price" must be a positive number.')
        return price

    @field_validator("datePublished", mode="before")
    @classmethod
    def validate_date_published(cls, v):
        if parse_iso_datetime(v) is None:
            raise _invalid('Field "datePublished" must be a valid ISO date string.')
        return v

    @field_validator("rating", mode="before")
    @classmethod
    def validate_rating(cls, v):
        if v is None:
            return 0
        rating = _to_number(v)
        if rating is None or rating < 0 or rating > 5:
            raise _invalid('Field "rating" must be between 0 and 5 if provided.')
        return rating

    @field_validator("pages", mode="before")
    @classmethod
    def validate_pages(cls, v):
        if v is None:
            return None
        pages = _to_integer(v)
        if pages is None or pages <= 0:
            raise _invalid('Field "pages" must be a positive integer if provided.')
        return pages

    @field_validator("reviewCount", mode="before")
    @classmethod
    def validate_review_count(cls, v):
        if v is None:
            return 0
        count = _to_integer(v)
        if count is None or count < 0:
            raise _invalid('Field "reviewCount" must be a non-negative integer if provided.')
        return count

    @field_validator("description", "image", "isbn", "publisher", mode="before")
    @classmethod
    def blank_if_falsy(cls, v):
        return v or ""

    @field_validator("language", mode="before")
    @classmethod
    def default_language(cls, v):
        return v or "English"

    @field_validator("genre", "tags", mode="before")
    @classmethod
    def list_or_empty(cls, v):
        return v if isinstance(v, list) else []

    @field_validator("inStock", mode="before")
    @classmethod
    def in_stock_unless_false(cls, v):
        return v if isinstance(v, bool) else True

    @field_validator("featured", mode="before")
    @classmethod
    def coerce_featured(cls, v):
        return bool(v)

    def to_book(self, book_id: str) -> Book:
        return Book(id=book_id, **self.model_dump())


class ReviewCreate(BaseModel):
    """Request body for creating a review."""
    model_config = ConfigDict(extra="ignore")

    bookId: Any
    author: Any
    rating: Number
    title: Any
    comment: Any
    timestamp: Optional[str] = None
    verified: bool = False

    @model_validator(mode="before")
    @classmethod
    def check_required_fields(cls, data):
        return _require(data, ["bookId", "author", "rating", "title", "comment"])

    @field_validator("bookId", mode="before")
    @classmethod
    def book_id_as_string(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("rating", mode="before")
    @classmethod
    def validate_rating(cls, v):
        rating = _to_number(v)
        if rating is None or rating < 1 or rating > 5:
            raise _invalid('Field "rating" must be between 1 and 5.')
        return rating

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalize_timestamp(cls, v):
        """Keep a parseable timestamp in canonical UTC form; drop anything else."""
        parsed = parse_iso_datetime(v)
        if parsed is None:
            return None
        try:
            return to_iso_timestamp(parsed)
        except (OverflowError, ValueError):
            return None

    @field_validator("verified", mode="before")
    @classmethod
    def coerce_verified(cls, v):
        return bool(v)

    def to_review(self, review_id: str, timestamp: str) -> Review:
        return Review(
            id=review_id,
            bookId=self.bookId,
            author=self.author,
            rating=self.rating,
            title=self.title,
            comment=self.comment,
            timestamp=self.timestamp or timestamp,
            verified=self.verified,
        )


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
