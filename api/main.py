"""
FastAPI main application for the Amana Bookstore API.
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import verify_api_key
from api.config import APIConfig, config as default_config
from api.database import BookNotFoundError, RecordStore
from api.models import BookCreate, ErrorResponse, ReviewCreate, describe_validation_errors
from utilities.dates import parse_iso_datetime
from utilities.logger import format_combined_log, setup_access_log

# Setup logging
logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "Not found."


def get_store(request: Request) -> RecordStore:
    """Dependency returning the application's record store."""
    return request.app.state.store


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers
    )


router = APIRouter(prefix="/api")


# Books endpoints
@router.get("/books", tags=["Books"])
async def list_books(store: RecordStore = Depends(get_store)):
    """Get the whole book collection in storage order."""
    return store.list_books()


@router.get("/books/published", tags=["Books"])
async def list_books_published(
    start: Optional[str] = None,
    end: Optional[str] = None,
    store: RecordStore = Depends(get_store)
):
    """
    Get books published within a date range.

    - **start**: First publication date to include (ISO 8601)
    - **end**: Last publication date to include (ISO 8601)
    """
    if not start or not end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Query parameters "start" and "end" are required (ISO 8601 dates).'
        )

    start_date = parse_iso_datetime(start)
    end_date = parse_iso_datetime(end)
    if start_date is None or end_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format. Use ISO 8601, e.g., 2022-01-01."
        )

    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Query parameter "start" must be before or equal to "end".'
        )

    return store.books_published_between(start_date, end_date)


@router.get("/books/top-rated", tags=["Books"])
async def list_books_top_rated(store: RecordStore = Depends(get_store)):
    """Get the ten books with the highest rating times review count."""
    return store.top_rated()


@router.get("/books/featured", tags=["Books"])
async def list_books_featured(store: RecordStore = Depends(get_store)):
    return store.featured_books()


@router.get("/books/{book_id}/reviews", tags=["Reviews"])
async def list_book_reviews(book_id: str, store: RecordStore = Depends(get_store)):
    """Get all reviews for one book."""
    if store.get_book(book_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found.")
    return store.reviews_for_book(book_id)


@router.get("/books/{book_id}", tags=["Books"])
async def get_book(book_id: str, store: RecordStore = Depends(get_store)):
    """Get a single book by ID."""
    book = store.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found.")
    return book


@router.post("/books", status_code=status.HTTP_201_CREATED, tags=["Books"])
def create_book(
    payload: BookCreate,
    api_key: str = Depends(verify_api_key),
    store: RecordStore = Depends(get_store)
):
    """Create a book. Requires the x-api-key header."""
    return store.create_book(payload)


# Reviews endpoints
@router.post("/reviews", status_code=status.HTTP_201_CREATED, tags=["Reviews"])
def create_review(
    payload: ReviewCreate,
    api_key: str = Depends(verify_api_key),
    store: RecordStore = Depends(get_store)
):
    """Create a review and bump the book's review count. Requires the x-api-key header."""
    try:
        return store.create_review(payload)
    except BookNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found for the provided bookId."
        )


def create_app(settings: Optional[APIConfig] = None) -> FastAPI:
    """
    Build the application.

    The access log directory is created here; the collections are loaded
    when the application starts.

    Args:
        settings: Configuration to use instead of the environment-derived default
    """
    settings = settings or default_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        app.state.store = RecordStore.from_files(
            settings.get_books_path(),
            settings.get_reviews_path()
        )
        logger.info("Amana Bookstore API listening", port=settings.port)

        yield

        logger.info("Shutting down Amana Bookstore API")

    app = FastAPI(
        title=settings.api_title,
        description="Catalog of books and their reviews, stored in JSON files.",
        version=settings.api_version,
        lifespan=lifespan,
        redirect_slashes=False
    )
    app.state.config = settings
    app.state.access_logger = setup_access_log(settings.get_access_log_path())
    app.include_router(router)

    @app.middleware("http")
    async def strip_trailing_slash(request: Request, call_next):
        """Route /api/books/ the same as /api/books."""
        path = request.scope["path"]
        if len(path) > 1 and path.endswith("/"):
            request.scope["path"] = path[:-1]
        return await call_next(request)

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next):
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"

        def write_entry(status_code: int, content_length: Optional[str] = None) -> None:
            request.app.state.access_logger.info(format_combined_log(
                remote_addr=request.client.host if request.client else None,
                method=request.method,
                path=target,
                http_version=request.scope.get("http_version", "1.1"),
                status_code=status_code,
                content_length=content_length,
                referrer=request.headers.get("referer"),
                user_agent=request.headers.get("user-agent"),
            ))

        try:
            response = await call_next(request)
        except Exception:
            write_entry(status.HTTP_500_INTERNAL_SERVER_ERROR)
            raise

        write_entry(response.status_code, response.headers.get("content-length"))
        return response

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions, folding unknown routes and methods into one 404."""
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED or (
            exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found"
        ):
            return _error(status.HTTP_404_NOT_FOUND, NOT_FOUND_MESSAGE)
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors as 400 with a single message."""
        message = describe_validation_errors(exc.errors())
        logger.info("Request rejected", path=request.url.path, error=message)
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=default_config.host,
        port=default_config.port,
        log_level="info"
    )
