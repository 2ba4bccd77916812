"""
FastAPI RESTful API for the Amana Bookstore.

This module provides a small REST API for:
- Book catalog browsing: listing, publication date ranges, top-rated and featured books
- Reviews per book
- API key protected creation of books and reviews
"""
