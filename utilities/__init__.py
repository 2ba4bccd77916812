"""
Shared helpers: logging setup and ISO-8601 date handling.
"""
