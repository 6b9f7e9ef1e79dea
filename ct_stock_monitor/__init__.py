"""
Canadian Tire stock monitor package.

This package contains modules for querying stocktrack.ca for one SKU at a
set of Canadian Tire stores, formatting stock alerts, delivering them by
email (or to the log) and running the check on a fixed interval.  See
README.md for details.
"""

__all__ = [
    "config",
    "emailer",
    "notifier",
    "scraper",
    "main",
    "utils",
]
