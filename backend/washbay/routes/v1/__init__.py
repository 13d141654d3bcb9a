"""Versioned API routers, mounted under /api/v1."""

from . import availability, bookings, closed_dates

__all__ = ["availability", "bookings", "closed_dates"]
