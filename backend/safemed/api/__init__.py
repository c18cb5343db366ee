"""API Routes for SafeMed."""

from safemed.api import access_requests, doctor, health, records

__all__ = [
    "access_requests",
    "doctor",
    "health",
    "records",
]
