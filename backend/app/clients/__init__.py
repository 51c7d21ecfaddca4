"""HTTP clients for the booking API."""

from app.clients.booking_client import BookingApiClient, BookingApiError, SubmissionResult

__all__ = ["BookingApiClient", "BookingApiError", "SubmissionResult"]
