"""
shared/utils/errors.py
Domain errors raised by the service layer.
main.py translates every RentalError into a JSON {"detail", "code"} response.
"""

from fastapi import status


class RentalError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "RENTAL_ERROR"
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidDateRange(RentalError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE_RANGE"
    default_detail = "End date must be after start date"


class InvalidPrice(RentalError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_PRICE"
    default_detail = "Total price cannot be negative"


class VehicleUnavailable(RentalError):
    status_code = status.HTTP_409_CONFLICT
    code = "VEHICLE_UNAVAILABLE"
    default_detail = "Vehicle is not available for booking"


class Unauthorized(RentalError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "UNAUTHORIZED"
    default_detail = "Not authorized"


class ReviewNotAllowed(RentalError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "REVIEW_NOT_ALLOWED"
    default_detail = "Only completed bookings you own can be reviewed"


class DuplicateReview(RentalError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_REVIEW"
    default_detail = "You have already reviewed this booking"


class NotFound(RentalError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_detail = "Not found"
