import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"


def first_error_message(detail):
    """Walk a DRF error structure down to its first message."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = first_error_message(value)
            if key == "non_field_errors" or key == "detail":
                return message
            return f"{key}: {message}"
        return "Invalid input."
    if isinstance(detail, (list, tuple)):
        # many=True errors hold an empty dict for every valid row
        for item in detail:
            if item:
                return first_error_message(item)
        return "Invalid input."
    return str(detail)


def api_exception_handler(exc, context):
    """
    Maps every error to the {"error": ...} envelope.
    Unknown exceptions are logged and answered with a safe 500.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "API")
        return Response({"error": "An internal error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, ValidationError):
        response.data = {"error": first_error_message(exc.detail), "details": exc.detail}
    else:
        detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
        response.data = {"error": str(detail)}
    return response
