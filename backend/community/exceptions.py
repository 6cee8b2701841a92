"""
Community errors and the custom exception handler for DRF

Provides consistent error response format across the API.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class CommunityError(Exception):
    """Base class for errors raised by the community services and store."""
    default_message = 'Community operation failed.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class AuthorizationRequired(CommunityError):
    """A mutating action was attempted without a signed-in user."""
    default_message = 'You must be signed in to do this.'


class AuthorshipViolation(CommunityError):
    """A user tried to change a record owned by someone else."""
    default_message = 'You can only change your own posts.'


class ObjectNotFound(CommunityError):
    """A write targeted a row that does not exist."""
    default_message = 'Object not found.'


class UnknownFieldError(CommunityError, ValueError):
    """An update payload carried fields outside the allowed set."""

    def __init__(self, kind: str, fields):
        self.fields = sorted(fields)
        super().__init__(f"Unknown {kind} field(s): {', '.join(self.fields)}")


class StateTransitionError(CommunityError):
    """The store was asked for a status transition its state machine forbids."""


def check_fields(kind: str, fields, allowed) -> None:
    """Reject payload keys outside the allowed set for this kind of record."""
    unknown = set(fields) - set(allowed)
    if unknown:
        raise UnknownFieldError(kind, unknown)


# CommunityError subclass -> HTTP status
STATUS_FOR_ERROR = {
    AuthorizationRequired: status.HTTP_401_UNAUTHORIZED,
    AuthorshipViolation: status.HTTP_403_FORBIDDEN,
    ObjectNotFound: status.HTTP_404_NOT_FOUND,
    UnknownFieldError: status.HTTP_400_BAD_REQUEST,
}


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Logs all exceptions
    2. Converts community and Django exceptions to DRF responses
    3. Provides consistent error format
    """

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    # If DRF handled it, enhance the response
    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    for error_class, http_status in STATUS_FOR_ERROR.items():
        if isinstance(exc, error_class):
            logger.info("%s: %s", error_class.__name__, exc)
            return Response({'error': str(exc)}, status=http_status)

    if isinstance(exc, DjangoValidationError):
        return Response(
            {'error': 'Invalid data.', 'details': exc.message_dict if hasattr(exc, 'error_dict') else exc.messages},
            status=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
