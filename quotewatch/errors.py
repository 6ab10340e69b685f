from fastapi import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from quotewatch.schemas import ErrorCode, ErrorDetail, ErrorResponse


class QuoteWatchError(Exception):
    """Base for every failure the service knows how to report."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_response(self) -> ErrorResponse:
        detail = ErrorDetail(code=self.code, message=self.message, hint=self.hint)
        return ErrorResponse(error=detail)


class InvalidInput(QuoteWatchError):
    code = ErrorCode.INVALID_INPUT
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidInterval(QuoteWatchError):
    code = ErrorCode.INVALID_INTERVAL
    http_status = status.HTTP_400_BAD_REQUEST


class ConfigurationError(QuoteWatchError):
    code = ErrorCode.CONFIGURATION_ERROR


class TransportError(QuoteWatchError):
    code = ErrorCode.TRANSPORT_ERROR


class UnknownSymbol(QuoteWatchError):
    code = ErrorCode.UNKNOWN_SYMBOL


class UpstreamParseError(QuoteWatchError):
    code = ErrorCode.UPSTREAM_PARSE_ERROR


class NotFound(QuoteWatchError):
    code = ErrorCode.NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND


def envelope_from_http_exception(exc: StarletteHTTPException) -> ErrorResponse:
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return NotFound("Not found").to_response()
    # Fallback to INTERNAL_ERROR envelope
    return ErrorResponse(
        error=ErrorDetail(code=ErrorCode.INTERNAL_ERROR, message=str(exc.detail), hint=None)
    )
