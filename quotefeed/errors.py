from __future__ import annotations

from fastapi import HTTPException, status

from quotefeed.schemas import ErrorCode, ErrorDetail, ErrorResponse


# --- Internal taxonomy (never reaches callers except through the fetch-path fallback) ---
class QuoteFeedError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL_ERROR


class RateLimited(QuoteFeedError):
    """Provider signalled quota exhaustion, or the Rate Guard is still cooling down."""

    code = ErrorCode.RATE_LIMIT


class UpstreamFailed(QuoteFeedError):
    """Transport, decode or provider-reported error."""

    code = ErrorCode.UPSTREAM_FAILED


class InvalidPrice(QuoteFeedError):
    code = ErrorCode.INVALID_PRICE


class CacheUnavailable(QuoteFeedError):
    code = ErrorCode.CACHE_UNAVAILABLE


# --- HTTP envelope ---
def http_error(
    code: ErrorCode,
    message: str,
    http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    hint: str | None = None,
):
    detail = ErrorDetail(code=code, message=message, hint=hint)
    return HTTPException(status_code=http_status, detail=detail.model_dump(mode="json"))


def envelope_from_http_exception(exc: HTTPException) -> ErrorResponse:
    d = exc.detail
    if isinstance(d, dict) and "code" in d and "message" in d:
        return ErrorResponse(error=d)  # already our shape
    # Fallback to INTERNAL_ERROR envelope
    return ErrorResponse(
        error=ErrorDetail(code=ErrorCode.INTERNAL_ERROR, message=str(d), hint=None).model_dump()
    )
