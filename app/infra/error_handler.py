"""Error types, classification and retry helpers for upstream calls."""

import asyncio
import random
import re
from typing import Optional, Type, Tuple, Callable, Any
from enum import Enum

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for better handling."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # API returned error response
    AUTH_ERROR = "auth_error"  # Authentication/authorization failures
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    VALIDATION = "validation"  # Input validation errors
    UNKNOWN = "unknown"


class RetryableError(Exception):
    """Base exception for upstream errors, carrying retry hints."""
    def __init__(self, message: str, category: ErrorCategory, retryable: bool = True, retry_after: Optional[float] = None):
        self.message = message
        self.category = category
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(RetryableError):
    """Network-related errors (connection, timeout)."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.NETWORK, retryable=True, retry_after=retry_after)


class APIError(RetryableError):
    """API returned an error response."""
    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False, retry_after: Optional[float] = None):
        self.status_code = status_code
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable, retry_after=retry_after)


class AuthError(RetryableError):
    """Authentication/authorization errors."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.AUTH_ERROR, retryable=False)


class RateLimitError(RetryableError):
    """Rate limit exceeded."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.RATE_LIMIT, retryable=True, retry_after=retry_after)


class ValidationError(RetryableError):
    """Input validation errors."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.VALIDATION, retryable=False)


class ToolArgumentsError(ValidationError):
    """Tool call arguments could not be decoded."""


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool, Optional[float]]:
    """
    Classify an error into a category and determine if it's retryable.

    Args:
        error: The exception to classify

    Returns:
        Tuple of (category, retryable, retry_after_seconds)
    """
    if isinstance(error, RetryableError):
        return error.category, error.retryable, error.retry_after

    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, asyncio.TimeoutError, ConnectionError)):
        return ErrorCategory.NETWORK, True, None

    error_str = str(error).lower()

    if 'rate limit' in error_str or '429' in error_str or 'too many requests' in error_str:
        match = re.search(r'retry[_-]after[:\s]+(\d+)', error_str)
        retry_after = float(match.group(1)) if match else None
        return ErrorCategory.RATE_LIMIT, True, retry_after

    if any(keyword in error_str for keyword in ['unauthorized', 'forbidden', '401', '403']):
        return ErrorCategory.AUTH_ERROR, False, None

    if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'refused']):
        return ErrorCategory.NETWORK, True, None

    return ErrorCategory.UNKNOWN, False, None


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Only errors that classify_error() reports as retryable are retried;
    everything else propagates immediately.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        retryable_exceptions: Tuple of exception types to retry
        on_retry: Optional callback called on each retry (exception, attempt_number)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            _, retryable, retry_after = classify_error(e)
            if not retryable or attempt >= max_retries:
                raise

            if retry_after:
                delay = min(retry_after, max_delay)
            else:
                delay = min(initial_delay * (exponential_base ** attempt), max_delay)
            # Jitter to avoid thundering herd
            delay += random.uniform(0, delay * 0.1)

            if on_retry:
                result = on_retry(e, attempt + 1)
                if asyncio.iscoroutine(result):
                    await result

            await asyncio.sleep(delay)


def _wrap_status_error(status_code: int, provider: str, detail: str, retry_after: Optional[float]) -> RetryableError:
    if status_code == 429:
        return RateLimitError(f"{provider} rate limit exceeded (429)", retry_after=retry_after)
    if status_code in (401, 403):
        return AuthError(f"{provider} auth error ({status_code}): {detail}")
    if status_code >= 500:
        # Server errors are retryable
        return APIError(f"{provider} server error ({status_code}): {detail}", status_code=status_code, retryable=True)
    return APIError(f"{provider} API error ({status_code}): {detail}", status_code=status_code, retryable=False)


def wrap_http_error(error: Exception, provider: str) -> RetryableError:
    """
    Wrap httpx errors raised while talking to a REST provider into our error types.

    Args:
        error: Original exception
        provider: Provider name used in messages

    Returns:
        RetryableError with appropriate category
    """
    if isinstance(error, RetryableError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return _wrap_status_error(
            response.status_code,
            provider,
            response.text[:200],
            _parse_retry_after(response.headers.get("retry-after")),
        )

    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError)):
        return NetworkError(f"{provider} network error: {error}")

    return APIError(f"{provider} error: {error}")


def wrap_composio_error(error: Exception) -> RetryableError:
    return wrap_http_error(error, "composio")


def wrap_llm_error(error: Exception, provider: str) -> RetryableError:
    """
    Wrap LLM API errors into our error types.

    Args:
        error: Original exception
        provider: LLM provider name ('gemini', 'openai')

    Returns:
        RetryableError with appropriate category
    """
    if isinstance(error, RetryableError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return _wrap_status_error(
            response.status_code,
            provider,
            response.reason_phrase,
            _parse_retry_after(response.headers.get("retry-after")),
        )

    # SDK errors (openai) expose status_code directly
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        retry_after = None
        response = getattr(error, "response", None)
        if response is not None and hasattr(response, "headers"):
            retry_after = _parse_retry_after(response.headers.get("retry-after"))
        return _wrap_status_error(status_code, provider, str(error), retry_after)

    category, _, _ = classify_error(error)
    if category == ErrorCategory.RATE_LIMIT:
        return RateLimitError(f"{provider} rate limit exceeded")
    if category == ErrorCategory.AUTH_ERROR:
        return AuthError(f"{provider} authentication failed: {error}")

    # Unknown errors are assumed to be transient
    return NetworkError(f"{provider} error: {error}")
