"""
Utilities
=========

Helpers shared by the OCR providers that do not belong to a more specific
module: a `retry` decorator for transient errors with exponential backoff and
jitter, and a helper for detecting blank images so empty scans never reach
the OCR engine.
"""

import random
import time
from functools import wraps
from typing import Callable, Type, TypeVar

import structlog
from PIL import Image

log = structlog.get_logger(__name__)
T = TypeVar("T")


def retry(
    retryable_exceptions: tuple[Type[Exception], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on specific exceptions.

    The decorated method's instance must expose ``settings.MAX_RETRIES`` and
    ``settings.MAX_RETRY_BACKOFF_SECONDS``.

    Args:
        retryable_exceptions: A tuple of exception types that should trigger a retry.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            if settings.MAX_RETRIES < 1:
                raise ValueError("MAX_RETRIES must be >= 1")
            for attempt in range(1, settings.MAX_RETRIES + 1):
                try:
                    return func(self, *args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == settings.MAX_RETRIES:
                        log.error(
                            "Call failed after all retries",
                            func=func.__name__,
                            attempts=attempt,
                        )
                        raise
                    log.warning(
                        "Call failed; retrying",
                        func=func.__name__,
                        error=str(e),
                        attempt=attempt,
                        max_retries=settings.MAX_RETRIES,
                    )
                    _sleep_backoff(attempt, settings)
            # Unreachable while MAX_RETRIES >= 1
            raise RuntimeError("Retry loop exited unexpectedly.")

        return wrapper

    return decorator


def _sleep_backoff(attempt: int, settings) -> None:
    """Sleep for a short duration with exponential backoff and jitter."""
    delay = min(
        (2**attempt) * random.uniform(0.8, 1.2),
        float(settings.MAX_RETRY_BACKOFF_SECONDS),
    )
    log.info(
        "Sleeping before retry",
        delay=round(delay, 1),
        attempt=attempt,
        max_retries=settings.MAX_RETRIES,
    )
    time.sleep(delay)


def is_blank(image: Image.Image, threshold: int = 5) -> bool:
    """
    Return True if the image is essentially blank (all white).
    """
    # Greyscale histogram - index 255 is pure white
    histogram = image.convert("L").histogram()
    return (sum(histogram) - histogram[255]) < threshold
