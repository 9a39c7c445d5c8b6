"""Retry decorators (tenacity) for calls to model backends."""

import logging

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.stdlib.get_logger(__name__)


def _backoff(max_attempts: int, min_wait: float, max_wait: float, exceptions: tuple):
    return retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def http_retry(
    max_attempts: int = 2,
    min_wait: float = 0.5,
    max_wait: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """Short backoff for a local HTTP runtime (Ollama).

    Kept brief because arbitration sits on the ingest path; after the last attempt
    the original exception is re-raised for the caller to translate.
    """
    return _backoff(max_attempts, min_wait, max_wait, exceptions)


def llm_retry(
    max_attempts: int = 2,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    exceptions: tuple = (Exception,),
):
    """Longer backoff for hosted LLM calls that may hit rate limits.

    Only extraction uses it; arbitration and summaries call providers once and fall
    back deterministically instead.
    """
    return _backoff(max_attempts, min_wait, max_wait, exceptions)
