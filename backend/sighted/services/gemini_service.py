"""
SightEd Backend — Google Gemini Service Implementation
========================================================

What:  LLMService backed by Google Gemini through the google-generativeai SDK.
Who:   Instantiated once at import (`gemini_service`); called by analysis_service
       for the upload analysis, the 5-question quiz and answer explanations.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
    2. Quota errors (ResourceExhausted, or any error mentioning "quota") are
       translated to QuotaExceededError immediately and never retried
    3. Circuit breaker stops calling Gemini after repeated failures
"""

import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from sighted.config import settings
from sighted.exceptions import CircuitBreakerOpenError, LLMServiceError, QuotaExceededError
from sighted.services.llm_base import LLMService

logger = logging.getLogger(__name__)


def is_quota_error(error: BaseException) -> bool:
    """True for Google quota exhaustion, whichever client library raised it."""
    if isinstance(error, google_exceptions.ResourceExhausted):
        return True
    return "quota" in str(error).lower()


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding the Gemini API.

    State Machine:
        CLOSED    → failures counted; at failure_threshold → OPEN
        OPEN      → calls rejected with CircuitBreakerOpenError
                    until recovery_timeout seconds have passed → HALF_OPEN
        HALF_OPEN → one trial call; success → CLOSED, failure → OPEN

    Not shared across processes; each uvicorn worker keeps its own state.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and still inside the recovery window.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(int(self.recovery_timeout - elapsed), 1)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of LLMService.

    Error Handling Chain:
        API call fails → quota? → QuotaExceededError (no retry, breaker untouched)
                       → otherwise tenacity retries (default 3 attempts)
        → retries exhausted → breaker failure recorded → LLMServiceError
    """

    def __init__(self):
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def generate_text(self, prompt: str) -> str:
        """
        Sends a text prompt to Gemini and returns the stripped response text.

        Raises:
            CircuitBreakerOpenError: Circuit is open (too many recent failures)
            QuotaExceededError: Gemini quota exhausted
            LLMServiceError: Gemini failed after all retry attempts
        """
        call_id = uuid.uuid4().hex[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Gemini request (%d prompt chars)", call_id, len(prompt))

        try:
            result = await self._call_gemini_with_retry(prompt, call_id)
            self.circuit_breaker.record_success()
            return result

        except QuotaExceededError:
            logger.warning("[%s] Gemini quota exceeded", call_id)
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                call_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise LLMServiceError(
                message="AI text generation failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "attempts": settings.retry_max_attempts},
            ) from e
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Gemini error: %s", call_id, str(e), exc_info=True)
            raise LLMServiceError(
                message="An unexpected error occurred during AI text generation.",
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

    @retry(
        retry=retry_if_not_exception_type(QuotaExceededError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # wait = min(max_wait, min_wait * 2^attempt) + random(0, 1)
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, prompt: str, call_id: str) -> str:
        """The retried unit: one generate_content_async round trip."""
        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                prompt,
                request_options={"timeout": settings.gemini_timeout},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            if is_quota_error(e):
                raise QuotaExceededError(message=str(e), service="gemini") from e
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                call_id,
                duration_ms,
                str(e),
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        text = response.text.strip() if response.text else ""
        logger.info(
            "[%s] Gemini completed in %.0fms, %d chars",
            call_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """Lists models (no token cost) to confirm the key and connectivity."""
        if not settings.gemini_api_key:
            return False
        try:
            model_names = [m.name for m in genai.list_models()]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# Shared instance: the circuit breaker state must outlive single requests
gemini_service = GeminiService()
