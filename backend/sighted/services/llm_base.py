"""
SightEd Backend — Abstract LLM Service Interface
==================================================

What:  Contract for the generative text service behind the educational content
       (scene description, scientific facts, quizzes, answer explanations).
Who:   analysis_service calls it; GeminiService implements it; tests replace
       it with AsyncMock objects that follow the same shape.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for prompt-in, text-out generation.

    Contract:
        - generate_text() returns the raw model text; parsing lives in insights.py
        - Implementations own their retry logic and error translation
        - Quota exhaustion surfaces as QuotaExceededError (never retried)
        - Every other provider failure surfaces as LLMServiceError
    """

    @abstractmethod
    async def generate_text(self, prompt: str) -> str:
        """
        Sends `prompt` to the model and returns its text answer.

        Raises:
            QuotaExceededError: The provider reports an exhausted quota.
            LLMServiceError: The provider failed after all retries.
            CircuitBreakerOpenError: Too many recent consecutive failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check that does not consume generation quota."""
        ...
