"""yinyang/invoker.py

Resilient execution of a single generation request.

Per invocation the state machine is::

    ATTEMPT_PRIMARY --success--------------------------> DONE
    ATTEMPT_PRIMARY --503, attempts left---------------> ATTEMPT_PRIMARY
    ATTEMPT_PRIMARY --503 exhausted / other error------> ATTEMPT_FALLBACK
    ATTEMPT_FALLBACK --success-------------------------> DONE
    ATTEMPT_FALLBACK --503, attempts left--------------> ATTEMPT_FALLBACK
    ATTEMPT_FALLBACK --503 exhausted / other error-----> FAILED_TERMINAL

Only a "temporarily unavailable" (503) failure is retried on the same tier.
Terminal failure is returned as an unsuccessful ``GenerationOutcome``; the
invoker itself never raises.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
from collections.abc import Awaitable, Callable

# Local Modules
from yinyang.backends import ModelBackend
from yinyang.errors import TransientModelUnavailable
from yinyang.models import (
    GenerationOutcome,
    GenerationRequest,
    InvocationPolicy,
    RetryPolicy,
    Tier,
)
from yinyang.registry import ModelRegistry

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[object]]


class ResilientInvoker:
    """Runs requests against the primary tier, then the fallback tier.

    Holds no per-invocation state, so one instance serves any number of
    concurrent invocations.
    """

    def __init__(
        self,
        backend: ModelBackend,
        registry: ModelRegistry,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.registry = registry
        self._sleep = sleep

    async def invoke(
        self,
        request: GenerationRequest,
        policy: InvocationPolicy,
        label: str = "generation",
    ) -> GenerationOutcome:
        """Execute ``request`` until some tier succeeds or both give up.

        Args:
            request: Request built by the composer; its tier is ignored and
                each tier gets its own copy.
            policy: Retry policies for the primary and fallback tiers.
            label: Sub-task name used in log lines.

        Returns:
            A successful outcome carrying the raw text and the tier that
            produced it, or ``GenerationOutcome(succeeded=False)``.
        """
        total_attempts = 0
        for tier in (Tier.PRIMARY, Tier.FALLBACK):
            text, attempts = await self._run_tier(
                request.at_tier(tier), policy.for_tier(tier), label
            )
            total_attempts += attempts
            if text is not None:
                logger.info(
                    "[%s] %s model succeeded after %d attempt(s)",
                    label,
                    tier.value,
                    total_attempts,
                )
                return GenerationOutcome(
                    succeeded=True,
                    text=text,
                    tier_used=tier,
                    attempts=total_attempts,
                )
            if tier is Tier.PRIMARY:
                logger.warning(
                    "[%s] Primary model failed. Switching to fallback model (%s).",
                    label,
                    self.registry.lookup(request.personality, Tier.FALLBACK).model_id,
                )

        logger.error(
            "[%s] All tiers failed after %d attempt(s); returning failure outcome.",
            label,
            total_attempts,
        )
        return GenerationOutcome(succeeded=False, attempts=total_attempts)

    async def _run_tier(
        self,
        request: GenerationRequest,
        retry: RetryPolicy,
        label: str,
    ) -> tuple[str | None, int]:
        """Attempt one tier; return ``(text or None, attempts made)``."""
        handle = self.registry.lookup(request.personality, request.tier)
        tier = request.tier.value
        for attempt in range(1, retry.max_attempts + 1):
            logger.info(
                "[%s] Attempting %s model %s (%d/%d)",
                label,
                tier,
                handle.model_id,
                attempt,
                retry.max_attempts,
            )
            try:
                return await self.backend.generate(handle, request), attempt
            except TransientModelUnavailable as exc:
                if attempt >= retry.max_attempts:
                    logger.warning(
                        "[%s] %s model still overloaded after %d attempt(s): %s",
                        label,
                        tier,
                        attempt,
                        exc,
                    )
                    return None, attempt
                delay = retry.delay_seconds(attempt)
                logger.warning(
                    "[%s] %s model overloaded. Retrying in %.1fs (%d/%d)...",
                    label,
                    tier,
                    delay,
                    attempt,
                    retry.max_attempts,
                )
                await self._sleep(delay)
            except Exception as exc:
                logger.error(
                    "[%s] %s model call failed (not retryable): %s",
                    label,
                    tier,
                    exc,
                    exc_info=True,
                )
                return None, attempt
        return None, retry.max_attempts
