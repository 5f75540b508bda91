import asyncio
import logging
import math
from typing import Dict, List, NamedTuple, Optional, Sequence, Set

from contentforge.errors import GenerationFailure, InvalidBatchRequest
from contentforge.schemas.generation import (
    AttemptDiagnostic,
    BatchResult,
    DegradedPlatform,
    GeneratedVariant,
    GenerationRequest,
)
from contentforge.services.generation_service import GenerationService
from contentforge.services.platforms.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class AttemptOutcome(NamedTuple):
    platform: str
    attempt: int
    text: Optional[str]
    error: Optional[str]


def failure_threshold(redundancy: int, ratio: float) -> int:
    """Failures at or above this count mark a platform as degraded."""
    # round() keeps 2/3 * 3 from landing a hair above 2 before ceil
    return max(1, math.ceil(round(ratio * redundancy, 9)))


class VariantAggregator:
    """
    Fans a topic out into R independent generation attempts per platform.

    All platform x attempt calls run concurrently under a semaphore and the
    batch waits for every one of them to settle. Individual failures are
    captured as diagnostics; only malformed input fails the whole batch.
    """

    def __init__(
        self,
        generator: GenerationService,
        registry: AdapterRegistry,
        max_concurrency: int = 6,
        timeout_seconds: float = 30.0,
        degraded_failure_ratio: float = 2 / 3,
        default_redundancy: int = 3,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.generator = generator
        self.registry = registry
        self.max_concurrency = max_concurrency
        self.timeout_seconds = timeout_seconds
        self.degraded_failure_ratio = degraded_failure_ratio
        self.default_redundancy = default_redundancy
        # Attempts still running after their batch was cancelled
        self._in_flight: Set[asyncio.Future] = set()

    async def generate_variants(
        self,
        topic: str,
        platforms: Sequence[str],
        redundancy: Optional[int] = None,
        tone: str = "professional",
        reference_body: Optional[str] = None,
    ) -> BatchResult:
        redundancy = self.default_redundancy if redundancy is None else redundancy
        targets = self._validate(topic, platforms, redundancy)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = []
        for platform in targets:
            request = GenerationRequest(
                topic=topic.strip(),
                platform=platform,
                tone=tone,
                reference_body=reference_body,
            )
            for attempt in range(1, redundancy + 1):
                task = asyncio.ensure_future(self._attempt(request, attempt, semaphore))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
                tasks.append(task)

        logger.info(f"Generating {len(tasks)} variants for '{topic[:50]}' across {len(targets)} platforms")

        # Cancelling the caller only cancels the shield; attempts run to completion and are dropped
        settled = await asyncio.shield(asyncio.gather(*tasks, return_exceptions=True))

        outcomes: List[AttemptOutcome] = []
        for task_result in settled:
            if isinstance(task_result, BaseException):
                # _attempt captures everything short of cancellation
                raise task_result
            outcomes.append(task_result)

        return self._aggregate(topic, targets, redundancy, outcomes)

    def _validate(self, topic: str, platforms: Sequence[str], redundancy: int) -> List[str]:
        if not topic or not topic.strip():
            raise InvalidBatchRequest("Topic is required")
        if redundancy < 1:
            raise InvalidBatchRequest(f"Redundancy must be at least 1, got {redundancy}")
        if not platforms:
            raise InvalidBatchRequest("At least one platform is required")

        targets: List[str] = []
        for platform in platforms:
            if not self.registry.supports(platform):
                raise InvalidBatchRequest(f"Unsupported platform: {platform}")
            if platform not in targets:
                targets.append(platform)
        return targets

    async def _attempt(self, request: GenerationRequest, attempt: int, semaphore: asyncio.Semaphore) -> AttemptOutcome:
        async with semaphore:
            try:
                text = await asyncio.wait_for(self.generator.generate(request), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                return AttemptOutcome(request.platform, attempt, None, f"Timed out after {self.timeout_seconds:g}s")
            except GenerationFailure as e:
                return AttemptOutcome(request.platform, attempt, None, str(e))
            except Exception as e:
                logger.error(f"Unexpected generation error for {request.platform} attempt {attempt}: {e}")
                return AttemptOutcome(request.platform, attempt, None, f"Unexpected error: {e}")

        text = (text or "").strip()
        if not text:
            return AttemptOutcome(request.platform, attempt, None, "Generator returned empty text")
        return AttemptOutcome(request.platform, attempt, text, None)

    def _aggregate(
        self,
        topic: str,
        targets: List[str],
        redundancy: int,
        outcomes: List[AttemptOutcome],
    ) -> BatchResult:
        threshold = failure_threshold(redundancy, self.degraded_failure_ratio)
        variants: Dict[str, List[GeneratedVariant]] = {}
        degraded: Dict[str, DegradedPlatform] = {}

        for platform in targets:
            platform_outcomes = sorted(
                (outcome for outcome in outcomes if outcome.platform == platform),
                key=lambda outcome: outcome.attempt,
            )
            limit = self.registry.char_limit(platform)

            variants[platform] = [
                GeneratedVariant(
                    platform=platform,
                    text=outcome.text,
                    attempt=outcome.attempt,
                    char_count=len(outcome.text),
                    over_limit=limit is not None and len(outcome.text) > limit,
                )
                for outcome in platform_outcomes
                if outcome.text is not None
            ]

            failed = [outcome for outcome in platform_outcomes if outcome.error is not None]
            if len(failed) >= threshold:
                degraded[platform] = DegradedPlatform(
                    platform=platform,
                    attempts=redundancy,
                    failures=len(failed),
                    threshold=threshold,
                    diagnostics=[
                        AttemptDiagnostic(attempt=outcome.attempt, error=outcome.error)
                        for outcome in failed
                    ],
                )
                logger.warning(
                    f"⚠️ {platform} degraded: {len(failed)}/{redundancy} attempts failed "
                    f"({'; '.join(f'#{o.attempt}: {o.error}' for o in failed)})"
                )

        return BatchResult(topic=topic, redundancy=redundancy, variants=variants, degraded=degraded)
