"""Two-stage probabilistic request classifier.

Stage 1 scores the request against a fixed keyword table. When that is weak
(or empty) stage 2 asks the external semantic classifier. Any stage-2 failure
degrades to the stage-1 result, or to a FALLBACK verdict when stage 1 found
nothing.
"""

import asyncio
import logging
import re
from collections.abc import Sequence

from query_router.classification.keywords import (
    CATEGORY_KEYWORDS,
    FALLBACK,
    SEMANTIC_CATEGORIES,
    provider_for_category,
)
from query_router.classification.semantic import SemanticClassifier
from query_router.classification.tokenize import normalize, stem, stems
from query_router.consts import (
    FALLBACK_CONFIDENCE,
    KEYWORD_BASE_CONFIDENCE,
    KEYWORD_MATCH_BONUS,
    KEYWORD_MAX_CONFIDENCE,
    SAFE_DEFAULT_PROVIDER,
    SEMANTIC_CLASSIFIER_TIMEOUT_SECONDS,
    SEMANTIC_ESCALATION_THRESHOLD,
)
from query_router.errors import ClassifierUnavailable
from query_router.models import (
    ClassificationResult,
    ClassificationSource,
    KeywordScore,
    SemanticAutomationVerdict,
)

logger = logging.getLogger(__name__)


def keyword_confidence(match_count: int) -> float:
    """Confidence for a category with `match_count` keyword hits."""
    confidence = min(
        KEYWORD_BASE_CONFIDENCE + KEYWORD_MATCH_BONUS * match_count,
        KEYWORD_MAX_CONFIDENCE,
    )
    return round(confidence, 2)


def _contains_phrase(normalized: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", normalized) is not None


def score_keywords(text: str) -> list[KeywordScore]:
    """Count keyword hits per category, in keyword-table order.

    Single-word keywords match by stem equality; multi-word keywords match as
    whole phrases in the normalized text.

    Args:
        text: Raw request text.

    Returns:
        One KeywordScore per category, including those with no hits.
    """
    normalized = normalize(text)
    text_stems = set(stems(normalized))

    scores: list[KeywordScore] = []
    for category, keywords in CATEGORY_KEYWORDS.items():
        score = KeywordScore(category=category)
        for keyword in keywords:
            if " " in keyword:
                hit = _contains_phrase(normalized, keyword)
            else:
                hit = stem(keyword) in text_stems
            if hit:
                score.matched.append(keyword)
        scores.append(score)
    return scores


def best_keyword_score(text: str) -> KeywordScore | None:
    """Highest-scoring category, ties going to the earlier one. None when nothing matched."""
    best: KeywordScore | None = None
    for score in score_keywords(text):
        if score.count > 0 and (best is None or score.count > best.count):
            best = score
    return best


def fallback_result(reasoning: str) -> ClassificationResult:
    return ClassificationResult(
        category=FALLBACK,
        provider=SAFE_DEFAULT_PROVIDER,
        confidence=FALLBACK_CONFIDENCE,
        source=ClassificationSource.FALLBACK,
        reasoning=reasoning,
    )


class ProbabilisticClassifier:
    """Keyword scoring with escalation to an external semantic classifier."""

    def __init__(
        self,
        semantic: SemanticClassifier | None = None,
        timeout: float = SEMANTIC_CLASSIFIER_TIMEOUT_SECONDS,
    ):
        """Initialize ProbabilisticClassifier.

        Args:
            semantic: External classifier for low-confidence requests. None disables stage 2.
            timeout: Seconds to wait for the external classifier.
        """
        self.semantic = semantic
        self.timeout = timeout

    def classify_keywords(self, text: str) -> ClassificationResult | None:
        """Stage 1 only. Returns None when no keyword matched."""
        best = best_keyword_score(text)
        if best is None:
            return None

        return ClassificationResult(
            category=best.category,
            provider=provider_for_category(best.category),
            confidence=keyword_confidence(best.count),
            source=ClassificationSource.ML,
            reasoning=f"Matched {best.count} keyword(s): {', '.join(best.matched)}",
        )

    async def _classify_semantic(self, text: str) -> ClassificationResult:
        if self.semantic is None:
            raise ClassifierUnavailable("No semantic classifier configured")

        try:
            verdict = await asyncio.wait_for(
                self.semantic.classify(text, SEMANTIC_CATEGORIES), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ClassifierUnavailable(
                f"Semantic classifier timed out after {self.timeout}s"
            ) from e

        return ClassificationResult(
            category=verdict.category,
            provider=provider_for_category(verdict.category),
            confidence=verdict.confidence,
            source=ClassificationSource.ML,
            reasoning=verdict.reasoning,
        )

    async def classify(self, text: str) -> ClassificationResult:
        """Classify a request.

        Args:
            text: Raw request text.

        Returns:
            Stage-1 result when confident, otherwise the semantic verdict, the
            stage-1 result, or a FALLBACK result, in that order of preference.
        """
        keyword_result = self.classify_keywords(text)
        confident = (
            keyword_result is not None
            and keyword_result.confidence >= SEMANTIC_ESCALATION_THRESHOLD
        )
        if confident:
            logger.debug(
                f"Keyword classification: {keyword_result.category} ({keyword_result.confidence})"
            )
            return keyword_result

        try:
            result = await self._classify_semantic(text)
        except Exception as e:
            # Custom classifiers may raise anything; all of it counts as unavailable
            if self.semantic is not None:
                logger.warning(f"Semantic classifier unavailable: {e}")
            if keyword_result is not None:
                return keyword_result
            return fallback_result("No keyword match and semantic classifier unavailable")

        logger.debug(f"Semantic classification: {result.category} ({result.confidence})")
        return result

    async def detect_automation(
        self,
        text: str,
        automation_types: Sequence[str],
        services: Sequence[str],
    ) -> SemanticAutomationVerdict | None:
        """Ask the semantic classifier whether text is an automation request.

        Args:
            text: Raw request text.
            automation_types: Types a positive verdict must come from.
            services: Services a positive verdict must come from.

        Returns:
            Positive verdict, or None when the classifier said no, is missing,
            timed out or failed.
        """
        if self.semantic is None:
            return None

        try:
            verdict = await asyncio.wait_for(
                self.semantic.detect_automation(text, automation_types, services),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Semantic automation detection timed out after {self.timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Semantic automation detection unavailable: {e}")
            return None

        return verdict if verdict.is_automation else None

    async def aclose(self) -> None:
        if self.semantic is not None:
            await self.semantic.aclose()
