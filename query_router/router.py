"""Request router.

Decides for each request whether it is an automation command or a
conversational query, and which provider should handle a query:

1. Cache lookup by derived key (stale-while-revalidate)
2. Rules: explicit provider request, then automation templates
3. Probabilistic classification (keywords, then semantic classifier)
4. Fallback: caller preference, first available provider, safe default

Nothing here raises to the caller. Internal failures are logged and turn
into the safe default provider (for classification) or no match (for
automation detection).
"""

import logging

from query_router.automation.connections import ConnectionOracle
from query_router.automation.pattern_matcher import (
    PatternMatcher,
    build_match,
    is_likely_automation,
)
from query_router.automation.validation import validate_automation
from query_router.classification.keywords import (
    AUTOMATION,
    EXPLICIT_REQUEST,
    FALLBACK,
    PROVIDERS,
    explicit_provider,
    is_known_provider,
)
from query_router.classification.probabilistic import ProbabilisticClassifier
from query_router.classification.tokenize import derive_cache_key, normalize
from query_router.consts import (
    AUTOMATION_KEY_PREFIX,
    CACHE_SWEEP_INTERVAL_SECONDS,
    CLASSIFICATION_KEY_PREFIX,
    CLASSIFIER_ACCEPT_THRESHOLD,
    EXPLICIT_REQUEST_CONFIDENCE,
    FALLBACK_CONFIDENCE,
    LLM_NAMESPACE,
    PROVIDER_AVAILABLE_STATUS,
    RULE_ACCEPT_THRESHOLD,
    SAFE_DEFAULT_PROVIDER,
)
from query_router.models import (
    AutomationMatch,
    ClassificationContext,
    ClassificationResult,
    ClassificationSource,
    RequestKind,
    RouteDecision,
)
from query_router.storage.cache.sweeper import CacheSweeper
from query_router.storage.cache.tiered_cache import TieredCache

logger = logging.getLogger(__name__)


def safe_default_result(reasoning: str) -> ClassificationResult:
    """Result used when classification itself failed."""
    return ClassificationResult(
        category=FALLBACK,
        provider=SAFE_DEFAULT_PROVIDER,
        confidence=FALLBACK_CONFIDENCE,
        source=ClassificationSource.FALLBACK,
        reasoning=reasoning,
    )


def classification_key(text: str) -> str:
    """Cache key for a classification.

    An explicitly requested provider is part of the key, since the derived
    key drops the short words ("use gpt") that carry the request.
    """
    key = CLASSIFICATION_KEY_PREFIX + derive_cache_key(text)
    provider = explicit_provider(text)
    if provider is not None:
        key += f"@{provider.lower()}"
    return key


class Router:
    """Classifies and routes requests, caching decisions in the llm namespace."""

    def __init__(
        self,
        cache: TieredCache | None = None,
        pattern_matcher: PatternMatcher | None = None,
        classifier: ProbabilisticClassifier | None = None,
        oracle: ConnectionOracle | None = None,
        sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS,
    ):
        """Initialize Router.

        Args:
            cache: Decision cache. Defaults to an in-memory TieredCache.
            pattern_matcher: Automation matcher. Defaults to the standard templates.
            classifier: Probabilistic classifier. Defaults to keyword scoring only.
            oracle: Service-connection oracle. None skips connection checks.
            sweep_interval: Seconds between background sweeps of the cache.
        """
        self.cache = cache or TieredCache()
        self.pattern_matcher = pattern_matcher or PatternMatcher()
        self.classifier = classifier or ProbabilisticClassifier()
        self.oracle = oracle
        self.sweeper = CacheSweeper(self.cache, interval_seconds=sweep_interval)

    # === LIFECYCLE ===

    def start(self) -> None:
        """Start background cache maintenance. Must be called from a running event loop."""
        self.sweeper.start()

    async def aclose(self) -> None:
        """Stop background work and release the classifier's resources."""
        await self.sweeper.stop()
        await self.cache.drain()
        await self.classifier.aclose()

    async def __aenter__(self) -> "Router":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # === CLASSIFICATION ===

    async def classify(self, text: str, context: ClassificationContext | None = None) -> str:
        """Pick the provider for a request.

        Args:
            text: Raw request text.
            context: Optional caller preference and provider availability.

        Returns:
            Provider id. Never raises; failures yield the safe default.
        """
        result = await self.classify_detailed(text, context)
        return result.provider

    async def classify_detailed(
        self,
        text: str,
        context: ClassificationContext | None = None,
    ) -> ClassificationResult:
        """Classify a request and return the full decision.

        Args:
            text: Raw request text.
            context: Optional caller preference and provider availability.

        Returns:
            ClassificationResult. Never raises; failures yield the safe default.
        """
        context = context or ClassificationContext()
        key = classification_key(text)

        async def fetch() -> ClassificationResult:
            return await self._decide(text, context)

        try:
            return await self.cache.get_with_revalidate(LLM_NAMESPACE, key, fetch)
        except Exception as e:
            logger.warning(f"Classification failed, using {SAFE_DEFAULT_PROVIDER}: {e}")
            return safe_default_result(f"Classification failed: {e}")

    async def _decide(self, text: str, context: ClassificationContext) -> ClassificationResult:
        rule_result = self._classify_rules(text)
        if rule_result is not None and rule_result.confidence > RULE_ACCEPT_THRESHOLD:
            logger.debug(f"Rule classification: {rule_result.category} -> {rule_result.provider}")
            return rule_result

        ml_result = await self.classifier.classify(text)
        if (
            ml_result.source != ClassificationSource.FALLBACK
            and ml_result.confidence >= CLASSIFIER_ACCEPT_THRESHOLD
        ):
            logger.debug(f"Classifier result: {ml_result.category} -> {ml_result.provider}")
            return ml_result

        return self._fallback(context)

    def _classify_rules(self, text: str) -> ClassificationResult | None:
        provider = explicit_provider(text)
        if provider is not None:
            return ClassificationResult(
                category=EXPLICIT_REQUEST,
                provider=provider,
                confidence=EXPLICIT_REQUEST_CONFIDENCE,
                source=ClassificationSource.RULE,
                reasoning=f"User explicitly requested {provider}",
            )

        match = self.pattern_matcher.match(text)
        if match is not None:
            return ClassificationResult(
                category=AUTOMATION,
                provider=SAFE_DEFAULT_PROVIDER,
                confidence=match.confidence,
                source=ClassificationSource.RULE,
                reasoning=f"Matched automation template {match.type}/{match.service}",
            )
        return None

    def _fallback(self, context: ClassificationContext) -> ClassificationResult:
        """Choose a provider without a confident classification."""
        if is_known_provider(context.user_preference):
            provider = context.user_preference
            reasoning = "Using user preference"
        else:
            provider = next(
                (
                    p
                    for p in PROVIDERS
                    if context.service_status.get(p) == PROVIDER_AVAILABLE_STATUS
                ),
                None,
            )
            if provider is not None:
                reasoning = "Using first available provider"
            else:
                provider = SAFE_DEFAULT_PROVIDER
                reasoning = "Using safe default provider"

        logger.debug(f"Fallback routing to {provider}: {reasoning}")
        return ClassificationResult(
            category=FALLBACK,
            provider=provider,
            confidence=FALLBACK_CONFIDENCE,
            source=ClassificationSource.FALLBACK,
            reasoning=reasoning,
        )

    # === AUTOMATION ===

    async def detect_automation(
        self,
        text: str,
        user_id: str | None = None,
    ) -> AutomationMatch | None:
        """Detect an automation command in a request.

        Templates are tried first. When none matches and the text opens with an
        action word, the semantic classifier (if configured) is asked instead.

        Args:
            text: Raw request text.
            user_id: User whose service connections are checked. None skips the check.

        Returns:
            AutomationMatch with missing parameters and connection status filled
            in, or None when the text is not an automation or detection failed.
        """
        try:
            key = AUTOMATION_KEY_PREFIX + normalize(text)
            match = self.cache.get(LLM_NAMESPACE, key)
            if match is None:
                match = self.pattern_matcher.match(text)
                if match is None and is_likely_automation(text):
                    match = await self._detect_semantic(text)
                if match is None:
                    return None
                if match.confidence > RULE_ACCEPT_THRESHOLD:
                    self.cache.set(LLM_NAMESPACE, key, match)

            match = match.model_copy(update={"original_text": text})
            match = self._attach_validation(match)
            return await self._check_connections(match, user_id)
        except Exception as e:
            logger.warning(f"Automation detection failed: {e}")
            return None

    async def _detect_semantic(self, text: str) -> AutomationMatch | None:
        """Semantic fallback for action-word requests no template matched."""
        templates = self.pattern_matcher.templates
        automation_types = list(dict.fromkeys(t.type for t in templates))
        services = list(dict.fromkeys(t.service for t in templates))

        verdict = await self.classifier.detect_automation(text, automation_types, services)
        if verdict is None:
            return None

        template = self.pattern_matcher.template_for(verdict.type, verdict.service)
        if template is None:
            logger.debug(f"No template for semantic automation {verdict.type}/{verdict.service}")
            return None

        logger.debug(f"Semantic automation: {verdict.type}/{verdict.service}")
        return build_match(template, verdict.params, verdict.confidence, text)

    def _attach_validation(self, match: AutomationMatch) -> AutomationMatch:
        """Return a copy of the match with its missing required parameters recorded."""
        validation = validate_automation(match, self.pattern_matcher.templates)
        if not validation.valid:
            logger.debug(f"Automation {match.type} is missing {validation.missing_fields}")
        return match.model_copy(
            update={
                "missing_fields": validation.missing_fields,
                "validation_errors": validation.errors,
            }
        )

    async def _check_connections(
        self,
        match: AutomationMatch,
        user_id: str | None,
    ) -> AutomationMatch:
        """Return a copy of the match with unmet required services recorded."""
        if self.oracle is None or user_id is None:
            return match

        unmet: list[str] = []
        for service_id in match.required_services:
            try:
                connected = await self.oracle.is_connected(user_id, service_id)
            except Exception as e:
                logger.warning(f"Connection check failed for {service_id}: {e}")
                connected = False
            if not connected:
                unmet.append(service_id)

        return match.model_copy(update={"needs_connection": bool(unmet), "unmet_services": unmet})

    # === ROUTING ===

    async def route(
        self,
        text: str,
        context: ClassificationContext | None = None,
        user_id: str | None = None,
    ) -> RouteDecision:
        """Decide whether a request is an automation command or a query.

        Args:
            text: Raw request text.
            context: Optional caller preference and provider availability.
            user_id: User whose service connections are checked.

        Returns:
            RouteDecision carrying either the automation match or the classification.
        """
        automation = await self.detect_automation(text, user_id)
        if automation is not None:
            return RouteDecision(kind=RequestKind.AUTOMATION, automation=automation)

        classification = await self.classify_detailed(text, context)
        return RouteDecision(kind=RequestKind.QUERY, classification=classification)
