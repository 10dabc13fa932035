"""Tests for the request router."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeClock

from query_router.automation.connections import StaticConnectionOracle
from query_router.automation.pattern_matcher import PatternMatcher
from query_router.classification.probabilistic import ProbabilisticClassifier
from query_router.classification.tokenize import derive_cache_key, normalize
from query_router.consts import AUTOMATION_KEY_PREFIX, CLASSIFICATION_KEY_PREFIX, LLM_NAMESPACE
from query_router.errors import ClassifierUnavailable
from query_router.models import (
    ClassificationContext,
    ClassificationResult,
    ClassificationSource,
    RequestKind,
    SemanticAutomationVerdict,
    SemanticVerdict,
)
from query_router.router import Router, classification_key
from query_router.storage.cache.tiered_cache import TieredCache

WHATSAPP_TEXT = "send a whatsapp message to John saying hi"


def make_semantic(
    verdict: SemanticVerdict | None = None,
    error: Exception | None = None,
) -> MagicMock:
    semantic = MagicMock()
    semantic.classify = AsyncMock(return_value=verdict, side_effect=error)
    semantic.aclose = AsyncMock()
    return semantic


def make_automation_semantic(
    verdict: SemanticAutomationVerdict | None = None,
    error: Exception | None = None,
) -> MagicMock:
    semantic = make_semantic()
    semantic.detect_automation = AsyncMock(return_value=verdict, side_effect=error)
    return semantic


@pytest.fixture
def router(cache: TieredCache) -> Router:
    """Create a router with keyword-only classification."""
    return Router(cache=cache)


class TestClassify:
    """Tests for Router.classify / classify_detailed."""

    @pytest.mark.asyncio
    async def test_keyword_classification(self, router: Router) -> None:
        assert await router.classify("write a python function") == "CLAUDE"

        result = await router.classify_detailed("write a python function")
        assert result.category == "CODING"
        assert result.source == ClassificationSource.ML

    @pytest.mark.asyncio
    async def test_current_events_route_to_search_provider(self, router: Router) -> None:
        assert await router.classify("what happened in the news today") == "PERPLEXITY"

    @pytest.mark.asyncio
    async def test_explicit_provider_request(self, router: Router) -> None:
        """Test 'use <provider>' beats keyword scoring."""
        result = await router.classify_detailed("use deepseek to write a python function")

        assert result.provider == "DEEPSEEK"
        assert result.category == "EXPLICIT_REQUEST"
        assert result.confidence == 0.95
        assert result.source == ClassificationSource.RULE

    @pytest.mark.asyncio
    async def test_automation_text_uses_safe_provider(self, router: Router) -> None:
        result = await router.classify_detailed(WHATSAPP_TEXT)

        assert result.category == "AUTOMATION"
        assert result.provider == "OPENAI"
        assert result.confidence == 0.9
        assert result.source == ClassificationSource.RULE

    @pytest.mark.asyncio
    async def test_result_is_cached(self, router: Router, cache: TieredCache) -> None:
        result = await router.classify_detailed("write a python function")
        key = CLASSIFICATION_KEY_PREFIX + derive_cache_key("write a python function")
        assert cache.get(LLM_NAMESPACE, key) == result

    @pytest.mark.asyncio
    async def test_reordered_paraphrase_hits_cache(self, cache: TieredCache) -> None:
        """Test the semantic classifier runs once for two orderings of the same words."""
        semantic = make_semantic(
            SemanticVerdict(category="EMOTIONAL", confidence=0.9, reasoning="greeting")
        )
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        first = await router.classify_detailed("hello there")
        second = await router.classify_detailed("there, hello")

        assert first == second
        semantic.classify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_result_revalidated_in_background(
        self, cache: TieredCache, clock: FakeClock
    ) -> None:
        """Test a stale hit returns the old decision and refreshes it afterwards."""
        semantic = make_semantic(
            SemanticVerdict(category="EMOTIONAL", confidence=0.9, reasoning="v1")
        )
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))
        assert (await router.classify_detailed("hello there")).reasoning == "v1"

        semantic.classify.return_value = SemanticVerdict(
            category="RESEARCH", confidence=0.9, reasoning="v2"
        )
        clock.advance(3600 * 0.8)

        stale = await router.classify_detailed("hello there")
        assert stale.reasoning == "v1"

        await cache.drain()
        fresh = await router.classify_detailed("hello there")
        assert fresh.reasoning == "v2"
        assert fresh.provider == "PERPLEXITY"

    @pytest.mark.asyncio
    async def test_question_with_music_verb_is_a_query(self, router: Router) -> None:
        result = await router.classify_detailed("how do I start writing python code")

        assert result.category == "CODING"
        assert result.provider == "CLAUDE"
        assert result.source == ClassificationSource.ML
        assert await router.detect_automation("explain how to start a business") is None

    @pytest.mark.asyncio
    async def test_explicit_provider_not_served_from_plain_entry(self, router: Router) -> None:
        """Test 'use gpt to X' is not answered by the cached decision for 'X'."""
        assert await router.classify("explain python code") == "CLAUDE"

        result = await router.classify_detailed("use gpt to explain python code")
        assert result.category == "EXPLICIT_REQUEST"
        assert result.provider == "OPENAI"

    def test_classification_key_includes_explicit_provider(self) -> None:
        assert derive_cache_key("use gpt to explain code") == derive_cache_key("explain code")
        assert classification_key("use gpt to explain code") != classification_key("explain code")
        assert classification_key("use deepseek to explain code") != classification_key(
            "use gpt to explain code"
        )
        assert classification_key("explain code") == (
            CLASSIFICATION_KEY_PREFIX + derive_cache_key("explain code")
        )



class TestFallback:
    """Tests for the fallback policy."""

    @pytest.mark.asyncio
    async def test_user_preference(self, router: Router) -> None:
        context = ClassificationContext(user_preference="DEEPSEEK")
        result = await router.classify_detailed("hello there", context)

        assert result.provider == "DEEPSEEK"
        assert result.source == ClassificationSource.FALLBACK
        assert result.confidence == 0.5

    @pytest.mark.asyncio
    async def test_first_available_provider(self, router: Router) -> None:
        """Test unknown preference falls through to availability in declaration order."""
        context = ClassificationContext(
            user_preference="BARD",
            service_status={
                "DEEPSEEK": "available",
                "CLAUDE": "degraded",
                "PERPLEXITY": "available",
            },
        )
        assert await router.classify("hello there", context) == "PERPLEXITY"

    @pytest.mark.asyncio
    async def test_safe_default(self, router: Router) -> None:
        context = ClassificationContext(service_status={"CLAUDE": "down"})
        assert await router.classify("hello there", context) == "OPENAI"

    @pytest.mark.asyncio
    async def test_low_confidence_classifier_result_falls_back(self, cache: TieredCache) -> None:
        """Test results below 0.6 are not accepted."""
        semantic = make_semantic(SemanticVerdict(category="CODING", confidence=0.4, reasoning="?"))
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        context = ClassificationContext(user_preference="PERPLEXITY")
        result = await router.classify_detailed("hello there", context)
        assert result.provider == "PERPLEXITY"
        assert result.source == ClassificationSource.FALLBACK

    @pytest.mark.asyncio
    async def test_zero_matches_and_failing_classifier(self, cache: TieredCache) -> None:
        """Test no keyword match plus a failing classifier still returns the safe provider."""
        semantic = make_semantic(error=RuntimeError("classifier down"))
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.classify("hello there") == "OPENAI"

    @pytest.mark.asyncio
    async def test_unexpected_failure_fails_open(self, cache: TieredCache) -> None:
        """Test a crashing classifier yields the safe default and nothing is cached."""
        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=RuntimeError("bug"))
        router = Router(cache=cache, classifier=classifier)

        result = await router.classify_detailed("hello there")

        assert result.provider == "OPENAI"
        assert result.source == ClassificationSource.FALLBACK
        assert cache.size(LLM_NAMESPACE) == 0


class TestDetectAutomation:
    """Tests for Router.detect_automation."""

    @pytest.mark.asyncio
    async def test_detects_and_caches(self, router: Router, cache: TieredCache) -> None:
        match = await router.detect_automation(WHATSAPP_TEXT)

        assert match is not None
        assert match.type == "message_schedule"
        assert not match.needs_connection
        assert cache.exists(LLM_NAMESPACE, AUTOMATION_KEY_PREFIX + normalize(WHATSAPP_TEXT))

    @pytest.mark.asyncio
    async def test_cache_hit_skips_matcher(self, cache: TieredCache) -> None:
        matcher = MagicMock(wraps=PatternMatcher())
        router = Router(cache=cache, pattern_matcher=matcher)

        await router.detect_automation(WHATSAPP_TEXT)
        again = await router.detect_automation(WHATSAPP_TEXT)

        assert again is not None
        assert matcher.match.call_count == 1

    @pytest.mark.asyncio
    async def test_not_an_automation(self, router: Router) -> None:
        assert await router.detect_automation("what is the capital of France") is None

    @pytest.mark.asyncio
    async def test_connected_service(self, cache: TieredCache) -> None:
        oracle = StaticConnectionOracle({"u1": ["whatsapp"]})
        router = Router(cache=cache, oracle=oracle)

        match = await router.detect_automation(WHATSAPP_TEXT, "u1")
        assert match is not None
        assert not match.needs_connection
        assert match.unmet_services == []

    @pytest.mark.asyncio
    async def test_missing_connection(self, cache: TieredCache) -> None:
        oracle = StaticConnectionOracle({"u1": ["gmail"]})
        router = Router(cache=cache, oracle=oracle)

        match = await router.detect_automation(WHATSAPP_TEXT, "u1")
        assert match is not None
        assert match.needs_connection
        assert match.unmet_services == ["whatsapp"]

    @pytest.mark.asyncio
    async def test_connection_status_not_cached(self, cache: TieredCache) -> None:
        """Test one user's connection status does not leak to another."""
        oracle = StaticConnectionOracle({"u1": ["whatsapp"]})
        router = Router(cache=cache, oracle=oracle)

        assert (await router.detect_automation(WHATSAPP_TEXT, "u2")).needs_connection
        assert not (await router.detect_automation(WHATSAPP_TEXT, "u1")).needs_connection

    @pytest.mark.asyncio
    async def test_oracle_error_counts_as_not_connected(self, cache: TieredCache) -> None:
        oracle = MagicMock()
        oracle.is_connected = AsyncMock(side_effect=ConnectionError("oauth store down"))
        router = Router(cache=cache, oracle=oracle)

        match = await router.detect_automation(WHATSAPP_TEXT, "u1")
        assert match is not None
        assert match.needs_connection
        assert match.unmet_services == ["whatsapp"]

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, cache: TieredCache) -> None:
        matcher = MagicMock()
        matcher.match.side_effect = RuntimeError("bad template")
        router = Router(cache=cache, pattern_matcher=matcher)

        assert await router.detect_automation(WHATSAPP_TEXT) is None

    @pytest.mark.asyncio
    async def test_complete_match_is_executable(self, router: Router) -> None:
        match = await router.detect_automation(WHATSAPP_TEXT)

        assert match is not None
        assert match.missing_fields == []
        assert match.validation_errors == []
        assert match.executable

    @pytest.mark.asyncio
    async def test_missing_parameters_reported(self, router: Router) -> None:
        match = await router.detect_automation("schedule a meeting with Bob")

        assert match is not None
        assert match.type == "calendar_event"
        assert match.params["title"] == "Bob"
        assert match.missing_fields == ["time"]
        assert match.validation_errors == ["Time is required"]
        assert not match.executable

    @pytest.mark.asyncio
    async def test_missing_parameters_reported_on_cache_hit(self, router: Router) -> None:
        await router.detect_automation("schedule a meeting with Bob")
        again = await router.detect_automation("schedule a meeting with Bob")

        assert again is not None
        assert again.missing_fields == ["time"]


class TestSemanticAutomation:
    """Tests for the semantic fallback in Router.detect_automation."""

    @pytest.mark.asyncio
    async def test_semantic_hit(self, cache: TieredCache) -> None:
        verdict = SemanticAutomationVerdict(
            is_automation=True,
            type="payment",
            service="venmo",
            params={"amount": "$20", "recipient": "Bob"},
            confidence=0.85,
        )
        semantic = make_automation_semantic(verdict)
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        text = "pay Bob back twenty bucks"
        match = await router.detect_automation(text)

        assert match is not None
        assert match.type == "payment"
        assert match.service == "venmo"
        assert match.params == {"amount": "20", "recipient": "Bob", "description": ""}
        assert match.required_services == ["venmo"]
        assert match.confidence == 0.85
        assert match.confirmation_message == "Send $20 to Bob via Venmo"
        assert match.missing_fields == []
        assert cache.exists(LLM_NAMESPACE, AUTOMATION_KEY_PREFIX + normalize(text))

        args = semantic.detect_automation.await_args.args
        assert args[0] == text
        assert "payment" in args[1]
        assert "venmo" in args[2]

    @pytest.mark.asyncio
    async def test_semantic_defaults_and_missing_fields(self, cache: TieredCache) -> None:
        verdict = SemanticAutomationVerdict(
            is_automation=True, type="ride_request", service="uber", params={}, confidence=0.6
        )
        semantic = make_automation_semantic(verdict)
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        text = "get me somewhere fast"
        match = await router.detect_automation(text)

        assert match is not None
        assert match.params["time"] == "now"
        assert match.missing_fields == ["destination"]
        assert not cache.exists(LLM_NAMESPACE, AUTOMATION_KEY_PREFIX + normalize(text))

    @pytest.mark.asyncio
    async def test_semantic_unavailable(self, cache: TieredCache) -> None:
        semantic = make_automation_semantic(error=ClassifierUnavailable("HTTP 503"))
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.detect_automation("pay Bob back twenty bucks") is None
        semantic.detect_automation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_semantic_negative(self, cache: TieredCache) -> None:
        semantic = make_automation_semantic(SemanticAutomationVerdict(is_automation=False))
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.detect_automation("make my day") is None

    @pytest.mark.asyncio
    async def test_no_action_word_skips_semantic(self, cache: TieredCache) -> None:
        semantic = make_automation_semantic()
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.detect_automation("what is the capital of France") is None
        semantic.detect_automation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_template_hit_skips_semantic(self, cache: TieredCache) -> None:
        semantic = make_automation_semantic()
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.detect_automation(WHATSAPP_TEXT) is not None
        semantic.detect_automation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_type_service_pair(self, cache: TieredCache) -> None:
        verdict = SemanticAutomationVerdict(
            is_automation=True, type="payment", service="whatsapp", confidence=0.9
        )
        semantic = make_automation_semantic(verdict)
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        assert await router.detect_automation("pay Bob back twenty bucks") is None



class TestRoute:
    """Tests for Router.route."""

    @pytest.mark.asyncio
    async def test_automation(self, router: Router) -> None:
        decision = await router.route(WHATSAPP_TEXT)

        assert decision.kind == RequestKind.AUTOMATION
        assert decision.automation is not None
        assert decision.classification is None

    @pytest.mark.asyncio
    async def test_automation_carries_missing_fields(self, router: Router) -> None:
        decision = await router.route("schedule a meeting with Bob")

        assert decision.kind == RequestKind.AUTOMATION
        assert decision.automation is not None
        assert decision.automation.missing_fields == ["time"]

    @pytest.mark.asyncio
    async def test_query(self, router: Router) -> None:
        decision = await router.route("write a python function")

        assert decision.kind == RequestKind.QUERY
        assert decision.automation is None
        assert isinstance(decision.classification, ClassificationResult)
        assert decision.classification.provider == "CLAUDE"


class TestLifecycle:
    """Tests for start / aclose."""

    @pytest.mark.asyncio
    async def test_start_and_aclose(self, cache: TieredCache) -> None:
        semantic = make_semantic()
        router = Router(cache=cache, classifier=ProbabilisticClassifier(semantic=semantic))

        router.start()
        assert router.sweeper.running

        await router.aclose()
        assert not router.sweeper.running
        semantic.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, cache: TieredCache) -> None:
        async with Router(cache=cache) as router:
            assert router.sweeper.running
        assert not router.sweeper.running
