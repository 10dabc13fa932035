"""External semantic classifier client.

The classifier is any chat-completions endpoint that can be told to reply with
a JSON object `{"category": ..., "confidence": ..., "reasoning": ...}`. The same
endpoint can optionally be asked whether a request is an automation. Every
failure mode (transport, HTTP status, malformed JSON, schema violation,
unknown category) surfaces as ClassifierUnavailable so the caller can degrade.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from query_router.classification.keywords import CATEGORY_DESCRIPTIONS
from query_router.consts import (
    SEMANTIC_CLASSIFIER_API_KEY_ENV,
    SEMANTIC_CLASSIFIER_DEFAULT_MODEL,
    SEMANTIC_CLASSIFIER_DEFAULT_URL,
    SEMANTIC_CLASSIFIER_MODEL_ENV,
    SEMANTIC_CLASSIFIER_TIMEOUT_SECONDS,
    SEMANTIC_CLASSIFIER_URL_ENV,
)
from query_router.errors import ClassifierUnavailable
from query_router.models import SemanticAutomationVerdict, SemanticVerdict

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a request classifier. Classify the user's request into exactly one "
    "of the allowed categories and reply with JSON only, in the form "
    '{"category": "<CATEGORY>", "confidence": <0.0-1.0>, "reasoning": "<short reason>"}.'
)

AUTOMATION_SYSTEM_PROMPT = (
    "You are an automation detection system. Decide whether the user's message asks "
    "for one of the allowed automations and reply with JSON only, in the form "
    '{"isAutomation": true/false, "type": "<type>", "service": "<service>", '
    '"params": {"<name>": "<value>"}, "confidence": <0.0-1.0>, '
    '"requiredServices": ["<service>"]}. '
    "If the message is not an automation request, set isAutomation to false."
)


class SemanticClassifier(ABC):
    """Classifies free text into one of a closed set of categories."""

    @abstractmethod
    async def classify(self, text: str, allowed_categories: Sequence[str]) -> SemanticVerdict:
        """Classify text.

        Args:
            text: Raw request text.
            allowed_categories: Categories the verdict must come from.

        Returns:
            Validated verdict.

        Raises:
            ClassifierUnavailable: If no valid verdict could be obtained.
        """

    async def detect_automation(
        self,
        text: str,
        automation_types: Sequence[str],
        services: Sequence[str],
    ) -> SemanticAutomationVerdict:
        """Ask whether text is an automation request.

        Optional; classifiers that cannot do this leave the default, which
        reports itself unavailable.

        Args:
            text: Raw request text.
            automation_types: Types a positive verdict must come from.
            services: Services a positive verdict must come from.

        Returns:
            Validated verdict.

        Raises:
            ClassifierUnavailable: If no valid verdict could be obtained.
        """
        raise ClassifierUnavailable(f"{type(self).__name__} cannot detect automations")

    async def aclose(self) -> None:
        """Release any held resources."""


def build_prompt(text: str, allowed_categories: Sequence[str]) -> str:
    """Build the user message listing the allowed categories."""
    lines = [
        f"- {category}: {CATEGORY_DESCRIPTIONS[category]}"
        if category in CATEGORY_DESCRIPTIONS
        else f"- {category}"
        for category in allowed_categories
    ]
    categories = "\n".join(lines)
    return f"Allowed categories:\n{categories}\n\nRequest:\n{text}"


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if content.startswith("```"):
        return content.split("```")[1].split("```")[0].strip()
    return content


def build_automation_prompt(
    text: str,
    automation_types: Sequence[str],
    services: Sequence[str],
) -> str:
    """Build the user message for automation detection."""
    return (
        f"Automation types: {', '.join(automation_types)}.\n"
        f"Services: {', '.join(services)}.\n\n"
        f"Analyze this message for automation intent:\n{text}"
    )


def _load_json_object(content: str) -> dict[str, Any]:
    try:
        data = json.loads(_strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise ClassifierUnavailable(f"Classifier reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ClassifierUnavailable("Classifier reply is not a JSON object")
    return data


def parse_verdict(content: str, allowed_categories: Sequence[str]) -> SemanticVerdict:
    """Parse and validate a classifier reply.

    Args:
        content: Raw message content, optionally wrapped in a markdown code fence.
        allowed_categories: Categories the verdict must come from.

    Returns:
        Validated verdict with an upper-cased category.

    Raises:
        ClassifierUnavailable: On malformed JSON, schema violation or unknown category.
    """
    data = _load_json_object(content)

    try:
        verdict = SemanticVerdict.model_validate(data)
    except ValidationError as e:
        raise ClassifierUnavailable(f"Classifier reply failed validation: {e}") from e

    category = verdict.category.strip().upper()
    if category not in allowed_categories:
        raise ClassifierUnavailable(f"Classifier returned unknown category: {verdict.category}")

    return verdict.model_copy(update={"category": category})


def parse_automation_verdict(
    content: str,
    automation_types: Sequence[str],
    services: Sequence[str],
) -> SemanticAutomationVerdict:
    """Parse and validate an automation-detection reply.

    A negative verdict is returned as-is. A positive one must name a known
    type and service; both are lower-cased.

    Raises:
        ClassifierUnavailable: On malformed JSON, schema violation, or an unknown
            type or service in a positive verdict.
    """
    data = _load_json_object(content)

    try:
        verdict = SemanticAutomationVerdict.model_validate(data)
    except ValidationError as e:
        raise ClassifierUnavailable(f"Automation reply failed validation: {e}") from e

    if not verdict.is_automation:
        return verdict

    automation_type = verdict.type.strip().lower()
    service = verdict.service.strip().lower()
    if automation_type not in automation_types:
        raise ClassifierUnavailable(f"Classifier returned unknown automation type: {verdict.type}")
    if service not in services:
        raise ClassifierUnavailable(f"Classifier returned unknown service: {verdict.service}")

    return verdict.model_copy(update={"type": automation_type, "service": service})


class HttpSemanticClassifier(SemanticClassifier):
    """OpenAI-compatible chat-completions classifier over httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = SEMANTIC_CLASSIFIER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HttpSemanticClassifier.

        Args:
            base_url: API base URL. Falls back to QUERY_ROUTER_SEMANTIC_URL.
            api_key: Bearer token. Falls back to QUERY_ROUTER_SEMANTIC_API_KEY.
            model: Model name. Falls back to QUERY_ROUTER_SEMANTIC_MODEL.
            timeout: HTTP timeout in seconds.
            transport: Custom httpx transport (used for testing).
        """
        self.base_url = (
            base_url or os.getenv(SEMANTIC_CLASSIFIER_URL_ENV) or SEMANTIC_CLASSIFIER_DEFAULT_URL
        ).rstrip("/")
        self.api_key = api_key or os.getenv(SEMANTIC_CLASSIFIER_API_KEY_ENV)
        self.model = (
            model or os.getenv(SEMANTIC_CLASSIFIER_MODEL_ENV) or SEMANTIC_CLASSIFIER_DEFAULT_MODEL
        )
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def _payload(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat completion and return the message content.

        Raises:
            ClassifierUnavailable: On transport or HTTP errors, or a reply without text.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                "/chat/completions", json=self._payload(system_prompt, user_prompt)
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise ClassifierUnavailable(
                f"Classifier returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ClassifierUnavailable(f"Classifier request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise ClassifierUnavailable(f"Classifier response is not JSON: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ClassifierUnavailable("Classifier response has no message content") from e

        if not isinstance(content, str):
            raise ClassifierUnavailable("Classifier message content is not text")
        return content

    async def classify(self, text: str, allowed_categories: Sequence[str]) -> SemanticVerdict:
        content = await self._complete(SYSTEM_PROMPT, build_prompt(text, allowed_categories))
        verdict = parse_verdict(content, allowed_categories)
        logger.debug(f"Semantic classifier: {verdict.category} ({verdict.confidence:.2f})")
        return verdict

    async def detect_automation(
        self,
        text: str,
        automation_types: Sequence[str],
        services: Sequence[str],
    ) -> SemanticAutomationVerdict:
        content = await self._complete(
            AUTOMATION_SYSTEM_PROMPT, build_automation_prompt(text, automation_types, services)
        )
        verdict = parse_automation_verdict(content, automation_types, services)
        logger.debug(
            f"Semantic automation detection: {verdict.is_automation} "
            f"{verdict.type}/{verdict.service} ({verdict.confidence:.2f})"
        )
        return verdict

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
