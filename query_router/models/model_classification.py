"""Classification and routing models."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from query_router.models.model_automation import AutomationMatch


# === Enums ===


class ClassificationSource(str, Enum):
    """Which stage produced a classification."""

    RULE = "rule"  # Explicit provider request or automation template
    ML = "ml"  # Keyword scoring or external semantic classifier
    FALLBACK = "fallback"  # Context preference, availability map or safe default


class RequestKind(str, Enum):
    """Whether a request is an automation command or a conversational query."""

    AUTOMATION = "automation"
    QUERY = "query"


# === Pydantic Models (for serialization/validation) ===


class ClassificationContext(BaseModel):
    """Optional caller context used by the fallback policy."""

    user_preference: str | None = Field(default=None, description="Explicit provider id")
    service_status: dict[str, str] = Field(
        default_factory=dict, description="Provider id -> status ('available', ...)"
    )


class ClassificationRequest(BaseModel):
    """Raw request text with its optional context."""

    text: str
    context: ClassificationContext = Field(default_factory=ClassificationContext)


class ClassificationResult(BaseModel):
    """Routing decision for one request. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    category: str
    provider: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: ClassificationSource
    reasoning: str | None = None


class SemanticVerdict(BaseModel):
    """Reply schema of the external semantic classifier."""

    model_config = ConfigDict(extra="ignore")

    category: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str


class RouteDecision(BaseModel):
    """Combined decision: automation command or provider-routed query."""

    kind: RequestKind
    automation: AutomationMatch | None = None
    classification: ClassificationResult | None = None


# === Dataclasses (lightweight internal types) ===


@dataclass
class KeywordScore:
    """Keyword matches collected for one category."""

    category: str
    matched: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.matched)
