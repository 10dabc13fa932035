"""Automation detection models."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from re import Pattern
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AutomationMatch(BaseModel):
    """An automation request detected in user text."""

    type: str
    service: str
    params: dict[str, str] = Field(default_factory=dict)
    required_services: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    confirmation_message: str = ""
    original_text: str
    needs_connection: bool = False
    unmet_services: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)  # Unsatisfied required params
    validation_errors: list[str] = Field(default_factory=list)

    @property
    def executable(self) -> bool:
        """Whether every required parameter and service is in place."""
        return not self.missing_fields and not self.needs_connection


class SemanticAutomationVerdict(BaseModel):
    """Reply schema of the external classifier when asked to detect an automation."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    is_automation: bool = Field(alias="isAutomation")
    type: str = ""
    service: str = ""
    params: dict[str, str] = Field(default_factory=dict)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    required_services: list[str] = Field(default_factory=list, alias="requiredServices")

    @field_validator("params", mode="before")
    @classmethod
    def stringify_params(cls, value: Any) -> Any:
        """Models reply with numbers for amounts and nulls for absent fields."""
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value


class AutomationValidation(BaseModel):
    """Outcome of checking a match for its required parameters."""

    valid: bool
    missing_fields: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# === Template Dataclasses ===


@dataclass(frozen=True)
class ParamSpec:
    """How to pull one parameter out of a regex match."""

    name: str
    group: int
    default: str = ""
    strip_chars: str = ""  # Characters removed from the captured value


@dataclass(frozen=True)
class AutomationTemplate:
    """A typed automation pattern.

    `required_params` is a tuple of groups; each group is satisfied when any
    one of its fields is non-empty.
    """

    type: str
    service: str
    pattern: Pattern[str]
    params: tuple[ParamSpec, ...]
    required_services: tuple[str, ...]
    confirmation_template: str
    required_params: tuple[tuple[str, ...], ...] = field(default_factory=tuple)

    def extract(self, groups: tuple[str | None, ...]) -> dict[str, str]:
        """Build the parameter map from regex groups (group 1 is index 0)."""
        raw = {
            param.name: groups[param.group - 1] if param.group <= len(groups) else None
            for param in self.params
        }
        return self.resolve_params(raw)

    def resolve_params(self, raw: Mapping[str, str | None]) -> dict[str, str]:
        """Clean raw values for the declared params and apply defaults. Drops unknown names."""
        resolved: dict[str, str] = {}
        for param in self.params:
            value = raw.get(param.name)
            value = value.strip() if value else ""
            if param.strip_chars:
                for char in param.strip_chars:
                    value = value.replace(char, "")
            resolved[param.name] = value or param.default
        return resolved
