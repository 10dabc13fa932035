"""Cache entry and namespace configuration models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from query_router.models.common import _utc_now


class EvictionPolicy(str, Enum):
    """How a full namespace chooses its victim."""

    AGE_FREQUENCY = "age_frequency"  # Lowest (age_hours - ln(access_count + 1)) goes first


class NamespaceConfig(BaseModel):
    """Configuration of one independent cache partition."""

    name: str
    default_ttl: float = Field(gt=0, description="Default TTL in seconds")
    max_entries: int = Field(gt=0)
    eviction_policy: EvictionPolicy = EvictionPolicy.AGE_FREQUENCY
    persistent: bool = Field(default=False, description="Mirror to the persistent store")


class CacheEntry(BaseModel):
    """A cached value with its lifetime and access metadata."""

    value: Any
    inserted_at: datetime = Field(default_factory=_utc_now)
    expires_at: datetime
    access_count: int = Field(default=0, ge=0)
    last_accessed: datetime | None = None

    @model_validator(mode="after")
    def expires_after_insert(self) -> "CacheEntry":
        """Validate that the entry expires after it was inserted."""
        if self.expires_at <= self.inserted_at:
            msg = "expires_at must be later than inserted_at"
            raise ValueError(msg)
        return self

    @property
    def ttl_seconds(self) -> float:
        """Total lifetime window of the entry."""
        return (self.expires_at - self.inserted_at).total_seconds()

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
