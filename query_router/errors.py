"""Error taxonomy for the routing core.

Only AutomationValidationError is meant to reach callers. The others are
raised at component boundaries and absorbed into a safe default by the
component that owns the fallback.
"""


class QueryRouterError(Exception):
    """Base class for query-router errors."""


class ClassifierUnavailable(QueryRouterError):
    """The external semantic classifier failed, timed out or replied badly."""


class CacheUnavailable(QueryRouterError):
    """The persistent store behind a cache namespace could not be read or written."""


class AutomationValidationError(QueryRouterError):
    """A detected automation is missing parameters it needs to run."""

    def __init__(self, automation_type: str, missing_fields: list[str]):
        self.automation_type = automation_type
        self.missing_fields = missing_fields
        super().__init__(
            f"Automation '{automation_type}' is missing required fields: "
            f"{', '.join(missing_fields)}"
        )
