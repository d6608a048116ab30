from dataclasses import dataclass, field
from typing import List


@dataclass
class CaseReconciliationError(Exception):
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# Known error codes
SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
ALL_SOURCES_UNAVAILABLE = "ALL_SOURCES_UNAVAILABLE"


@dataclass
class SourceUnavailable(CaseReconciliationError):
    """One store could not be read; the engine degrades it to an empty list."""

    source: str = ""

    @classmethod
    def for_source(cls, source: str, message: str) -> "SourceUnavailable":
        return cls(code=SOURCE_UNAVAILABLE, message=message, source=source)


@dataclass
class AllSourcesUnavailable(CaseReconciliationError):
    """Every enabled store failed within the same call."""

    failures: List[SourceUnavailable] = field(default_factory=list)

    @classmethod
    def from_failures(cls, failures: List[SourceUnavailable]) -> "AllSourcesUnavailable":
        sources = ", ".join(failure.source for failure in failures)
        return cls(
            code=ALL_SOURCES_UNAVAILABLE,
            message=f"no record store reachable ({sources})",
            failures=list(failures),
        )


__all__ = [
    "CaseReconciliationError",
    "SourceUnavailable",
    "AllSourcesUnavailable",
    "SOURCE_UNAVAILABLE",
    "ALL_SOURCES_UNAVAILABLE",
]
