"""Ordered substring lookup tables for per-agent estimates."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SubstringTable(Generic[T]):
    """First entry whose substring occurs in the agent id wins; ``default`` otherwise."""

    entries: tuple[tuple[str, T], ...]
    default: T

    @classmethod
    def of(cls, entries: Sequence[tuple[str, T]], default: T) -> "SubstringTable[T]":
        return cls(entries=tuple(entries), default=default)

    def match(self, agent_id: str) -> T:
        for substring, value in self.entries:
            if substring in agent_id:
                return value
        return self.default

    def with_default(self, default: T) -> "SubstringTable[T]":
        return SubstringTable(entries=self.entries, default=default)


ESTIMATED_MINUTES: SubstringTable[int] = SubstringTable.of(
    [
        ("setup", 10),
        ("developer", 30),
        ("tester", 15),
        ("runner", 10),
        ("e2e", 20),
        ("performance", 25),
        ("integrator", 15),
        ("merger", 5),
        ("migrator", 10),
        ("builder", 15),
        ("review", 10),
        ("documentation", 10),
        ("deployment", 20),
        ("summarizer", 5),
    ],
    default=15,
)

TIMEOUT_SECONDS: SubstringTable[int] = SubstringTable.of(
    [
        ("setup", 600),
        ("e2e", 900),
        ("performance", 1200),
        ("build", 600),
    ],
    default=300,
)


__all__ = ["ESTIMATED_MINUTES", "SubstringTable", "TIMEOUT_SECONDS"]
