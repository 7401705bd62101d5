# src/models/conversation.py

"""Conversation turns and the shopping constraints extracted from them."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class HistoryTurn:
    """One stored exchange: what the user wrote and what was answered."""

    text: str
    response: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ExtractedConstraints:
    """Shopping constraints parsed from one message (plus history).

    Empty values mean *absent*; callers use the ``has_*`` properties
    instead of comparing against defaults.
    """

    budget: int = 0
    category: str = ""
    brands: list[str] = field(
        default_factory=lambda: list[str]()
    )
    purpose: str = ""
    model_tokens: list[str] = field(
        default_factory=lambda: list[str]()
    )
    budget_explicit: bool = False
    is_inquiry: bool = False

    @property
    def has_budget(self) -> bool:
        return self.budget > 0

    @property
    def has_category(self) -> bool:
        return bool(self.category.strip())

    @property
    def has_purpose(self) -> bool:
        return bool(self.purpose.strip())

    @property
    def has_brands(self) -> bool:
        return len(self.brands) > 0
