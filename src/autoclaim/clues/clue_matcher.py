"""Keyword and publish-time predicate deciding whether a clue is worth claiming."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from autoclaim.clue_queue.clue import Clue, TaskType
from autoclaim.sessions.session_config import PublishWindow, SessionConfig


@dataclass(frozen=True, slots=True)
class ClueFilters:
    task_type: TaskType
    include_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    publish_window: Optional[PublishWindow] = None

    def __post_init__(self) -> None:
        # Keywords are compared lower-cased; normalize once instead of per clue
        object.__setattr__(
            self,
            "include_keywords",
            tuple(keyword.lower() for keyword in self.include_keywords if keyword),
        )
        object.__setattr__(
            self,
            "exclude_keywords",
            tuple(keyword.lower() for keyword in self.exclude_keywords if keyword),
        )

    @classmethod
    def from_config(cls, config: SessionConfig) -> ClueFilters:
        return cls(
            task_type=config.task_type,
            include_keywords=config.include_keywords,
            exclude_keywords=config.exclude_keywords,
            publish_window=config.publish_window,
        )

    @property
    def uses_time_window(self) -> bool:
        return self.task_type is TaskType.PRODUCE and self.publish_window is not None


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def matches(clue: Clue, filters: ClueFilters) -> bool:
    text = clue.searchable_text.lower()

    if filters.include_keywords and not _contains_any(text, filters.include_keywords):
        return False

    # Exclusion wins over inclusion
    if filters.exclude_keywords and _contains_any(text, filters.exclude_keywords):
        return False

    if filters.uses_time_window:
        if clue.dispatch_time is None:
            return False
        if not filters.publish_window.contains(clue.dispatch_time):
            return False

    return True
