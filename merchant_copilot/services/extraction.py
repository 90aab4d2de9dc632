"""Extract action items and follow-up tasks from generated answers.

Extraction works sentence by sentence: each sentence yields at most one
action item and at most one follow-up task.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from merchant_copilot.models.document import ActionItem, FollowupTask

_SENTENCE_RE = re.compile(r"[^.!?\n]+")

_ACTION_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(?:need to|must|should|will|action item:?|task:?|todo:?)\s+(.+)",
        r"\b(?:follow up|follow-up|callback|contact)\s+(.+)",
        r"\b(?:send|email|call|schedule|prepare|create|update|review)\s+(.+)",
    )
)

# Checked in order; "low priority" must win over the bare "priority" keyword
_PRIORITY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("low", ("low priority", "eventually", "when possible")),
    ("high", ("urgent", "asap", "immediately", "critical", "priority")),
    ("medium", ("soon", "important", "this week")),
)

_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Client Communication", ("call", "email", "contact", "follow up", "callback")),
    ("Documentation", ("send", "prepare", "create document", "proposal")),
    ("Internal Process", ("review", "update", "check", "verify")),
    ("Scheduling", ("schedule", "meeting", "appointment", "calendar")),
)

_ASSIGNEE_RE = re.compile(
    r"\b(?:assign(?:ed)? to|delegate(?:d)? to|give (?:it )?to)\s+(\w+)", re.IGNORECASE
)
_DUE_DATE_RE = re.compile(r"\b(?:by|before|due)\s+([\w ]+?)\s*(?=[,;:]|$)", re.IGNORECASE)

_FOLLOWUP_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(?:follow up|callback|call back)\s+(.+)",
        r"\b(?:schedule|set up|arrange)\s+(.+)",
        r"\b(?:next steps?:?|action:?)\s+(.+)",
    )
)

_FOLLOWUP_TYPES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("call", re.compile(r"call|phone|telephone", re.IGNORECASE)),
    ("email", re.compile(r"email|send|message", re.IGNORECASE)),
    ("meeting", re.compile(r"meeting|meet|appointment", re.IGNORECASE)),
    ("document", re.compile(r"document|proposal|prepare", re.IGNORECASE)),
)

_TIMEFRAME_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(?:in|within)\s+(\d+\s+(?:days?|weeks?|months?))",
        r"\b((?:next|this)\s+(?:week|month|quarter))",
        r"\b(tomorrow|today|asap|soon)\b",
        r"\b(?:by|on)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    )
)

MIN_ACTION_LENGTH = 10
MIN_FOLLOWUP_LENGTH = 5


@runtime_checkable
class ExtractionStrategy(Protocol):
    """Turns free text into structured tasks."""

    def extract_action_items(self, text: str, limit: int) -> list[ActionItem]: ...

    def extract_followup_tasks(self, text: str, limit: int) -> list[FollowupTask]: ...


def _contains_word(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def _first_match(patterns: tuple[re.Pattern[str], ...], sentence: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(sentence)
        if match:
            return match.group(1).strip()
    return None


def sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]


def infer_priority(sentence: str) -> str:
    lowered = sentence.lower()
    for level, keywords in _PRIORITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return level
    return "medium"


def infer_category(sentence: str) -> str:
    lowered = sentence.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(_contains_word(lowered, keyword) for keyword in keywords):
            return category
    return "General"


def infer_timeframe(sentence: str, text: str) -> str:
    for source in (sentence, text):
        for pattern in _TIMEFRAME_PATTERNS:
            match = pattern.search(source)
            if match:
                return match.group(1)
    return "Not specified"


class RegexExtractionStrategy:
    """Keyword and pattern based extraction."""

    def extract_action_items(self, text: str, limit: int = 5) -> list[ActionItem]:
        items: list[ActionItem] = []
        for sentence in sentences(text):
            if len(items) >= limit:
                break
            task = _first_match(_ACTION_PATTERNS, sentence)
            if task is None or len(task) <= MIN_ACTION_LENGTH:
                continue

            assignee = _ASSIGNEE_RE.search(sentence)
            due_date = _DUE_DATE_RE.search(sentence)
            items.append(
                ActionItem(
                    task=task,
                    priority=infer_priority(sentence),  # type: ignore[arg-type]
                    assignee=assignee.group(1) if assignee else None,
                    due_date=due_date.group(1).strip() if due_date else None,
                    category=infer_category(sentence),  # type: ignore[arg-type]
                )
            )
        return items

    def extract_followup_tasks(self, text: str, limit: int = 3) -> list[FollowupTask]:
        tasks: list[FollowupTask] = []
        for sentence in sentences(text):
            if len(tasks) >= limit:
                break
            task = _first_match(_FOLLOWUP_PATTERNS, sentence)
            if task is None or len(task) <= MIN_FOLLOWUP_LENGTH:
                continue

            task_type = "other"
            for candidate, pattern in _FOLLOWUP_TYPES:
                if pattern.search(sentence):
                    task_type = candidate
                    break

            tasks.append(
                FollowupTask(
                    task=task,
                    timeframe=infer_timeframe(sentence, text),
                    type=task_type,  # type: ignore[arg-type]
                )
            )
        return tasks
