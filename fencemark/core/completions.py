from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from .capabilities import DEFAULT_REGISTRY, CapabilityRegistry
from .completion_rules import COMPLETION_RULES, CandidateTemplate, TriggerRule
from .document import Document
from .fences import locate_fence


@dataclass(frozen=True)
class CompletionCandidate:
    label: str
    kind: str
    insert_text: str
    replace_from: int
    replace_to: int
    priority: int
    detail: str = ""
    info: str = ""
    icon: str = ""

    def apply(self, text: str) -> tuple[str, int]:
        """Replace the candidate's span in ``text``; return the new text and cursor."""
        updated = text[: self.replace_from] + self.insert_text + text[self.replace_to :]
        return updated, self.replace_from + len(self.insert_text)


@dataclass(frozen=True)
class CompletionResult:
    replace_from: int
    replace_to: int
    candidates: tuple[CompletionCandidate, ...]
    rule: str = ""

    def __len__(self) -> int:
        return len(self.candidates)

    def limited(self, max_options: int) -> "CompletionResult":
        if len(self.candidates) <= max_options:
            return self
        return replace(self, candidates=self.candidates[:max_options])


def _candidate(template: CandidateTemplate, replace_from: int, replace_to: int) -> CompletionCandidate:
    return CompletionCandidate(
        label=template.label,
        kind=template.kind,
        insert_text=template.insert_text,
        replace_from=replace_from,
        replace_to=replace_to,
        priority=template.priority,
        detail=template.detail,
        info=template.info,
        icon=template.icon,
    )


def get_completions(
    text_before_cursor: str,
    line_start: int,
    cursor: int,
    rules: Sequence[TriggerRule] = COMPLETION_RULES,
) -> Optional[CompletionResult]:
    """Return Markdown completions for the text typed before the cursor on one line.

    Rules are tried in order and the first match wins. None means no trigger
    matched; callers must not turn it into an empty result.
    """
    if "\n" in text_before_cursor:
        raise ValueError("Completion text must not span lines")
    if cursor - line_start != len(text_before_cursor):
        raise ValueError(
            f"Cursor {cursor} does not follow {len(text_before_cursor)} characters from line start {line_start}"
        )
    for rule in rules:
        match = rule.pattern.search(text_before_cursor)
        if not match:
            continue
        replace_from = line_start + match.start()
        trigger = match.group(0)
        candidates = sorted(
            (_candidate(template.for_trigger(trigger), replace_from, cursor) for template in rule.candidates),
            key=lambda candidate: -candidate.priority,
        )
        return CompletionResult(replace_from, cursor, tuple(candidates), rule.name)
    return None


def completions_at(document: Document, position: int) -> Optional[CompletionResult]:
    line = document.line_at(position)
    return get_completions(line.text[: line.column_of(position)], line.start, position)


def structural_completions(
    document: Document,
    position: int,
    registry: CapabilityRegistry = DEFAULT_REGISTRY,
) -> Optional[CompletionResult]:
    """Markdown completions, or None to defer to a recognized fence language's bundle."""
    fence = locate_fence(document, position)
    if fence is not None and registry.resolve_bundle(fence.language_tag) is not None:
        return None
    return completions_at(document, position)
