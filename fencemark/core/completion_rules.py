from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Pattern

HEADING_ICON = "# "
LIST_ICON = "• "
CODE_ICON = "{ }"
LINK_ICON = "🔗"
IMAGE_ICON = "🖼️"
TABLE_ICON = "⊞"
QUOTE_ICON = "❝"


@dataclass(frozen=True)
class CandidateTemplate:
    label: str
    kind: str
    insert_text: str
    priority: int
    detail: str = ""
    info: str = ""
    icon: str = ""

    def for_trigger(self, trigger: str) -> "CandidateTemplate":
        """Fill ``{c}`` with the last typed character (emphasis delimiters)."""
        if "{c}" not in self.insert_text:
            return self
        char = trigger[-1:]
        return CandidateTemplate(
            label=self.label.replace("{c}", char),
            kind=self.kind,
            insert_text=self.insert_text.replace("{c}", char),
            priority=self.priority,
            detail=self.detail,
            info=self.info,
            icon=self.icon,
        )


@dataclass(frozen=True)
class TriggerRule:
    """Pattern searched at the end of the text before the cursor.

    The matched text is the span the chosen candidate replaces.
    """

    name: str
    pattern: Pattern[str]
    candidates: tuple[CandidateTemplate, ...]


def _heading(level: int, info: str) -> CandidateTemplate:
    marks = "#" * level
    return CandidateTemplate(
        f"{marks} Heading {level}", "heading", f"{marks} ", 110 - 10 * level, f"Heading {level}", info, HEADING_ICON
    )


def _fence(lang: str, label: str, priority: int) -> CandidateTemplate:
    return CandidateTemplate(
        f"```{lang}", "code", f"```{lang}\n\n```", priority, label, f"{label} code block", CODE_ICON
    )


def _table(columns: int, priority: int) -> CandidateTemplate:
    numbers = range(1, columns + 1)
    header = "| " + " | ".join(f"Header {n}" for n in numbers) + " |"
    rule = "| " + " | ".join("--------" for _ in numbers) + " |"
    cells = "| " + " | ".join(f"Cell {n}".ljust(8) for n in numbers) + " |"
    return CandidateTemplate(
        header,
        "table",
        "\n".join((header, rule, cells)),
        priority,
        f"Table ({columns} columns)",
        f"Create a table with {columns} columns",
        TABLE_ICON,
    )


UNORDERED_ITEM = CandidateTemplate("- Unordered list", "list", "- ", 100, "Unordered list", "Bullet list item", LIST_ICON)
TASK_ITEM = CandidateTemplate("- [ ] Task list", "list", "- [ ] ", 90, "Task list", "Unchecked task list item", LIST_ICON)
CHECKED_ITEM = CandidateTemplate("- [x] Checked task", "list", "- [x] ", 80, "Checked task", "Checked task list item", LIST_ICON)
ORDERED_ITEM = CandidateTemplate("1. Ordered list", "list", "1. ", 70, "Ordered list", "Numbered list item", LIST_ICON)

# Languages offered after typing ``` at the start of a line, highest priority first.
FENCE_LANGUAGES: list[tuple[str, str, int]] = [
    ("javascript", "JavaScript", 100),
    ("python", "Python", 95),
    ("html", "HTML", 90),
    ("css", "CSS", 85),
    ("java", "Java", 80),
    ("cpp", "C++", 75),
    ("c", "C", 70),
    ("json", "JSON", 65),
    ("markdown", "Markdown", 60),
]

COMPLETION_RULES: List[TriggerRule] = [
    TriggerRule(
        "heading",
        re.compile(r"^#{1,6}$"),
        tuple(
            _heading(level, info)
            for level, info in enumerate(
                (
                    "Largest heading",
                    "Second-level heading",
                    "Third-level heading",
                    "Fourth-level heading",
                    "Fifth-level heading",
                    "Smallest heading",
                ),
                start=1,
            )
        ),
    ),
    TriggerRule("list", re.compile(r"^[-*+]$"), (UNORDERED_ITEM, TASK_ITEM, CHECKED_ITEM, ORDERED_ITEM)),
    TriggerRule(
        "ordered_list",
        re.compile(r"^1\.$"),
        (CandidateTemplate("1. Ordered list", "list", "1. ", 100, "Ordered list", "Numbered list item", LIST_ICON),),
    ),
    # An image trigger also ends in "[", so links skip a preceding "!"
    TriggerRule(
        "link",
        re.compile(r"(?<!!)\[$"),
        (CandidateTemplate("[Link text](url)", "link", "[Link text](url)", 100, "Link", "Create a hyperlink", LINK_ICON),),
    ),
    TriggerRule(
        "image",
        re.compile(r"!\[$"),
        (
            CandidateTemplate(
                "![Alt text](image-url)", "image", "![Alt text](image-url)", 100, "Image", "Insert an image", IMAGE_ICON
            ),
        ),
    ),
    TriggerRule(
        "code_block",
        re.compile(r"^```$"),
        tuple(_fence(lang, label, priority) for lang, label, priority in FENCE_LANGUAGES),
    ),
    TriggerRule("table", re.compile(r"^\|$"), (_table(2, 100), _table(3, 90))),
    TriggerRule(
        "blockquote",
        re.compile(r"^>$"),
        (CandidateTemplate("> Blockquote", "quote", "> ", 100, "Blockquote", "Create a blockquote", QUOTE_ICON),),
    ),
    TriggerRule(
        "inline_code",
        re.compile(r"`$"),
        (CandidateTemplate("`code`", "code", "`code`", 100, "Inline code", "Inline code", CODE_ICON),),
    ),
    TriggerRule(
        "emphasis",
        re.compile(r"[*_]$"),
        (
            CandidateTemplate("{c}{c}Bold text{c}{c}", "formatting", "{c}{c}Bold text{c}{c}", 100, "Bold", "Bold text"),
            CandidateTemplate("{c}Italic text{c}", "formatting", "{c}Italic text{c}", 90, "Italic", "Italic text"),
        ),
    ),
    TriggerRule(
        "strikethrough",
        re.compile(r"~$"),
        (
            CandidateTemplate(
                "~~Strikethrough~~", "formatting", "~~Strikethrough~~", 100, "Strikethrough", "Strikethrough text"
            ),
        ),
    ),
]
