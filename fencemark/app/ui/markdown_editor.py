from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Optional

from pygments import lex
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound
from PySide6.QtCore import QPoint, QRegularExpression, Qt, QTimer, Signal
from PySide6.QtGui import (
    QColor,
    QFont,
    QFontDatabase,
    QKeyEvent,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
)
from PySide6.QtWidgets import QListWidget, QListWidgetItem, QTextEdit, QVBoxLayout, QWidget

from fencemark.app import config
from fencemark.core.capabilities import DEFAULT_REGISTRY, CapabilityBundle, CapabilityRegistry, lexer_available
from fencemark.core.completions import CompletionCandidate, CompletionResult
from fencemark.core.document import Document
from fencemark.core.fences import Fence, classify_marker, locate_fence
from fencemark.core.session import EditorSession

logger = logging.getLogger(__name__)

NAVIGATION_KEYS = (Qt.Key_Left, Qt.Key_Right, Qt.Key_Home, Qt.Key_End, Qt.Key_PageUp, Qt.Key_PageDown)


def _utf16_positions(text: str) -> list[int]:
    """UTF-16 offset (Qt cursor units) for every index of ``text``, plus its end."""
    positions = [0] * (len(text) + 1)
    offset = 0
    for idx, ch in enumerate(text):
        positions[idx] = offset
        offset += 2 if ord(ch) > 0xFFFF else 1
    positions[len(text)] = offset
    return positions


def _is_bmp(text: str) -> bool:
    return all(ord(ch) <= 0xFFFF for ch in text)


def _utf16_span(positions: list[int], start: int, length: int) -> tuple[int, int]:
    """Convert a ``str`` span to the (start, length) pair ``setFormat`` expects."""
    last = len(positions) - 1
    begin = positions[min(start, last)]
    end = positions[min(start + length, last)]
    return begin, end - begin


class MarkdownHighlighter(QSyntaxHighlighter):
    CODE_BLOCK_STATE = 1

    def __init__(self, parent, style_name: Optional[str] = None) -> None:  # type: ignore[override]
        super().__init__(parent)
        self._code_pattern = QRegularExpression(r"`[^`]+`")
        self._bold_pattern = QRegularExpression(r"(\*\*|__)[^*_]+\1")
        self._italic_pattern = QRegularExpression(r"(?<![*_])([*_])[^*_]+\1(?![*_])")
        self._strikethrough_pattern = QRegularExpression(r"~~([^~]+)~~")
        self._heading_pattern = QRegularExpression(r"^\s*#{1,6}\s")

        self.heading_format = QTextCharFormat()
        self.heading_format.setForeground(QColor("#6cb4ff"))
        self.heading_format.setFontWeight(QFont.Weight.DemiBold)

        self.bold_format = QTextCharFormat()
        self.bold_format.setForeground(QColor("#ffd479"))
        self.bold_format.setFontWeight(QFont.Weight.Bold)

        self.italic_format = QTextCharFormat()
        self.italic_format.setForeground(QColor("#ffa7c4"))
        self.italic_format.setFontItalic(True)

        mono_font = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        mono_family = mono_font.family() or "Courier New"
        self.code_format = QTextCharFormat()
        self.code_format.setForeground(QColor("#a3ffab"))
        self.code_format.setBackground(QColor("#2a2a2a"))
        self.code_format.setFontFamily(mono_family)
        self.code_format.setFontFixedPitch(True)

        self.quote_format = QTextCharFormat()
        self.quote_format.setForeground(QColor("#7fdbff"))
        self.quote_format.setFontItalic(True)

        self.code_block = QTextCharFormat(self.code_format)

        self.code_fence_format = QTextCharFormat()
        self.code_fence_format.setForeground(QColor("#555555"))

        self.strikethrough_format = QTextCharFormat()
        self.strikethrough_format.setForeground(QColor("#888888"))
        self.strikethrough_format.setFontStrikeOut(True)

        self._active_fence: Optional[Fence] = None
        self._active_spans: dict[int, list[tuple[int, int, QTextCharFormat]]] = {}
        self._init_pygments(style_name or config.load_pygments_style("monokai"))

    @property
    def active_fence(self) -> Optional[Fence]:
        return self._active_fence

    def active_spans(self, block_number: int) -> list[tuple[int, int, QTextCharFormat]]:
        return list(self._active_spans.get(block_number, ()))

    def _init_pygments(self, style_name: str) -> None:
        try:
            self._pygments_style = get_style_by_name(style_name)
            self.pygments_style_name = style_name
        except ClassNotFound:
            logger.warning("Unknown Pygments style %r; using monokai", style_name)
            self._pygments_style = get_style_by_name("monokai")
            self.pygments_style_name = "monokai"
        self._pygments_format_cache: dict[str, QTextCharFormat] = {}

    def set_pygments_style(self, style_name: str) -> None:
        """Update the Pygments style and rehighlight."""
        self._init_pygments(style_name)
        self.rehighlight()

    def _format_for_token(self, token) -> QTextCharFormat:
        key = str(token)
        fmt = self._pygments_format_cache.get(key)
        if fmt:
            return fmt

        style = self._pygments_style.style_for_token(token)
        fmt = QTextCharFormat(self.code_block)
        if style.get("color"):
            fmt.setForeground(QColor(f"#{style['color']}"))
        if style.get("bgcolor"):
            fmt.setBackground(QColor(f"#{style['bgcolor']}"))
        if style.get("bold"):
            fmt.setFontWeight(QFont.Weight.Bold)
        if style.get("italic"):
            fmt.setFontItalic(True)
        if style.get("underline"):
            fmt.setFontUnderline(True)
        self._pygments_format_cache[key] = fmt
        return fmt

    def set_active_fence(
        self, fence: Optional[Fence], bundle: Optional[CapabilityBundle], document: Optional[Document]
    ) -> None:
        """Highlight one fence body with ``bundle``'s lexer; None clears it."""
        self._active_fence = fence
        self._active_spans = {}
        if fence is not None and bundle is not None and document is not None and lexer_available(bundle):
            # Block numbers are 0-based, so the first body line's block is the opener's line number.
            self._cache_code_block_spans(fence.start_line, fence.body(document), bundle)
        self.rehighlight()

    def _cache_code_block_spans(self, first_block: int, code: str, bundle: CapabilityBundle) -> None:
        try:
            tokens = list(lex(code, bundle.lexer()))
        except Exception as exc:
            logger.debug("Pygments lexing failed for %s: %s", bundle.name, exc)
            return

        line_idx = 0
        col = 0
        for token_type, value in tokens:
            remaining = value
            while remaining:
                newline = remaining.find("\n")
                if newline == -1:
                    part = remaining
                    remaining = ""
                else:
                    part = remaining[:newline]
                    remaining = remaining[newline + 1 :]
                if part:
                    fmt = self._format_for_token(token_type)
                    self._active_spans.setdefault(first_block + line_idx, []).append((col, len(part), fmt))
                    col += len(part)
                if newline != -1:
                    line_idx += 1
                    col = 0

    def _apply_pattern(self, text: str, pattern: QRegularExpression, fmt: QTextCharFormat) -> None:
        it = pattern.globalMatch(text)
        while it.hasNext():
            match = it.next()
            self.setFormat(match.capturedStart(), match.capturedLength(), fmt)

    def highlightBlock(self, text: str) -> None:  # type: ignore[override]
        in_code_block = self.previousBlockState() == self.CODE_BLOCK_STATE
        is_marker, tag = classify_marker(text)
        if is_marker:
            # A tagged marker opens even inside a fence; a bare one closes it.
            opens = tag is not None or not in_code_block
            self.setCurrentBlockState(self.CODE_BLOCK_STATE if opens else 0)
            self.setFormat(0, len(text), self.code_fence_format)
            return
        if in_code_block:
            self.setCurrentBlockState(self.CODE_BLOCK_STATE)
            positions = _utf16_positions(text)
            self.setFormat(0, positions[-1], self.code_block)
            for start, length, fmt in self._active_spans.get(self.currentBlock().blockNumber(), ()):
                if length > 0 and start < len(text):
                    self.setFormat(*_utf16_span(positions, start, length), fmt)
            return
        self.setCurrentBlockState(0)

        if self._heading_pattern.match(text).hasMatch():
            self.setFormat(0, len(text), self.heading_format)
            return
        if text.lstrip().startswith(">"):
            self.setFormat(0, len(text), self.quote_format)
        self._apply_pattern(text, self._bold_pattern, self.bold_format)
        self._apply_pattern(text, self._italic_pattern, self.italic_format)
        self._apply_pattern(text, self._strikethrough_pattern, self.strikethrough_format)
        self._apply_pattern(text, self._code_pattern, self.code_format)


class CompletionPopup(QWidget):
    """Ranked completion list shown under the cursor; keys are forwarded by the editor."""

    candidateChosen = Signal(object)
    closed = Signal()

    def __init__(self, parent=None) -> None:
        super().__init__(parent, Qt.ToolTip | Qt.FramelessWindowHint)
        self.setAttribute(Qt.WA_ShowWithoutActivating)
        self.setFocusPolicy(Qt.NoFocus)
        self.setStyleSheet("background: #1e1e1e; color: white; border: 1px solid #333333;")
        layout = QVBoxLayout(self)
        layout.setContentsMargins(2, 2, 2, 2)
        self._list = QListWidget()
        self._list.setFocusPolicy(Qt.NoFocus)
        self._list.setUniformItemSizes(True)
        self._list.itemClicked.connect(lambda *_: self.activate_current())
        layout.addWidget(self._list)
        self._result: Optional[CompletionResult] = None

    @property
    def result(self) -> Optional[CompletionResult]:
        return self._result

    def candidates(self) -> list[CompletionCandidate]:
        return [self._list.item(row).data(Qt.UserRole) for row in range(self._list.count())]

    def show_result(self, result: CompletionResult, anchor: QPoint) -> None:
        self._result = result
        self._list.clear()
        for candidate in result.candidates:
            label = f"{candidate.icon} {candidate.label}".strip() if candidate.icon else candidate.label
            if candidate.detail:
                label = f"{label}    {candidate.detail}"
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, candidate)
            if candidate.info:
                item.setToolTip(candidate.info)
            self._list.addItem(item)
        self._list.setCurrentRow(0)
        rows = min(self._list.count(), 10)
        height = self._list.sizeHintForRow(0) * rows + 8 if rows else 0
        self.resize(max(260, self._list.sizeHintForColumn(0) + 24), height)
        self.move(anchor)
        self.show()
        self.raise_()

    def move_selection(self, delta: int) -> None:
        count = self._list.count()
        if not count:
            return
        row = self._list.currentRow()
        row = max(0, min(count - 1, row + delta))
        self._list.setCurrentRow(row)

    def current_candidate(self) -> Optional[CompletionCandidate]:
        item = self._list.currentItem()
        return item.data(Qt.UserRole) if item else None

    def activate_current(self) -> None:
        candidate = self.current_candidate()
        self.hide()
        if candidate is not None:
            self.candidateChosen.emit(candidate)

    def hide(self) -> None:  # type: ignore[override]
        was_visible = self.isVisible()
        super().hide()
        if was_visible:
            self.closed.emit()

    def is_visible(self) -> bool:
        """Helper so parents can detect when the popup is open."""
        return self.isVisible()


class MarkdownEditor(QTextEdit):
    """Plain Markdown editing surface that swaps fence capabilities as the cursor moves."""

    cursorMoved = Signal(int)
    languageChanged = Signal(str)
    capabilitiesSwapped = Signal(object, bool)

    def __init__(self, parent=None, registry: CapabilityRegistry = DEFAULT_REGISTRY) -> None:
        super().__init__(parent)
        self.setAcceptRichText(False)
        self.setPlaceholderText("Write your markdown here…")
        self.setLineWrapMode(QTextEdit.LineWrapMode.WidgetWidth)
        font = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        font.setPointSize(config.load_editor_font_size())
        self.setFont(font)
        self.setTabStopDistance(4 * self.fontMetrics().horizontalAdvance(" "))
        self.highlighter = MarkdownHighlighter(self.document())
        self._active_bundle: Optional[CapabilityBundle] = None
        self._structural_completions = True
        self._complete_on_typing = config.load_complete_on_typing()
        self.session = EditorSession(self, registry, max_options=config.load_max_completion_options())
        self._completion_popup = CompletionPopup(self)
        self._completion_popup.candidateChosen.connect(self.apply_candidate)
        self._last_text = ""
        # Re-lex the active fence shortly after edits instead of on every keystroke
        self._fence_refresh_timer = QTimer(self)
        self._fence_refresh_timer.setInterval(120)
        self._fence_refresh_timer.setSingleShot(True)
        self._fence_refresh_timer.timeout.connect(self._refresh_active_fence)
        self.textChanged.connect(self._schedule_fence_refresh)
        self.cursorPositionChanged.connect(self._on_cursor_position_changed)

    # --- editing surface -------------------------------------------------

    def get_document_text(self) -> str:
        return self.toPlainText()

    def get_cursor_offset(self) -> int:
        return self._from_qt_position(self.toPlainText(), self.textCursor().position())

    def apply_capability_swap(self, bundle: Optional[CapabilityBundle], enable_structural_completions: bool) -> None:
        self._active_bundle = bundle
        self._structural_completions = enable_structural_completions
        self._completion_popup.hide()
        self._refresh_active_fence()
        context = self.session.current_context
        self.languageChanged.emit((context.tag or "") if context.in_fence else "")
        self.capabilitiesSwapped.emit(bundle, enable_structural_completions)

    def provide_completions(self, result: Optional[CompletionResult]) -> None:
        if result is None or not result.candidates:
            self._completion_popup.hide()
            return
        anchor = self.viewport().mapToGlobal(self.cursorRect().bottomLeft())
        self._completion_popup.show_result(result, anchor)

    # --- state helpers ---------------------------------------------------

    @property
    def active_bundle(self) -> Optional[CapabilityBundle]:
        return self._active_bundle

    @property
    def structural_completions_enabled(self) -> bool:
        return self._structural_completions

    @property
    def completion_popup(self) -> CompletionPopup:
        return self._completion_popup

    def set_complete_on_typing(self, enabled: bool) -> None:
        self._complete_on_typing = bool(enabled)

    def set_pygments_style(self, style: str) -> None:
        """Update the code-fence highlighting style."""
        self.highlighter.set_pygments_style(style)
        self._refresh_active_fence()

    def set_markdown(self, content: str) -> None:
        """Replace the document and start a fresh editing session."""
        self._completion_popup.hide()
        self.setPlainText(content)
        self.session.restart()
        self.session.on_position_changed()

    def to_markdown(self) -> str:
        return self.toPlainText()

    def set_cursor_offset(self, offset: int) -> None:
        cursor = self.textCursor()
        cursor.setPosition(self._to_qt_position(self.toPlainText(), offset))
        self.setTextCursor(cursor)

    @staticmethod
    def _to_qt_position(text: str, offset: int) -> int:
        if _is_bmp(text):
            return offset
        return _utf16_positions(text)[offset]

    @staticmethod
    def _from_qt_position(text: str, position: int) -> int:
        if _is_bmp(text):
            return position
        return bisect_left(_utf16_positions(text), position)

    def apply_candidate(self, candidate: CompletionCandidate) -> None:
        text = self.toPlainText()
        cursor = self.textCursor()
        cursor.beginEditBlock()
        cursor.setPosition(self._to_qt_position(text, candidate.replace_from))
        cursor.setPosition(self._to_qt_position(text, candidate.replace_to), QTextCursor.KeepAnchor)
        cursor.insertText(candidate.insert_text)
        cursor.endEditBlock()
        self.setTextCursor(cursor)
        self._completion_popup.hide()

    def _on_cursor_position_changed(self) -> None:
        command = self.session.on_position_changed()
        if command is None and self._active_bundle is not None:
            fence = locate_fence(self.session.snapshot(), self.get_cursor_offset())
            current = self.highlighter.active_fence
            if fence is not None and (current is None or current.start_line != fence.start_line):
                self._refresh_active_fence()
        self.cursorMoved.emit(self.textCursor().position())

    def _schedule_fence_refresh(self) -> None:
        text = self.toPlainText()
        if text == self._last_text:
            return
        self._last_text = text
        if self._active_bundle is not None:
            self._fence_refresh_timer.start()

    def _refresh_active_fence(self) -> None:
        if self._active_bundle is None:
            if self.highlighter.active_fence is not None:
                self.highlighter.set_active_fence(None, None, None)
            return
        document = self.session.snapshot()
        fence = locate_fence(document, self.get_cursor_offset())
        self.highlighter.set_active_fence(fence, self._active_bundle, document)

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        popup = self._completion_popup
        if popup.is_visible():
            if event.key() in (Qt.Key_Down, Qt.Key_Up):
                popup.move_selection(1 if event.key() == Qt.Key_Down else -1)
                event.accept()
                return
            if event.key() in (Qt.Key_Return, Qt.Key_Enter, Qt.Key_Tab):
                popup.activate_current()
                event.accept()
                return
            if event.key() == Qt.Key_Escape:
                popup.hide()
                event.accept()
                return
        if event.modifiers() == Qt.ControlModifier and event.key() == Qt.Key_Space:
            self.session.request_completions()
            event.accept()
            return
        super().keyPressEvent(event)
        typed = event.text()
        if typed and typed.isprintable() and self._complete_on_typing:
            self.session.request_completions()
        elif event.key() == Qt.Key_Backspace and popup.is_visible():
            self.session.request_completions()
        elif event.key() in NAVIGATION_KEYS:
            popup.hide()

    def focusOutEvent(self, event):  # type: ignore[override]
        self._completion_popup.hide()
        super().focusOutEvent(event)
