from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QFileDialog, QLabel, QMainWindow

from fencemark.app import config
from fencemark.core.capabilities import DEFAULT_REGISTRY, CapabilityRegistry

from .markdown_editor import MarkdownEditor

logger = logging.getLogger(__name__)


class EditorWindow(QMainWindow):
    def __init__(self, registry: CapabilityRegistry = DEFAULT_REGISTRY) -> None:
        super().__init__()
        self.setWindowTitle("Fencemark")
        self._path: Optional[Path] = None
        self.editor = MarkdownEditor(self, registry=registry)
        self.setCentralWidget(self.editor)

        self._language_label = QLabel()
        self._language_label.setObjectName("languageIndicator")
        self._language_label.setVisible(False)
        self.statusBar().addPermanentWidget(self._language_label, 0)
        self.editor.languageChanged.connect(self._update_language_indicator)

        open_action = QAction("Open…", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._prompt_open)
        save_action = QAction("Save", self)
        save_action.setShortcut(QKeySequence.Save)
        save_action.triggered.connect(self.save)
        file_menu = self.menuBar().addMenu("&File")
        file_menu.addAction(open_action)
        file_menu.addAction(save_action)

    @property
    def language_label(self) -> QLabel:
        return self._language_label

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def _update_language_indicator(self, language: str) -> None:
        if language:
            self._language_label.setText(f"Language: {language}")
            self._language_label.setToolTip(f"Code block language: {language}")
            self._language_label.setVisible(True)
        else:
            self._language_label.clear()
            self._language_label.setVisible(False)

    def open_file(self, path: str) -> bool:
        target = Path(path).expanduser()
        try:
            content = target.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to open %s: %s", target, exc)
            self.statusBar().showMessage(f"Could not open {target}: {exc}", 4000)
            return False
        self._path = target
        self.editor.set_markdown(content)
        self.setWindowTitle(f"Fencemark - {target.name}")
        config.save_last_file(str(target))
        return True

    def save(self) -> bool:
        if self._path is None:
            chosen, _ = QFileDialog.getSaveFileName(self, "Save Markdown", "", "Markdown (*.md *.markdown *.txt)")
            if not chosen:
                return False
            self._path = Path(chosen)
        try:
            self._path.write_text(self.editor.to_markdown(), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save %s: %s", self._path, exc)
            self.statusBar().showMessage(f"Could not save {self._path}: {exc}", 4000)
            return False
        self.statusBar().showMessage(f"Saved {self._path}", 2000)
        return True

    def _prompt_open(self) -> None:
        chosen, _ = QFileDialog.getOpenFileName(self, "Open Markdown", "", "Markdown (*.md *.markdown *.txt)")
        if chosen:
            self.open_file(chosen)

    def keyPressEvent(self, event):  # type: ignore[override]
        if event.key() == Qt.Key_Escape and self.editor.completion_popup.is_visible():
            self.editor.completion_popup.hide()
            return
        super().keyPressEvent(event)
