from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from PySide6.QtCore import QtMsgType, qInstallMessageHandler
from PySide6.QtWidgets import QApplication

from fencemark.app import config
from fencemark.app.ui.editor_window import EditorWindow
from fencemark.core.capabilities import build_registry


# ============================================================================
# DEBUG CONFIGURATION - Environment Variables
# ============================================================================
# FENCEMARK_DEBUG_CONTEXT - Log every fence context decision and capability swap
#
# Example:
#   FENCEMARK_DEBUG_CONTEXT=1 fencemark notes.md
# ============================================================================

logger = logging.getLogger(__name__)


def _qt_message_handler(mode: QtMsgType, context, message: str) -> None:
    """Custom Qt message handler to suppress known harmless warnings."""
    if "QTextCursor::setPosition" in message:
        return
    if "Accessible invalid" in message or "Could not find accessible on path" in message:
        return
    if mode == QtMsgType.QtDebugMsg:
        logger.debug("Qt: %s", message)
    elif mode == QtMsgType.QtWarningMsg:
        logger.warning("Qt: %s", message)
    elif mode == QtMsgType.QtCriticalMsg:
        logger.error("Qt: %s", message)
    elif mode == QtMsgType.QtFatalMsg:
        logger.critical("Qt: %s", message)
        sys.exit(1)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fencemark Markdown editor.")
    parser.add_argument("path", nargs="?", help="Markdown file to open at startup.")
    parser.add_argument("--last", action="store_true", help="Reopen the last edited file.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level for stderr output.",
    )
    return parser.parse_args(argv)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if config.debug_enabled("FENCEMARK_DEBUG_CONTEXT"):
        logging.getLogger("fencemark.core").setLevel(logging.DEBUG)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    _configure_logging(args.log_level)
    config.init_settings()
    qInstallMessageHandler(_qt_message_handler)
    registry = build_registry(config.load_fence_language_aliases())
    logger.info("Fence languages: %s", ", ".join(sorted(registry.aliases)))

    qt_app = QApplication.instance() or QApplication(sys.argv[:1])
    window = EditorWindow(registry=registry)
    window.resize(1000, 700)
    target = args.path or (config.load_last_file() if args.last else None)
    if target:
        window.open_file(target)
    window.show()
    return qt_app.exec()


if __name__ == "__main__":  # pragma: no cover - manual entry point
    sys.exit(main())
