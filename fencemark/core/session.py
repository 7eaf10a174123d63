from __future__ import annotations

import logging
import re
from typing import Optional, Protocol, Sequence, Union

from .capabilities import DEFAULT_REGISTRY, CapabilityBundle, CapabilityRegistry
from .completions import CompletionCandidate, CompletionResult, structural_completions
from .context import PROSE, Context, ContextChangeDetector, SwapCommand
from .document import Document
from .fences import Fence, locate_fence

logger = logging.getLogger(__name__)

IDENTIFIER_TAIL = re.compile(r"[A-Za-z_]\w*$")


class EditingSurface(Protocol):
    def get_document_text(self) -> Union[str, Sequence[str]]: ...

    def get_cursor_offset(self) -> int: ...

    def apply_capability_swap(self, bundle: Optional[CapabilityBundle], enable_structural_completions: bool) -> None: ...

    def provide_completions(self, result: Optional[CompletionResult]) -> None: ...


class EditorSession:
    """Connects one editing surface to the fence scanner, detector and completion engine."""

    def __init__(
        self,
        surface: EditingSurface,
        registry: CapabilityRegistry = DEFAULT_REGISTRY,
        max_options: Optional[int] = None,
    ) -> None:
        self.surface = surface
        self.registry = registry
        self.max_options = max_options
        self._detector = ContextChangeDetector(registry)
        self._snapshot: Optional[Document] = None
        self._active: SwapCommand = self._detector.command_for(PROSE)

    @property
    def current_context(self) -> Context:
        return self._detector.last_context

    @property
    def active_bundle(self) -> Optional[CapabilityBundle]:
        return self._active.bundle

    @property
    def structural_completions_enabled(self) -> bool:
        return self._active.structural_completions

    def snapshot(self) -> Document:
        """Current document, reusing the previous snapshot while the text is unchanged."""
        raw = self.surface.get_document_text()
        text = raw if isinstance(raw, str) else "\n".join(raw)
        if self._snapshot is None or self._snapshot.text != text:
            self._snapshot = Document(text)
        return self._snapshot

    def restart(self) -> None:
        self._detector.reset()
        self._snapshot = None
        self._active = self._detector.command_for(PROSE)
        self.surface.apply_capability_swap(None, True)

    def on_position_changed(self) -> Optional[SwapCommand]:
        document = self.snapshot()
        command = self._detector.on_position_changed(document, self.surface.get_cursor_offset())
        if command is not None:
            self._active = command
            self.surface.apply_capability_swap(command.bundle, command.structural_completions)
        return command

    def completions(self) -> Optional[CompletionResult]:
        document = self.snapshot()
        position = self.surface.get_cursor_offset()
        result = structural_completions(document, position, self.registry)
        if result is None:
            fence = locate_fence(document, position)
            bundle = self.registry.resolve_bundle(fence.language_tag) if fence is not None else None
            if fence is not None and bundle is not None:
                result = self._bundle_completions(bundle, fence, document, position)
        if result is not None and self.max_options:
            result = result.limited(self.max_options)
        return result

    def request_completions(self) -> Optional[CompletionResult]:
        result = self.completions()
        self.surface.provide_completions(result)
        return result

    def _bundle_completions(
        self, bundle: CapabilityBundle, fence: Fence, document: Document, position: int
    ) -> Optional[CompletionResult]:
        line = document.line_at(position)
        match = IDENTIFIER_TAIL.search(line.text[: line.column_of(position)])
        if not match:
            return None
        prefix = match.group(0)
        replace_from = line.start + match.start()
        words = bundle.complete(fence.body(document), prefix)
        if not words:
            return None
        logger.debug("%s offers %d completions for %r", bundle.name, len(words), prefix)
        candidates = tuple(
            CompletionCandidate(
                label=word,
                kind=kind,
                insert_text=word,
                replace_from=replace_from,
                replace_to=position,
                priority=len(words) - index,
                detail=bundle.label,
            )
            for index, (word, kind) in enumerate(words)
        )
        return CompletionResult(replace_from, position, candidates, bundle.name)
