from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Optional

from .capabilities import DEFAULT_REGISTRY, CapabilityBundle, CapabilityRegistry
from .document import Document
from .fences import Fence, locate_fence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Context:
    """Prose, or inside a fence carrying ``tag`` (None for an untagged fence)."""

    in_fence: bool = False
    tag: Optional[str] = None

    @classmethod
    def prose(cls) -> "Context":
        return PROSE

    @classmethod
    def inside(cls, tag: Optional[str]) -> "Context":
        return cls(in_fence=True, tag=tag)

    @classmethod
    def from_fence(cls, fence: Optional[Fence]) -> "Context":
        return cls.inside(fence.language_tag) if fence is not None else PROSE

    def __str__(self) -> str:
        if not self.in_fence:
            return "Prose"
        return f"InFence({self.tag or ''})"


PROSE = Context()


@dataclass(frozen=True)
class SwapCommand:
    context: Context
    bundle: Optional[CapabilityBundle]
    structural_completions: bool


class ContextChangeDetector:
    """Remembers the last emitted context and only asks for a swap when it changes."""

    def __init__(self, registry: CapabilityRegistry = DEFAULT_REGISTRY) -> None:
        self._registry = registry
        self._last = PROSE
        self._lock = RLock()

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def last_context(self) -> Context:
        with self._lock:
            return self._last

    def reset(self) -> None:
        with self._lock:
            self._last = PROSE

    def command_for(self, context: Context) -> SwapCommand:
        bundle = self._registry.resolve_bundle(context.tag) if context.in_fence else None
        return SwapCommand(context=context, bundle=bundle, structural_completions=bundle is None)

    def on_position_changed(self, document: Document, position: int) -> Optional[SwapCommand]:
        with self._lock:
            context = Context.from_fence(locate_fence(document, position))
            if context == self._last:
                return None
            previous, self._last = self._last, context
            command = self.command_for(context)
        logger.debug(
            "Context %s -> %s (bundle=%s, structural=%s)",
            previous,
            context,
            command.bundle.name if command.bundle else None,
            command.structural_completions,
        )
        return command
