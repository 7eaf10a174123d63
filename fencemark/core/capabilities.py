from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from pygments import lex
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.token import Token
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _cached_lexer(name: str, options: tuple[tuple[str, object], ...]) -> Lexer:
    # Keep leading blank lines so token lines match document lines.
    return get_lexer_by_name(name, **{"stripnl": False, **dict(options)})


@dataclass(frozen=True)
class CapabilityBundle:
    """Highlighting and completion support attached to one fence language."""

    name: str
    label: str
    aliases: tuple[str, ...]
    lexer_name: str
    lexer_options: tuple[tuple[str, object], ...] = ()

    def lexer(self) -> Lexer:
        return _cached_lexer(self.lexer_name, self.lexer_options)

    def complete(self, source: str, prefix: str) -> List[tuple[str, str]]:
        """Return (word, kind) pairs lexed from ``source`` that extend ``prefix``.

        Keywords come before names; each word appears once.
        """
        if not prefix:
            return []
        keywords: dict[str, None] = {}
        names: dict[str, None] = {}
        for token_type, value in lex(source, self.lexer()):
            word = value.strip()
            if word == prefix or not word.startswith(prefix) or not word.isidentifier():
                continue
            if token_type in Token.Keyword:
                keywords.setdefault(word)
            elif token_type in Token.Name:
                names.setdefault(word)
        result = [(word, "keyword") for word in keywords]
        result.extend((word, "name") for word in names if word not in keywords)
        return result


BUILTIN_BUNDLES: tuple[CapabilityBundle, ...] = (
    CapabilityBundle("javascript", "JavaScript", ("js", "javascript"), "javascript"),
    CapabilityBundle("typescript", "TypeScript", ("ts", "typescript"), "typescript"),
    CapabilityBundle("jsx", "JSX", ("jsx",), "javascript"),
    CapabilityBundle("tsx", "TSX", ("tsx",), "typescript"),
    CapabilityBundle("python", "Python", ("py", "python"), "python"),
    CapabilityBundle("html", "HTML", ("html",), "html"),
    CapabilityBundle("css", "CSS", ("css",), "css"),
    CapabilityBundle("xml", "XML", ("xml",), "xml"),
    CapabilityBundle("java", "Java", ("java",), "java"),
    CapabilityBundle("cpp", "C/C++", ("c", "cpp", "c++", "h", "hpp"), "cpp"),
)


class CapabilityRegistry:
    """Read-only mapping from fence language tags to capability bundles."""

    def __init__(
        self,
        bundles: Iterable[CapabilityBundle] = BUILTIN_BUNDLES,
        extra_aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        by_name: dict[str, CapabilityBundle] = {}
        by_alias: dict[str, CapabilityBundle] = {}
        for bundle in bundles:
            key = bundle.name.lower()
            if key in by_name:
                raise ValueError(f"Duplicate capability bundle: {bundle.name}")
            by_name[key] = bundle
            for alias in bundle.aliases:
                self._add_alias(by_alias, alias, bundle)
        for alias, target in (extra_aliases or {}).items():
            bundle = by_name.get(str(target).lower())
            if bundle is None:
                raise ValueError(f"Alias {alias!r} points at unknown bundle {target!r}")
            self._add_alias(by_alias, alias, bundle)
        self._bundles = MappingProxyType(by_name)
        self._aliases = MappingProxyType(by_alias)

    @staticmethod
    def _add_alias(table: dict[str, CapabilityBundle], alias: str, bundle: CapabilityBundle) -> None:
        key = alias.strip().lower()
        if not key:
            raise ValueError(f"Empty alias for bundle {bundle.name}")
        existing = table.get(key)
        if existing is not None and existing is not bundle:
            raise ValueError(f"Alias {alias!r} already maps to {existing.name}")
        table[key] = bundle

    @property
    def bundles(self) -> Mapping[str, CapabilityBundle]:
        return self._bundles

    @property
    def aliases(self) -> Mapping[str, CapabilityBundle]:
        return self._aliases

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag.lower() in self._aliases

    def resolve_bundle(self, tag: Optional[str]) -> Optional[CapabilityBundle]:
        if not tag:
            return None
        return self._aliases.get(tag.lower())


def build_registry(extra_aliases: Optional[Mapping[str, str]] = None) -> CapabilityRegistry:
    """Build the registry once at start-up, skipping user aliases that do not apply."""
    accepted: dict[str, str] = {}
    for alias, target in (extra_aliases or {}).items():
        try:
            CapabilityRegistry(BUILTIN_BUNDLES, {**accepted, alias: target})
        except ValueError as exc:
            logger.warning("Ignoring fence language alias %r -> %r: %s", alias, target, exc)
            continue
        accepted[alias] = target
    return CapabilityRegistry(BUILTIN_BUNDLES, accepted)


def lexer_available(bundle: CapabilityBundle) -> bool:
    try:
        bundle.lexer()
    except ClassNotFound as exc:
        logger.warning("No Pygments lexer %r for %s: %s", bundle.lexer_name, bundle.name, exc)
        return False
    return True


DEFAULT_REGISTRY = CapabilityRegistry()


def resolve_bundle(tag: Optional[str], registry: CapabilityRegistry = DEFAULT_REGISTRY) -> Optional[CapabilityBundle]:
    return registry.resolve_bundle(tag)
