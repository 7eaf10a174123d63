from typing import Optional, Sequence, Union

from fencemark.core.capabilities import CapabilityBundle, CapabilityRegistry
from fencemark.core.completions import CompletionResult
from fencemark.core.context import PROSE, Context
from fencemark.core.session import EditorSession


class FakeSurface:
    def __init__(self, text: Union[str, Sequence[str]], cursor: int = 0) -> None:
        self.text = text
        self.cursor = cursor
        self.swaps: list[tuple[Optional[str], bool]] = []
        self.provided: list[Optional[CompletionResult]] = []

    def get_document_text(self):
        return self.text

    def get_cursor_offset(self) -> int:
        return self.cursor

    def apply_capability_swap(self, bundle: Optional[CapabilityBundle], enable_structural_completions: bool) -> None:
        self.swaps.append((bundle.name if bundle else None, enable_structural_completions))

    def provide_completions(self, result: Optional[CompletionResult]) -> None:
        self.provided.append(result)


TEXT = "intro\n```python\ndef greet():\n    pass\ngre\n```\n#"


def test_moving_through_fence_swaps_once() -> None:
    surface = FakeSurface(TEXT)
    session = EditorSession(surface)
    for pos in range(TEXT.index("def"), TEXT.index("gre\n") + 3):
        surface.cursor = pos
        session.on_position_changed()
    assert surface.swaps == [("python", False)]
    assert session.current_context == Context.inside("python")
    assert session.active_bundle.name == "python"
    assert session.structural_completions_enabled is False
    surface.cursor = len(TEXT)
    session.on_position_changed()
    assert surface.swaps[-1] == (None, True)
    assert session.current_context == PROSE


def test_prose_request_provides_markdown_completions() -> None:
    surface = FakeSurface(TEXT, cursor=len(TEXT))
    session = EditorSession(surface)
    result = session.request_completions()
    assert surface.provided == [result]
    assert result.rule == "heading"


def test_recognized_fence_uses_bundle_completions() -> None:
    cursor = TEXT.index("gre\n") + 3
    surface = FakeSurface(TEXT, cursor=cursor)
    session = EditorSession(surface)
    result = session.request_completions()
    assert result is not None
    assert result.rule == "python"
    assert [(c.label, c.kind) for c in result.candidates] == [("greet", "name")]
    assert (result.replace_from, result.replace_to) == (cursor - 3, cursor)


def test_recognized_fence_never_falls_back_to_markdown() -> None:
    text = "```python\n#\n```"
    surface = FakeSurface(text, cursor=11)
    session = EditorSession(surface)
    assert session.request_completions() is None
    assert surface.provided == [None]


def test_unrecognized_fence_keeps_markdown_completions() -> None:
    text = "```nolangxyz\n#\n```"
    surface = FakeSurface(text, cursor=14)
    session = EditorSession(surface)
    session.on_position_changed()
    assert surface.swaps == [(None, True)]
    assert session.request_completions().rule == "heading"


def test_max_options_caps_results() -> None:
    surface = FakeSurface("```", cursor=3)
    session = EditorSession(surface, max_options=3)
    assert len(session.request_completions()) == 3


def test_surface_may_report_lines() -> None:
    surface = FakeSurface(["a", "```py", "x", "```"], cursor=9)
    session = EditorSession(surface)
    session.on_position_changed()
    assert surface.swaps == [("python", False)]


def test_snapshot_reused_until_text_changes() -> None:
    surface = FakeSurface(TEXT)
    session = EditorSession(surface)
    first = session.snapshot()
    assert session.snapshot() is first
    surface.text = TEXT + "\n"
    assert session.snapshot() is not first


def test_context_revalidated_after_edit() -> None:
    surface = FakeSurface(TEXT, cursor=TEXT.index("pass"))
    session = EditorSession(surface)
    session.on_position_changed()
    edited = TEXT.replace("```python\n", "")
    surface.text = edited
    surface.cursor = edited.index("pass")
    session.on_position_changed()
    assert surface.swaps == [("python", False), (None, True)]


def test_restart_resets_context() -> None:
    surface = FakeSurface(TEXT, cursor=TEXT.index("pass"))
    session = EditorSession(surface)
    session.on_position_changed()
    session.restart()
    assert session.current_context == PROSE
    assert surface.swaps[-1] == (None, True)
    session.on_position_changed()
    assert surface.swaps[-1] == ("python", False)


def test_custom_registry_aliases() -> None:
    text = "```py3\nx\n```"
    surface = FakeSurface(text, cursor=7)
    session = EditorSession(surface, registry=CapabilityRegistry(extra_aliases={"py3": "python"}))
    session.on_position_changed()
    assert surface.swaps == [("python", False)]


def test_custom_alias_defers_markdown_completions() -> None:
    text = "```py3\n#\n```"
    default_session = EditorSession(FakeSurface(text, cursor=8))
    assert default_session.request_completions().rule == "heading"
    aliased = EditorSession(FakeSurface(text, cursor=8), registry=CapabilityRegistry(extra_aliases={"py3": "python"}))
    assert aliased.request_completions() is None
