"""Rendering of the transcription and summary panels."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

EMPTY_MESSAGE = "Nothing to display yet."
LOADING_MESSAGE = "Loading..."


class PanelMode(str, Enum):
    """What a panel currently shows."""

    LOADING = "loading"
    CONTENT = "content"
    ERROR = "error"
    EMPTY = "empty"


class PanelView(BaseModel):
    """Rendered state of one display panel."""

    title: str
    mode: PanelMode
    content: Optional[str] = None
    error: Optional[str] = None
    can_copy: bool = False


def render_panel(
    title: str,
    content: Optional[str],
    is_loading: bool,
    error: Optional[str] = None,
) -> PanelView:
    """Render a panel from its title, content and loading flag.

    Loading wins over content, content wins over error, and a panel with
    none of them shows the empty-state message.
    """
    if is_loading:
        return PanelView(title=title, mode=PanelMode.LOADING)
    if content:
        return PanelView(title=title, mode=PanelMode.CONTENT, content=content, can_copy=True)
    if error:
        return PanelView(title=title, mode=PanelMode.ERROR, error=error)
    return PanelView(title=title, mode=PanelMode.EMPTY)


def format_panel(view: PanelView) -> str:
    """Plain-text rendering of a panel."""
    if view.mode == PanelMode.LOADING:
        body = LOADING_MESSAGE
    elif view.mode == PanelMode.CONTENT:
        body = view.content or ""
    elif view.mode == PanelMode.ERROR:
        body = f"Error: {view.error}"
    else:
        body = EMPTY_MESSAGE
    return f"## {view.title}\n\n{body}\n"


def format_elapsed(seconds: int) -> str:
    """Format a recording duration as MM:SS."""
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins:02d}:{secs:02d}"
