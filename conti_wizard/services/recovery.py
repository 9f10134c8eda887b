from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from conti_wizard.errors import EXCERPT_LIMIT, ErrorKind, RequestError, excerpt_of
from conti_wizard.types import Scene, StoryboardDocument

_LEADING_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")
_BULLET = re.compile(r"^(\s*)\*\s+")


def strip_code_fence(text: str) -> str:
    """Remove one leading ```lang marker and one trailing ``` marker."""
    s = (text or "").strip()
    s = _LEADING_FENCE.sub("", s, count=1)
    s = _TRAILING_FENCE.sub("", s, count=1)
    return s.strip()


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _brace_span(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


# --- Strategies: each is a pure str -> Optional[dict] over the raw model text ---

def parse_direct(raw: str) -> Optional[Dict[str, Any]]:
    return _loads_object(strip_code_fence(raw))


def parse_brace_span(raw: str) -> Optional[Dict[str, Any]]:
    span = _brace_span(strip_code_fence(raw))
    return _loads_object(span) if span else None


def parse_without_markdown(raw: str) -> Optional[Dict[str, Any]]:
    lines = []
    for line in strip_code_fence(raw).splitlines():
        if line.lstrip().startswith("#"):
            continue
        lines.append(_BULLET.sub(r"\1", line))
    span = _brace_span("\n".join(lines))
    return _loads_object(span) if span else None


def parse_from_first_brace_line(raw: str) -> Optional[Dict[str, Any]]:
    lines = strip_code_fence(raw).splitlines()
    for i, line in enumerate(lines):
        if line.strip().startswith("{"):
            return _loads_object("\n".join(lines[i:]))
    return None


STRATEGIES: Tuple[Tuple[str, Callable[[str], Optional[Dict[str, Any]]]], ...] = (
    ("direct", parse_direct),
    ("brace-span", parse_brace_span),
    ("markdown-stripped", parse_without_markdown),
    ("first-brace-line", parse_from_first_brace_line),
)


def extract_json_object(raw: str) -> Tuple[str, Dict[str, Any]]:
    """Return (strategy name, parsed object) for the first strategy that succeeds."""
    for name, strategy in STRATEGIES:
        data = strategy(raw)
        if data is not None:
            return name, data
    excerpt = excerpt_of(raw, EXCERPT_LIMIT)
    raise RequestError(
        f"Could not parse the model response as JSON. Response starts with: {excerpt}",
        kind=ErrorKind.UNPARSABLE_RESPONSE,
        excerpt=excerpt,
    )


# --- Normalization ---

def _as_cut(value: Any, fallback: int) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value if value >= 1 else fallback
    if isinstance(value, str):
        try:
            n = int(value.strip())
        except ValueError:
            pass
        else:
            return n if n >= 1 else fallback
    if not isinstance(value, (float, str)):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    if number != number or number in (float("inf"), float("-inf")):
        return fallback
    n = int(number)
    if n != number or n < 1:
        return fallback
    return n


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def normalize_scene(raw: Any, index: int) -> Scene:
    item = raw if isinstance(raw, dict) else {}
    ordinal = index + 1
    return Scene(
        cut=_as_cut(item.get("cut"), ordinal),
        scene_title=_as_text(item.get("sceneTitle"), f"Scene {ordinal}"),
        description=_as_text(item.get("description"), ""),
        dialogue=_as_text(item.get("dialogue"), ""),
        image_prompt=_as_optional_text(item.get("imagePrompt")),
        image_url=_as_optional_text(item.get("imageUrl")),
    )


def normalize_document(data: Dict[str, Any]) -> StoryboardDocument:
    """Fill every field the model may have omitted; ``cutCount`` always equals the scene count."""
    raw_scenes = data.get("scenes")
    items: List[Any] = raw_scenes if isinstance(raw_scenes, list) else []
    scenes = [normalize_scene(item, i) for i, item in enumerate(items)]
    return StoryboardDocument(
        title=_as_text(data.get("title"), ""),
        summary=_as_text(data.get("summary"), ""),
        cut_count=len(scenes),
        scenes=scenes,
    )


def recover(
    raw_text: str,
    on_log: Optional[Callable[[str], None]] = None,
    on_parsed: Optional[Callable[[], None]] = None,
) -> StoryboardDocument:
    """Parse the model text into a normalized storyboard.

    ``on_parsed`` runs after JSON extraction succeeds and before normalization.
    """
    name, data = extract_json_object(raw_text)
    if on_log:
        on_log(f"🔎 Parsed model response via '{name}' strategy")
    if on_parsed:
        on_parsed()
    return normalize_document(data)
