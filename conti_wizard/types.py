from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from conti_wizard.config import MAX_CUTS, MIN_CUTS


def clamp_cut_count(value: Any) -> int:
    """Coerce raw form input into a cut count in [MIN_CUTS, MAX_CUTS].

    Non-numeric, empty and zero values fall back to 1.
    """
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        n = 0
    if not n:
        n = 1
    return max(MIN_CUTS, min(MAX_CUTS, n))


@dataclass(frozen=True)
class GenerationRequest:
    synopsis: str
    cut_count: int
    tone: str = ""
    want_images: bool = False

    @classmethod
    def from_inputs(cls, synopsis: str, cut_count: Any, tone: str = "", want_images: bool = False) -> "GenerationRequest":
        text = (synopsis or "").strip()
        if not text:
            raise ValueError("Synopsis is required")
        return cls(
            synopsis=text,
            cut_count=clamp_cut_count(cut_count),
            tone=(tone or "").strip(),
            want_images=bool(want_images),
        )


@dataclass
class Scene:
    cut: int
    scene_title: str
    description: str = ""
    dialogue: str = ""
    image_prompt: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cut": self.cut,
            "sceneTitle": self.scene_title,
            "description": self.description,
            "dialogue": self.dialogue,
            "imagePrompt": self.image_prompt,
            "imageUrl": self.image_url,
        }


@dataclass
class StoryboardDocument:
    title: str
    summary: str
    cut_count: int
    scenes: List[Scene] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "cutCount": self.cut_count,
            "scenes": [s.to_dict() for s in self.scenes],
        }


class Stage(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    REQUESTING = "requesting"
    RETRYING = "retrying"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"
