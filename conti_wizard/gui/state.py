from __future__ import annotations

from dataclasses import dataclass, field
from threading import Event
from typing import List, Optional

from conti_wizard.config import ContiConfig
from conti_wizard.types import StoryboardDocument


@dataclass
class AppState:
    api_key: str = ""

    synopsis: str = ""
    cut_count: int = 6
    tone: str = ""
    want_images: bool = False

    document: Optional[StoryboardDocument] = None
    error: Optional[str] = None

    logs: List[str] = field(default_factory=list)

    cfg: Optional[ContiConfig] = None
    cancel_event: Event = field(default_factory=Event)
