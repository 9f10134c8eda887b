import json
import os
from typing import Optional

from conti_wizard.config import KEY_STORAGE_ID
from conti_wizard.types import StoryboardDocument


CACHE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), ".cache")
EXPORT_FILE_NAME = "conti_wizard_storyboard.json"


class KeyStore:
    """Persists the API key in a small JSON file under a fixed identifier."""

    def __init__(self, path: Optional[str] = None, key_id: str = KEY_STORAGE_ID) -> None:
        self.path = path or os.path.join(CACHE_DIR, "api_key.json")
        self.key_id = key_id

    def load(self) -> Optional[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        value = data.get(self.key_id)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def save(self, key: str) -> bool:
        key = (key or "").strip()
        if not key:
            return False
        data = {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                existing = json.load(f)
            if isinstance(existing, dict):
                data = existing
        except (OSError, ValueError):
            pass
        data[self.key_id] = key
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            tmp_path = self.path + ".part"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError:
            return False
        return True


def document_to_json(doc: StoryboardDocument) -> str:
    return json.dumps(doc.to_dict(), ensure_ascii=False, indent=2)


def document_to_text(doc: StoryboardDocument) -> str:
    """Plain-text rendering used by the copy-all action."""
    out = f"### {doc.title or 'Untitled'}\n"
    out += f"{doc.summary or ''}\n\n"
    out += "---\n\n"
    out += "Description [📝], Dialogue [💬], Image prompt [🎨]\n\n"
    out += "---\n\n"
    for s in doc.scenes:
        out += f"🟦 Cut {s.cut}: {s.scene_title or ''}\n"
        out += f"[📝] {s.description or ''}\n"
        out += f"[💬] {s.dialogue or ''}\n"
        if s.image_prompt:
            out += f"[🎨] {s.image_prompt}\n"
        out += "\n---\n\n"
    return out
