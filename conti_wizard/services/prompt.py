from __future__ import annotations

from conti_wizard.types import GenerationRequest


STORYBOARD_SCHEMA = (
    "{\n"
    '  "title": string,          // overall title\n'
    '  "summary": string,        // one-line summary\n'
    '  "cutCount": number,\n'
    '  "scenes": [\n'
    "    {\n"
    '      "cut": number,        // starts at 1\n'
    '      "sceneTitle": string,\n'
    '      "description": string, // what the scene shows\n'
    '      "dialogue": string,   // dialogue or narration\n'
    '      "imagePrompt": string | null // image prompt (optional)\n'
    "    }\n"
    "  ]\n"
    "}"
)

IMAGE_PROMPT_ON = (
    "Also write an image prompt for every cut in \"imagePrompt\": 1-2 sentences that describe the scene well, "
    "styled as pastel tones, modern illustration, soft lighting."
)
IMAGE_PROMPT_OFF = 'Set "imagePrompt" to null for every cut.'


def build_prompt(request: GenerationRequest) -> str:
    """Render the instruction text for one storyboard request.

    The cut count is expected to be clamped already (see ``GenerationRequest.from_inputs``).
    """
    tone = request.tone or "not specified"
    image_part = IMAGE_PROMPT_ON if request.want_images else IMAGE_PROMPT_OFF
    return (
        "You are a storyboard artist and screenwriter.\n"
        f"Split the synopsis below into exactly {request.cut_count} scenes (cuts) and output them "
        "following the JSON schema below.\n"
        "Each scene must be concise and visually clear. "
        f"Tone/mood: {tone}.\n"
        f"{image_part}\n"
        "Return JSON only. No markdown, no code fences, no text before or after the JSON.\n\n"
        f"Schema:\n{STORYBOARD_SCHEMA}\n\n"
        f"Synopsis:\n{request.synopsis}"
    )
