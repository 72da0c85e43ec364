from __future__ import annotations

ART_STYLES = [
    "Photorealistic",
    "Anime",
    "Cyberpunk",
    "Impressionism",
    "Steampunk",
    "Minimalist",
    "Fantasy Art",
    "Watercolor",
    "Abstract",
    "Cartoon",
    "Vintage",
]
MOODS = ["Dramatic", "Serene", "Cheerful", "Mysterious", "Energetic"]
LIGHTING_OPTIONS = ["Soft Light", "Cinematic", "Neon", "Golden Hour", "Low Light"]
# Preselected on the generate tab.
DEFAULT_STYLE = "Cyberpunk"
DEFAULT_MOOD = "Dramatic"
DEFAULT_LIGHTING = "Cinematic"
# Selecting this swaps the option for whatever the user typed.
OTHER_OPTION = "Other..."

IMAGE_ASPECT_RATIOS = ["16:9", "1:1", "9:16", "4:3", "3:4"]
VIDEO_ASPECT_RATIOS = ["16:9", "9:16"]

DEFAULT_IMAGE_PROMPT = "A majestic lion with a crown of stars"
DEFAULT_EDIT_PROMPT = "Add a dramatic, cinematic retro filter."
DEFAULT_VIDEO_PROMPT = "A gentle breeze makes the leaves of the tree rustle."

# Shown while a video job polls; cosmetic only.
POLLING_MESSAGES = [
    "Initializing AI core...",
    "Analyzing source frame...",
    "Rendering video layers... (this may take a moment)",
    "Compositing animation...",
    "Finalizing render...",
]

CHAT_GREETING = (
    "Hi there! I'm Reze, your creative assistant. How can I help you today? "
    "You can ask me for prompt ideas or how to use the generator's features."
)

CHAT_SYSTEM_INSTRUCTION = (
    "You are Reze, the friendly creative assistant of an AI studio that can generate images "
    "from text, edit uploaded images with instructions, and animate an image into a short video.\n"
    "Help the user write vivid, specific prompts (subject, setting, style, mood, lighting, camera).\n"
    "When asked how to use the studio, explain the Generate, Edit, Animate and Assistant tabs briefly.\n"
    "Keep answers concise and practical."
)


def resolve_option(choice: str | None, custom: str | None) -> str | None:
    if choice == OTHER_OPTION:
        return (custom or "").strip() or None
    return (choice or "").strip() or None


def compose_image_prompt(
    prompt: str,
    style: str | None = None,
    mood: str | None = None,
    lighting: str | None = None,
    custom_style: str = "",
    custom_mood: str = "",
    custom_lighting: str = "",
) -> str:
    """
    Build the final image prompt: the user's text followed by the chosen style,
    mood and lighting, comma separated, skipping anything left empty.
    """
    parts = [
        prompt,
        resolve_option(style, custom_style),
        resolve_option(mood, custom_mood),
        resolve_option(lighting, custom_lighting),
    ]
    return ", ".join(p for p in parts if p)
