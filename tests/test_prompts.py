from __future__ import annotations

from reze_studio.prompts import (
    ART_STYLES,
    DEFAULT_LIGHTING,
    DEFAULT_MOOD,
    DEFAULT_STYLE,
    LIGHTING_OPTIONS,
    MOODS,
    OTHER_OPTION,
    compose_image_prompt,
)


def test_compose_joins_selected_options():
    assert (
        compose_image_prompt("A majestic lion", style="Cyberpunk", mood="Dramatic", lighting="Cinematic")
        == "A majestic lion, Cyberpunk, Dramatic, Cinematic"
    )


def test_compose_skips_unselected_options():
    assert compose_image_prompt("A fox", style=None, mood="Serene") == "A fox, Serene"


def test_other_option_uses_custom_text():
    prompt = compose_image_prompt(
        "A fox",
        style=OTHER_OPTION,
        custom_style="  ukiyo-e woodblock  ",
        lighting=OTHER_OPTION,
        custom_lighting="",
    )

    assert prompt == "A fox, ukiyo-e woodblock"


def test_default_options_are_offered():
    assert DEFAULT_STYLE in ART_STYLES
    assert DEFAULT_MOOD in MOODS
    assert DEFAULT_LIGHTING in LIGHTING_OPTIONS
