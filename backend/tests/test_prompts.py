import pytest

from agent.director.prompts import DIRECTOR_SYSTEM_PROMPT, get_system_prompt


def test_prompt_without_project_details_is_the_base_prompt():
    assert get_system_prompt() == DIRECTOR_SYSTEM_PROMPT


@pytest.mark.parametrize(
    ("width", "height", "orientation"),
    [
        (1920, 1080, "landscape/horizontal"),
        (1080, 1920, "portrait/vertical"),
        (1080, 1080, "square"),
    ],
)
def test_project_context_section(width, height, orientation):
    prompt = get_system_prompt("Ocean Doc", width, height, 24)

    assert prompt.startswith(DIRECTOR_SYSTEM_PROMPT)
    context = prompt.split("## Current Project Context\n\n", 1)[1]
    assert context.splitlines() == [
        'Current project: "Ocean Doc"',
        f"Video dimensions: {width}x{height} ({orientation})",
        "Frame rate: 24fps",
    ]
