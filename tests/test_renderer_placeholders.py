import pytest

from helpers import ScriptedOracle, make_persona
from personaverse.cognition.prompts import DEFAULT_PROMPTS, PromptTemplate
from personaverse.cognition.renderers import render_named, render_prompt
from personaverse.llm_calls import query_wake_up_hour


def test_placeholders_are_filled_in_both_sections():
    tmpl = PromptTemplate(name="t", system="You are {{name}}.", user="{{name}} is {{activity}}")
    rendered = render_prompt(tmpl, {"name": "Klaus", "activity": "reading"})
    assert rendered.system == "You are Klaus."
    assert rendered.user == "Klaus is reading"
    assert rendered.text == "You are Klaus.\n\nKlaus is reading"


def test_missing_values_stay_and_none_is_blank():
    tmpl = PromptTemplate(name="t", user="{{a}}|{{b}}|{{c}}")
    rendered = render_prompt(tmpl, {"a": None, "b": 3})
    assert rendered.user == "|3|{{c}}"
    assert rendered.text == "|3|{{c}}"


def test_json_braces_survive_rendering():
    tmpl = PromptTemplate(name="t", user='{"utterance": "<{{name}}\'s line>"}')
    assert render_prompt(tmpl, {"name": "Klaus"}).user == '{"utterance": "<Klaus\'s line>"}'


def test_default_library_has_every_query_template():
    for name in (
        "wake_up_hour", "daily_plan", "hourly_schedule", "task_decomp", "action_sector", "action_arena",
        "action_game_object", "pronunciatio", "event_triple", "decide_to_talk", "decide_to_react",
        "iterative_chat_utterance", "event_poignancy", "focal_points", "insight_and_evidence",
    ):
        assert DEFAULT_PROMPTS.get(name).user
    with pytest.raises(KeyError):
        DEFAULT_PROMPTS.get("no_such_prompt")


@pytest.mark.asyncio
async def test_persona_prompt_library_overrides_defaults():
    library = DEFAULT_PROMPTS.copy()
    library.register(PromptTemplate(name="wake_up_hour", user="When does {{first_name}} get up?"))
    oracle = ScriptedOracle(['{"output": "6"}'])
    persona = make_persona(oracle=oracle)
    persona.prompt_library = library

    assert await query_wake_up_hour(persona) == 6
    assert "When does Isabella get up?" in oracle.prompts[0]
    # the shared defaults are untouched
    assert "When does" not in render_named("wake_up_hour", {"first_name": "Isabella"})
