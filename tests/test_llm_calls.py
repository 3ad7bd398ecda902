"""Tests for oracle query helpers: parsing, cleanup and fail-safes."""

import datetime as dt

import pytest

from personaverse.cognition.retrieve import RetrievedContext
from personaverse.llm_calls import (
    GENERIC_DAILY_PLAN,
    conversation_text,
    format_schedule_lines,
    normalize_subtasks,
    parse_insights,
    parse_schedule_lines,
    parse_triple,
    query_daily_plan,
    query_decide_to_react,
    query_decide_to_talk,
    query_event_poignancy,
    query_focal_points,
    query_iterative_chat_utterance,
    query_pronunciatio,
    query_revised_identity,
    query_summarize_conversation,
    query_task_decomp,
    query_wake_up_hour,
)
from personaverse.memory import schedule_minutes

from helpers import ScriptedOracle, add_event, make_persona


def _out(value):
    return '{"output": "' + value + '"}'


def test_parse_triple():
    assert parse_triple("(Isabella Rodriguez, eat, breakfast)", "x") == ("Isabella Rodriguez", "eat", "breakfast")
    assert parse_triple("eat, breakfast)", "Isabella Rodriguez") == ("Isabella Rodriguez", "eat", "breakfast")

    with pytest.raises(ValueError):
        parse_triple("breakfast", "Isabella Rodriguez")


def test_normalize_subtasks_fits_duration():
    entries = normalize_subtasks([("getting up", 7), ("brushing teeth", 10), ("showering", 90)], "morning", 60)

    assert entries == [
        ["morning (getting up)", 5],
        ["morning (brushing teeth)", 10],
        ["morning (showering)", 45],
    ]
    assert normalize_subtasks([("short", 20)], "morning", 60) == [["morning (short)", 60]]
    assert normalize_subtasks([], "morning", 60) == [["morning", 60]]


def test_schedule_lines_round_trip():
    start = dt.datetime(2023, 2, 13, 13, 0)
    schedule = [["lunch", 30], ["reading", 90]]

    text = format_schedule_lines(schedule, start)

    assert text == "13:00 ~ 13:30 -- lunch\n13:30 ~ 15:00 -- reading"
    assert parse_schedule_lines(text) == schedule
    assert parse_schedule_lines("23:30 ~ 00:30 -- sleeping") == [["sleeping", 60]]


def test_parse_insights():
    answer = "1. Isabella enjoys cooking (because of 0, 2)\n2. no evidence here\n3. Klaus reads a lot (because of 1)."

    assert parse_insights(answer, 5) == {"Isabella enjoys cooking": [0, 2], "Klaus reads a lot": [1]}
    assert parse_insights(answer, 1) == {"Isabella enjoys cooking": [0, 2]}


def test_conversation_text():
    assert conversation_text([["Isabella", "Hi"], ["Klaus", "Hello"]]) == "Isabella: Hi\nKlaus: Hello\n"
    assert conversation_text(None) == ""


@pytest.mark.asyncio
async def test_wake_up_hour_parses_and_falls_back():
    persona = make_persona(oracle=ScriptedOracle([_out("7 am")]))
    assert await query_wake_up_hour(persona) == 7

    persona = make_persona(oracle=ScriptedOracle(default=_out("31")))
    assert await query_wake_up_hour(persona) == 8


@pytest.mark.asyncio
async def test_daily_plan_from_numbered_text():
    answer = _out("1) eat breakfast at 8:30 am, 2) work at the cafe, 3) go to bed at 11 pm")
    persona = make_persona(oracle=ScriptedOracle([answer]))

    assert await query_daily_plan(persona, 8) == [
        "wake up and complete the morning routine at 8:00 am",
        "eat breakfast at 8:30 am",
        "work at the cafe",
        "go to bed at 11 pm",
    ]

    persona = make_persona(oracle=ScriptedOracle(default=_out("nothing")))
    assert await query_daily_plan(persona, 8) == GENERIC_DAILY_PLAN


@pytest.mark.asyncio
async def test_task_decomp_labels_subtasks():
    persona = make_persona(oracle=ScriptedOracle([_out("getting up (5 min), brushing teeth (10 min)")]))

    entries = await query_task_decomp(persona, "morning routine", 60)

    assert entries == [["morning routine (getting up)", 5], ["morning routine (brushing teeth)", 55]]
    assert schedule_minutes(entries) == 60


@pytest.mark.asyncio
async def test_pronunciatio_is_shortened():
    persona = make_persona(oracle=ScriptedOracle([_out("☕🍰🎉🎈")]))

    assert await query_pronunciatio(persona, "baking") == "☕🍰🎉"


@pytest.mark.asyncio
async def test_poignancy_range():
    persona = make_persona(oracle=ScriptedOracle([_out("12"), _out("9")]))

    assert await query_event_poignancy(persona, "Isabella is baking") == 9


def _reaction_setup(oracle):
    init = make_persona(oracle=oracle)
    target = make_persona("Klaus Mueller")
    for persona, desc in ((init, "working (serving coffee)"), (target, "reading (studying)")):
        persona.scratch.act_address = "the Ville:Hobbs Cafe:cafe:counter"
        persona.scratch.act_description = desc
    node = add_event(init, "Klaus Mueller is reading", subject="Klaus Mueller", obj="reading")
    return init, target, RetrievedContext(curr_event=node, events=[node])


@pytest.mark.asyncio
async def test_decide_to_talk_and_react():
    init, target, ctx = _reaction_setup(ScriptedOracle([_out("Yes, she would"), _out("Option 1")]))

    assert await query_decide_to_talk(init, target, ctx) is True
    assert await query_decide_to_react(init, target, ctx) == "1"
    assert "Klaus Mueller is already studying" in init.oracle.prompts[0]

    init, target, ctx = _reaction_setup(ScriptedOracle(default=_out("maybe")))
    assert await query_decide_to_talk(init, target, ctx) is False
    assert await query_decide_to_react(init, target, ctx) == "2"


@pytest.mark.asyncio
async def test_summarize_conversation_prefix():
    persona = make_persona(oracle=ScriptedOracle([_out("the upcoming party.")]))

    summary = await query_summarize_conversation(persona, [["Isabella", "Come to my party"]])

    assert summary == "conversing about the upcoming party"


@pytest.mark.asyncio
async def test_iterative_chat_utterance():
    oracle = ScriptedOracle(['Here: {"utterance": "Hi Klaus!", "end": "false"}', "not json"])
    init = make_persona(oracle=oracle)
    target = make_persona("Klaus Mueller")

    result = await query_iterative_chat_utterance(init, target, {}, "context", [])
    assert result == {"utterance": "Hi Klaus!", "end": False}

    oracle.responses = ["not json", "still not json"]
    result = await query_iterative_chat_utterance(init, target, {}, "context", [["Isabella", "Hi"]])
    assert result == {"utterance": "...", "end": True}


@pytest.mark.asyncio
async def test_focal_points_from_list():
    persona = make_persona(oracle=ScriptedOracle(['{"output": ["1. Who is Klaus?", "2. What is the party?", "3. a", "4. b"]}']))

    assert await query_focal_points(persona, "statements", 3) == ["Who is Klaus?", "What is the party?", "a"]


@pytest.mark.asyncio
async def test_revised_identity_uses_four_single_requests():
    oracle = ScriptedOracle([
        "Remember the party.",
        "Feels excited.",
        "Status: Isabella is preparing the party decorations.",
        "Buy flowers\nand balloons.",
    ])
    persona = make_persona(oracle=oracle)

    revised = await query_revised_identity(persona, "[Statements]\n")

    assert revised["currently"] == "Isabella is preparing the party decorations."
    assert revised["daily_plan_req"] == "Buy flowers and balloons."
    assert len(oracle.prompts) == 4
