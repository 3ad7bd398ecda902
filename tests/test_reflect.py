import datetime as dt

import pytest

from helpers import ScriptedOracle, add_event, make_persona
from personaverse.cognition.reflect import (
    chat_just_ended,
    generate_focal_points,
    generate_insights_and_evidence,
    reflect,
    reflect_on_conversation,
    reflection_trigger,
)


def test_reflection_trigger_needs_memories():
    persona = make_persona()
    persona.scratch.importance_trigger_curr = 0
    assert reflection_trigger(persona) is False

    add_event(persona, "Isabella Rodriguez is cooking pasta")
    assert reflection_trigger(persona) is True

    persona.scratch.importance_trigger_curr = 10
    assert reflection_trigger(persona) is False


@pytest.mark.asyncio
async def test_insights_map_statement_numbers_to_node_ids():
    oracle = ScriptedOracle(['{"output": "Isabella likes food (because of 0, 1, 7)"}'])
    persona = make_persona(oracle=oracle)
    first = add_event(persona, "Isabella Rodriguez is cooking pasta")
    second = add_event(persona, "Isabella Rodriguez is tasting sauce")

    insights = await generate_insights_and_evidence(persona, [first, second])

    assert insights == {"Isabella likes food": [first.node_id, second.node_id]}
    assert "0. Isabella Rodriguez is cooking pasta" in oracle.prompts[0]


@pytest.mark.asyncio
async def test_focal_points_read_every_memory_when_window_is_unset():
    oracle = ScriptedOracle(default='{"output": "What is Isabella cooking?"}')
    persona = make_persona(oracle=oracle)
    add_event(persona, "Isabella Rodriguez is cooking pasta", created=dt.datetime(2023, 2, 13, 6, 0))
    add_event(persona, "Isabella Rodriguez is tasting sauce", created=dt.datetime(2023, 2, 13, 6, 30))

    assert await generate_focal_points(persona, n=1) == ["What is Isabella cooking?"]
    assert "Isabella Rodriguez is cooking pasta" in oracle.prompts[0]
    assert "Isabella Rodriguez is tasting sauce" in oracle.prompts[0]

    persona.scratch.importance_ele_n = 1
    await generate_focal_points(persona, n=1)
    assert "Isabella Rodriguez is cooking pasta" not in oracle.prompts[1]
    assert "Isabella Rodriguez is tasting sauce" in oracle.prompts[1]


def test_chat_just_ended_window():
    persona = make_persona()
    now = persona.scratch.curr_time
    assert chat_just_ended(persona) is False

    persona.scratch.chatting_end_time = now + dt.timedelta(seconds=10)
    assert chat_just_ended(persona) is True

    persona.scratch.chatting_end_time = now + dt.timedelta(seconds=20)
    assert chat_just_ended(persona) is False

    persona.scratch.chatting_end_time = now
    assert chat_just_ended(persona) is False


@pytest.mark.asyncio
async def test_reflect_adds_thought_with_evidence_and_resets_counter():
    oracle = ScriptedOracle([
        '{"output": ["What does Isabella like?"]}',
        '{"output": "Isabella enjoys cooking (because of 0)"}',
        '{"output": "(Isabella, enjoys, cooking)"}',
        '{"output": "6"}',
    ])
    persona = make_persona(oracle=oracle)
    add_event(persona, "Isabella Rodriguez is cooking pasta")
    add_event(persona, "Isabella Rodriguez is tasting sauce")
    persona.scratch.importance_trigger_curr = 0
    persona.scratch.importance_ele_n = 2

    await reflect(persona)

    assert len(persona.a_mem.seq_thought) == 1
    thought = persona.a_mem.seq_thought[0]
    assert thought.description == "Isabella enjoys cooking"
    assert (thought.subject, thought.predicate, thought.object) == ("Isabella", "enjoys", "cooking")
    assert thought.poignancy == 6
    assert thought.depth == 1
    assert len(thought.filling) == 1
    assert thought.filling[0] in persona.a_mem.id_to_node
    assert thought.expiration == thought.created + dt.timedelta(days=30)

    assert persona.scratch.importance_trigger_curr == persona.scratch.importance_trigger_max == 150
    assert persona.scratch.importance_ele_n == 0
    assert len(oracle.prompts) == 4


@pytest.mark.asyncio
async def test_reflect_on_conversation_writes_planning_note_and_memo():
    oracle = ScriptedOracle([
        '{"output": "bring flyers to the party"}',
        '{"output": "enjoyed talking about the party"}',
        '{"output": "(Isabella, plans, flyers)"}',
        '{"output": "4"}',
        '{"output": "(Isabella, enjoyed, talk)"}',
        '{"output": "3"}',
    ])
    persona = make_persona(oracle=oracle)
    now = persona.scratch.curr_time
    chat = [["Isabella Rodriguez", "Come to the party!"], ["Klaus Mueller", "Sure."]]
    node = persona.a_mem.add_chat(
        now, None, "Isabella Rodriguez", "chat with", "Klaus Mueller",
        "conversing about the party", {"Isabella Rodriguez", "Klaus Mueller"}, 5,
        ("conversing about the party", [0.0] * 16), chat,
    )
    persona.scratch.chatting_with = "Klaus Mueller"
    persona.scratch.chat = chat
    persona.scratch.chatting_end_time = now + dt.timedelta(seconds=10)

    added = await reflect_on_conversation(persona)

    assert [thought.description for thought in added] == [
        "For Isabella Rodriguez's planning: bring flyers to the party",
        "Isabella Rodriguez enjoyed talking about the party",
    ]
    assert all(thought.filling == [node.node_id] for thought in added)
    assert [thought.poignancy for thought in added] == [4, 3]
    assert "Klaus Mueller: Sure." in oracle.prompts[0]
