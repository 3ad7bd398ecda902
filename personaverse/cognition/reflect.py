"""Reflection: turn accumulated memories into higher-level thoughts.

Reflection fires when the importance trigger (lowered by every perceived
event's poignancy) reaches zero. It asks the oracle for focal questions about
recent memories, recalls evidence for each and stores the resulting insights
as thoughts that cite their evidence nodes. Right after a conversation ends,
the persona also writes a planning note and a memo about it.
"""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from personaverse.cognition.converse import THOUGHT_LIFETIME
from personaverse.cognition.retrieve import new_retrieve
from personaverse.embeddings import get_or_embed
from personaverse.llm_calls import (
    conversation_text,
    query_event_triple,
    query_focal_points,
    query_insight_and_evidence,
    query_memo_on_convo,
    query_planning_thought_on_convo,
    query_thought_poignancy,
)
from personaverse.logging_utils import log_llm
from personaverse.memory.associative import ConceptNode

if TYPE_CHECKING:
    from personaverse.persona import Persona


POST_CHAT_WINDOW = dt.timedelta(seconds=10)


async def generate_focal_points(persona: "Persona", n: int = 3) -> List[str]:
    nodes = sorted(
        (node for node in persona.a_mem.seq_event + persona.a_mem.seq_thought if "idle" not in node.embedding_key),
        key=lambda node: node.last_accessed,
    )
    recent = nodes[-persona.scratch.importance_ele_n:] if persona.scratch.importance_ele_n else nodes
    statements = "".join(f"{node.embedding_key}\n" for node in recent)
    return await query_focal_points(persona, statements, n)


async def generate_insights_and_evidence(
    persona: "Persona", nodes: Sequence[ConceptNode], n: int = 5
) -> Dict[str, List[str]]:
    """Insights about ``nodes`` mapped to the ids of the nodes cited as evidence."""
    statements = "".join(f"{count}. {node.embedding_key}\n" for count, node in enumerate(nodes))
    insights = await query_insight_and_evidence(persona, statements, n)
    return {
        thought: [nodes[i].node_id for i in indices if 0 <= i < len(nodes)]
        for thought, indices in insights.items()
    }


async def generate_poig_score(persona: "Persona", description: str) -> int:
    if "is idle" in description:
        return 1
    return await query_thought_poignancy(persona, description)


async def _add_thought(persona: "Persona", thought: str, evidence: Optional[List[str]]) -> ConceptNode:
    created = persona.scratch.curr_time
    s, p, o = await query_event_triple(persona, thought)
    poignancy = await generate_poig_score(persona, thought)
    embedding = await get_or_embed(persona, thought)
    return persona.a_mem.add_thought(
        created, created + THOUGHT_LIFETIME, s, p, o, thought, {s, p, o}, poignancy, (thought, embedding), evidence
    )


async def run_reflect(persona: "Persona") -> List[ConceptNode]:
    focal_points = await generate_focal_points(persona, 3)
    retrieved = await new_retrieve(persona, focal_points)

    added: List[ConceptNode] = []
    for nodes in retrieved.values():
        if not nodes:
            continue
        thoughts = await generate_insights_and_evidence(persona, nodes, 5)
        for thought, evidence in thoughts.items():
            added.append(await _add_thought(persona, thought, evidence))
    log_llm(f"[{persona.name}] Reflected on {len(focal_points)} focal point(s): {len(added)} new thought(s)")
    return added


def reflection_trigger(persona: "Persona") -> bool:
    memories = persona.a_mem.seq_event + persona.a_mem.seq_thought
    return persona.scratch.importance_trigger_curr <= 0 and bool(memories)


def reset_reflection_counter(persona: "Persona") -> None:
    persona.scratch.importance_trigger_curr = persona.scratch.importance_trigger_max
    persona.scratch.importance_ele_n = 0


def chat_just_ended(persona: "Persona") -> bool:
    """True on the last tick of a conversation."""
    scratch = persona.scratch
    if not scratch.chatting_end_time or not scratch.curr_time:
        return False
    return scratch.curr_time < scratch.chatting_end_time <= scratch.curr_time + POST_CHAT_WINDOW


async def reflect_on_conversation(persona: "Persona") -> List[ConceptNode]:
    scratch = persona.scratch
    all_utt = conversation_text(scratch.chat)
    last_chat = persona.a_mem.get_last_chat(scratch.chatting_with) if scratch.chatting_with else None
    evidence = [last_chat.node_id] if last_chat else None

    planning_thought = await query_planning_thought_on_convo(persona, all_utt)
    memo_thought = await query_memo_on_convo(persona, all_utt)
    added = [
        await _add_thought(persona, f"For {scratch.name}'s planning: {planning_thought}", evidence),
        await _add_thought(persona, f"{scratch.name} {memo_thought}", evidence),
    ]
    log_llm(f"[{persona.name}] Reflected on conversation with {scratch.chatting_with}")
    return added


async def reflect(persona: "Persona") -> None:
    if reflection_trigger(persona):
        await run_reflect(persona)
        reset_reflection_counter(persona)

    if chat_just_ended(persona):
        await reflect_on_conversation(persona)


__all__ = [
    "POST_CHAT_WINDOW",
    "chat_just_ended",
    "generate_focal_points",
    "generate_insights_and_evidence",
    "generate_poig_score",
    "reflect",
    "reflect_on_conversation",
    "reflection_trigger",
    "reset_reflection_counter",
    "run_reflect",
]
