"""Persona-to-persona conversation and whispered memories.

A conversation alternates between the two personas. Before every utterance
the speaker recalls what it knows about the listener, summarises the
relationship and recalls again with that summary as a focal point, so each
line is grounded in fresh memory retrieval.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import TYPE_CHECKING, Dict, List, Mapping, Sequence, Tuple

from personaverse.cognition.perceive import event_poignancy
from personaverse.cognition.retrieve import new_retrieve
from personaverse.embeddings import get_or_embed
from personaverse.llm_calls import (
    conversation_text,
    query_event_triple,
    query_iterative_chat_utterance,
    query_summarize_conversation,
    query_summarize_relationship,
    query_whisper_inner_thought,
)
from personaverse.logging_utils import log_llm
from personaverse.memory.associative import ConceptNode

if TYPE_CHECKING:
    from personaverse.environment.maze import Maze
    from personaverse.persona import Persona


MAX_UTTERANCES = 8
CHARS_PER_MINUTE_UNIT = 8
THOUGHT_LIFETIME = dt.timedelta(days=30)

Conversation = List[List[str]]


async def generate_summarize_agent_relationship(
    init_persona: "Persona", target_persona: "Persona", retrieved: Mapping[str, Sequence[ConceptNode]]
) -> str:
    statements = "".join(f"{node.embedding_key}\n" for nodes in retrieved.values() for node in nodes)
    return await query_summarize_relationship(init_persona, target_persona.name, statements)


async def generate_one_utterance(
    init_persona: "Persona",
    target_persona: "Persona",
    retrieved: Dict[str, List[ConceptNode]],
    curr_chat: Conversation,
) -> Dict[str, object]:
    curr_context = (
        f"{init_persona.name} was {init_persona.scratch.act_description} when {init_persona.name} "
        f"saw {target_persona.name} in the middle of {target_persona.scratch.act_description}.\n"
        f"{init_persona.name} is initiating a conversation with {target_persona.name}."
    )
    return await query_iterative_chat_utterance(init_persona, target_persona, retrieved, curr_context, curr_chat)


async def agent_chat_v2(maze: "Maze", init_persona: "Persona", target_persona: "Persona") -> Conversation:
    """Alternate utterances until a speaker ends the chat or ``MAX_UTTERANCES`` is reached."""
    curr_chat: Conversation = []
    speakers = (init_persona, target_persona)
    for turn in range(MAX_UTTERANCES):
        speaker = speakers[turn % 2]
        listener = speakers[(turn + 1) % 2]

        retrieved = await new_retrieve(speaker, [listener.scratch.name], 50)
        relationship = await generate_summarize_agent_relationship(speaker, listener, retrieved)

        focal_points = [relationship, f"{listener.scratch.name} is {listener.scratch.act_description}"]
        last_chat = conversation_text(curr_chat[-4:])
        if last_chat:
            focal_points.append(last_chat)
        retrieved = await new_retrieve(speaker, focal_points, 15)

        result = await generate_one_utterance(speaker, listener, retrieved, curr_chat)
        curr_chat.append([speaker.scratch.name, str(result["utterance"])])
        if result["end"]:
            break
    return curr_chat


async def generate_convo(
    maze: "Maze", init_persona: "Persona", target_persona: "Persona"
) -> Tuple[Conversation, int]:
    """Run a conversation and return it with its duration in minutes."""
    convo = await agent_chat_v2(maze, init_persona, target_persona)
    all_utt = conversation_text(convo)
    convo_length = math.ceil(math.ceil(len(all_utt) / CHARS_PER_MINUTE_UNIT) / 30)
    log_llm(
        f"[{init_persona.name}] Chatted with {target_persona.name}: "
        f"{len(convo)} utterance(s), {convo_length} min"
    )
    return convo, max(convo_length, 1)


async def generate_convo_summary(persona: "Persona", convo: Conversation) -> str:
    return await query_summarize_conversation(persona, convo)


async def load_history_via_whisper(personas: Mapping[str, "Persona"], whispers: Sequence[Sequence[str]]) -> None:
    """Seed memories from ``[persona name, whisper]`` pairs as inner-thought nodes."""
    for name, whisper in whispers:
        persona = personas[name]
        thought = await query_whisper_inner_thought(persona, whisper)
        created = persona.scratch.curr_time
        s, p, o = await query_event_triple(persona, thought)
        poignancy = await event_poignancy(persona, whisper)
        embedding = await get_or_embed(persona, thought)
        persona.a_mem.add_thought(
            created,
            created + THOUGHT_LIFETIME,
            s,
            p,
            o,
            thought,
            {s, p, o},
            poignancy,
            (thought, embedding),
            None,
        )
        log_llm(f"[{persona.name}] Whispered: {thought}")


__all__ = [
    "MAX_UTTERANCES",
    "agent_chat_v2",
    "generate_convo",
    "generate_convo_summary",
    "generate_one_utterance",
    "generate_summarize_agent_relationship",
    "load_history_via_whisper",
]
