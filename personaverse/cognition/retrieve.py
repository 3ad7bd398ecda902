"""Memory retrieval: keyword recall for perceived events and scored recall for focal points.

``retrieve`` is the cheap path used every tick: for each perceived event it
returns the events and thoughts that share a keyword with it. ``new_retrieve``
ranks the whole memory stream against free-text focal points by recency,
importance and embedding relevance; planning, conversation and reflection use
it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Sequence

from personaverse.embeddings import get_or_embed
from personaverse.errors import VectorLengthMismatchError
from personaverse.logging_utils import log_deterministic
from personaverse.memory.associative import ConceptNode

if TYPE_CHECKING:
    from personaverse.persona import Persona


RECENCY_FACTOR = 0.5
RELEVANCE_FACTOR = 3
IMPORTANCE_FACTOR = 2


@dataclass
class RetrievedContext:
    """Memories recalled for one perceived event."""

    curr_event: ConceptNode
    events: List[ConceptNode] = field(default_factory=list)
    thoughts: List[ConceptNode] = field(default_factory=list)


def retrieve(persona: "Persona", perceived: Sequence[ConceptNode]) -> Dict[str, RetrievedContext]:
    """Keyword recall keyed by each perceived event's description."""
    retrieved: Dict[str, RetrievedContext] = {}
    for event in perceived:
        s, p, o = event.spo_summary()
        retrieved[event.description] = RetrievedContext(
            curr_event=event,
            events=persona.a_mem.retrieve_relevant_events(s, p, o),
            thoughts=persona.a_mem.retrieve_relevant_thoughts(s, p, o),
        )
    if retrieved:
        log_deterministic(f"[{persona.name}] Retrieved context for {len(retrieved)} perceived event(s)")
    return retrieved


# ============================================================================
# Scoring helpers
# ============================================================================


def cos_sim(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; a zero-length vector scores 0.0.

    Raises:
        VectorLengthMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise VectorLengthMismatchError(f"Cannot compare vectors of length {len(a)} and {len(b)}")
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


def normalize_dict_floats(d: Dict[str, float], target_min: float, target_max: float) -> Dict[str, float]:
    """Min-max scale values of ``d`` in place into ``[target_min, target_max]``.

    When every value is equal they all map to the midpoint of the target range.
    """
    if not d:
        return d
    min_val = min(d.values())
    max_val = max(d.values())
    range_val = max_val - min_val
    for key, val in d.items():
        if range_val == 0:
            d[key] = (target_max - target_min) / 2 + target_min
        else:
            d[key] = (val - min_val) * (target_max - target_min) / range_val + target_min
    return d


def top_highest_x_values(d: Dict[str, float], x: int) -> Dict[str, float]:
    """The ``x`` highest-scoring entries, highest first."""
    return dict(sorted(d.items(), key=lambda item: item[1], reverse=True)[:x])


def extract_recency(persona: "Persona", nodes: Sequence[ConceptNode]) -> Dict[str, float]:
    decay = persona.scratch.recency_decay
    return {node.node_id: decay ** (i + 1) for i, node in enumerate(nodes)}


def extract_importance(persona: "Persona", nodes: Sequence[ConceptNode]) -> Dict[str, float]:
    return {node.node_id: float(node.poignancy) for node in nodes}


def extract_relevance(
    persona: "Persona", nodes: Sequence[ConceptNode], focal_pt_embedding: Sequence[float]
) -> Dict[str, float]:
    embeddings = persona.a_mem.embeddings
    return {node.node_id: cos_sim(embeddings[node.embedding_key], focal_pt_embedding) for node in nodes}


# ============================================================================
# Scored retrieval
# ============================================================================


def _retrievable_nodes(persona: "Persona") -> List[ConceptNode]:
    nodes = [
        node
        for node in persona.a_mem.seq_event + persona.a_mem.seq_thought
        if "idle" not in node.embedding_key
    ]
    return sorted(nodes, key=lambda node: node.last_accessed)


async def new_retrieve(
    persona: "Persona", focal_points: Sequence[str], n_count: int = 30
) -> Dict[str, List[ConceptNode]]:
    """Rank memories against each focal point and return the ``n_count`` best per point.

    Recency ranks nodes by ``last_accessed``, oldest first, and the oldest
    scores highest. Every returned node has its ``last_accessed`` set to the
    persona's current time, so a touched node gets the lowest recency score
    on the next call.
    """
    scratch = persona.scratch
    retrieved: Dict[str, List[ConceptNode]] = {}
    for focal_pt in focal_points:
        nodes = _retrievable_nodes(persona)
        if not nodes:
            retrieved[focal_pt] = []
            continue

        focal_embedding = await get_or_embed(persona, focal_pt)
        recency = normalize_dict_floats(extract_recency(persona, nodes), 0, 1)
        importance = normalize_dict_floats(extract_importance(persona, nodes), 0, 1)
        relevance = normalize_dict_floats(extract_relevance(persona, nodes, focal_embedding), 0, 1)

        scores = {
            node_id: scratch.recency_w * recency[node_id] * RECENCY_FACTOR
            + scratch.relevance_w * relevance[node_id] * RELEVANCE_FACTOR
            + scratch.importance_w * importance[node_id] * IMPORTANCE_FACTOR
            for node_id in recency
        }
        best = top_highest_x_values(scores, n_count)
        chosen = [persona.a_mem.id_to_node[node_id] for node_id in best]
        for node in chosen:
            node.last_accessed = scratch.curr_time
        retrieved[focal_pt] = chosen

    log_deterministic(
        f"[{persona.name}] Ranked memories for {len(focal_points)} focal point(s)"
    )
    return retrieved


__all__ = [
    "RetrievedContext",
    "cos_sim",
    "extract_importance",
    "extract_recency",
    "extract_relevance",
    "new_retrieve",
    "normalize_dict_floats",
    "retrieve",
    "top_highest_x_values",
]
