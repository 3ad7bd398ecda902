"""
Associative memory: the long-term memory stream of a persona.

Every observation (event), inference (thought) and conversation (chat) becomes
a ``ConceptNode``. Nodes are indexed three ways:
- by id (``id_to_node``)
- by type, most recent first (``seq_event``, ``seq_thought``, ``seq_chat``)
- by lower-cased keyword, most recent first (``kw_to_event`` ...)

Keyword strength counters record how often a keyword showed up in non-idle
events and thoughts; the reflection trigger and prompts use them as a rough
measure of salience.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, Field, TypeAdapter, field_serializer

from personaverse.schemas import Timestamp


NODE_TYPES = ("event", "thought", "chat")

EmbeddingPair = Tuple[str, List[float]]


class ConceptNode(BaseModel):
    """A single memory record.

    ``filling`` holds evidence node ids for events/thoughts and the transcript
    (``[speaker, utterance]`` pairs) for chats.
    """

    node_id: str
    node_count: int
    type_count: int
    type: Literal["event", "thought", "chat"]
    depth: int
    created: Timestamp
    expiration: Optional[Timestamp] = None
    subject: str
    predicate: str
    object: str
    description: str
    embedding_key: str
    poignancy: int
    keywords: Set[str] = Field(default_factory=set)
    filling: Optional[List[Any]] = None
    last_accessed: Optional[Timestamp] = None

    def model_post_init(self, __context: Any) -> None:
        if self.last_accessed is None:
            self.last_accessed = self.created

    @field_serializer("keywords")
    def _sorted_keywords(self, keywords: Set[str]) -> List[str]:
        return sorted(keywords)

    def spo_summary(self) -> Tuple[str, str, str]:
        return (self.subject, self.predicate, self.object)


class KeywordStrength(BaseModel):
    """Contents of ``kw_strength.json``."""

    kw_strength_event: Dict[str, int] = Field(default_factory=dict)
    kw_strength_thought: Dict[str, int] = Field(default_factory=dict)


_NODES = TypeAdapter(Dict[str, ConceptNode])
_EMBEDDINGS = TypeAdapter(Dict[str, List[float]])


def clean_event_description(description: str) -> str:
    """Shorten ``"<s> is <verb> (<detail>)"`` style descriptions to the first words plus detail."""
    if "(" not in description:
        return description
    words = description.split(" ")
    return " ".join(words[:3]) + " " + description.split("(")[-1][:-1]


class AssociativeMemory:
    """Memory stream with keyword and type indices.

    Node ids come from a counter owned by this instance, so two personas never
    share or race on id allocation.
    """

    def __init__(self) -> None:
        self.id_to_node: Dict[str, ConceptNode] = {}

        self.seq_event: List[ConceptNode] = []
        self.seq_thought: List[ConceptNode] = []
        self.seq_chat: List[ConceptNode] = []

        self.kw_to_event: Dict[str, List[ConceptNode]] = {}
        self.kw_to_thought: Dict[str, List[ConceptNode]] = {}
        self.kw_to_chat: Dict[str, List[ConceptNode]] = {}

        self.kw_strength_event: Dict[str, int] = {}
        self.kw_strength_thought: Dict[str, int] = {}

        self.embeddings: Dict[str, List[float]] = {}

        self._node_count = 0

    def __len__(self) -> int:
        return len(self.id_to_node)

    # ========================================================================
    # Insertion
    # ========================================================================

    def _add_node(
        self,
        node_type: str,
        created: datetime,
        expiration: Optional[datetime],
        s: str,
        p: str,
        o: str,
        description: str,
        keywords: Iterable[str],
        poignancy: int,
        embedding_pair: EmbeddingPair,
        filling: Optional[List[Any]],
        depth: int,
    ) -> ConceptNode:
        sequence = getattr(self, f"seq_{node_type}")
        keyword_index: Dict[str, List[ConceptNode]] = getattr(self, f"kw_to_{node_type}")

        self._node_count += 1
        node_id = f"node_{self._node_count}"
        node = ConceptNode(
            node_id=node_id,
            node_count=self._node_count,
            type_count=len(sequence) + 1,
            type=node_type,
            depth=depth,
            created=created,
            expiration=expiration,
            subject=s,
            predicate=p,
            object=o,
            description=description,
            embedding_key=embedding_pair[0],
            poignancy=poignancy,
            keywords=set(keywords),
            filling=filling,
        )

        sequence.insert(0, node)
        lowered = {kw.lower() for kw in node.keywords}
        for kw in lowered:
            keyword_index.setdefault(kw, []).insert(0, node)

        if node_type != "chat" and f"{p} {o}" != "is idle":
            strength: Dict[str, int] = getattr(self, f"kw_strength_{node_type}")
            for kw in lowered:
                strength[kw] = strength.get(kw, 0) + 1

        self.id_to_node[node_id] = node
        self.embeddings[embedding_pair[0]] = list(embedding_pair[1])
        return node

    def add_event(
        self,
        created: datetime,
        expiration: Optional[datetime],
        s: str,
        p: str,
        o: str,
        description: str,
        keywords: Iterable[str],
        poignancy: int,
        embedding_pair: EmbeddingPair,
        filling: Optional[List[Any]] = None,
    ) -> ConceptNode:
        return self._add_node(
            "event", created, expiration, s, p, o, clean_event_description(description),
            keywords, poignancy, embedding_pair, filling, depth=0,
        )

    def add_thought(
        self,
        created: datetime,
        expiration: Optional[datetime],
        s: str,
        p: str,
        o: str,
        description: str,
        keywords: Iterable[str],
        poignancy: int,
        embedding_pair: EmbeddingPair,
        filling: Optional[List[Any]] = None,
    ) -> ConceptNode:
        """Record a thought; depth is one more than the deepest evidence node (1 without evidence)."""
        depth = 1
        evidence = [self.id_to_node[i] for i in (filling or []) if i in self.id_to_node]
        if evidence:
            depth = max(node.depth for node in evidence) + 1
        return self._add_node(
            "thought", created, expiration, s, p, o, description,
            keywords, poignancy, embedding_pair, filling, depth=depth,
        )

    def add_chat(
        self,
        created: datetime,
        expiration: Optional[datetime],
        s: str,
        p: str,
        o: str,
        description: str,
        keywords: Iterable[str],
        poignancy: int,
        embedding_pair: EmbeddingPair,
        filling: Optional[List[Any]] = None,
    ) -> ConceptNode:
        return self._add_node(
            "chat", created, expiration, s, p, o, description,
            keywords, poignancy, embedding_pair, filling, depth=0,
        )

    # ========================================================================
    # Lookup
    # ========================================================================

    @staticmethod
    def _collect(index: Dict[str, List[ConceptNode]], contents: Sequence[str]) -> List[ConceptNode]:
        seen: Set[str] = set()
        ret: List[ConceptNode] = []
        for content in contents:
            if not content:
                continue
            for node in index.get(content.lower(), []):
                if node.node_id not in seen:
                    seen.add(node.node_id)
                    ret.append(node)
        return ret

    def retrieve_relevant_events(self, s_content: str, p_content: str, o_content: str) -> List[ConceptNode]:
        """Events indexed under any of the three strings, without duplicates."""
        return self._collect(self.kw_to_event, (s_content, p_content, o_content))

    def retrieve_relevant_thoughts(self, s_content: str, p_content: str, o_content: str) -> List[ConceptNode]:
        """Thoughts indexed under any of the three strings, without duplicates."""
        return self._collect(self.kw_to_thought, (s_content, p_content, o_content))

    def get_summarized_latest_events(self, retention: int) -> Set[Tuple[str, str, str]]:
        return {node.spo_summary() for node in self.seq_event[:retention]}

    def get_last_chat(self, target_persona_name: str) -> Optional[ConceptNode]:
        chats = self.kw_to_chat.get(target_persona_name.lower())
        return chats[0] if chats else None

    def get_str_seq_events(self) -> str:
        total = len(self.seq_event)
        return "".join(
            f"Event {total - count}: {node.subject} {node.predicate} {node.object} -- {node.description}\n"
            for count, node in enumerate(self.seq_event)
        )

    def get_str_seq_thoughts(self) -> str:
        total = len(self.seq_thought)
        return "".join(
            f"Thought {total - count}: {node.subject} {node.predicate} {node.object} -- {node.description}\n"
            for count, node in enumerate(self.seq_thought)
        )

    def get_str_seq_chats(self) -> str:
        lines: List[str] = []
        for node in self.seq_chat:
            lines.append(f"with {node.object} ({node.description})")
            lines.append(node.created.strftime("%B %d, %Y, %H:%M:%S"))
            for speaker, utterance in node.filling or []:
                lines.append(f"{speaker}: {utterance}")
        return "".join(f"{line}\n" for line in lines)

    # ========================================================================
    # Snapshots
    # ========================================================================

    def save(self, folder: Path | str) -> None:
        """Write ``nodes.json``, ``kw_strength.json`` and ``embeddings.json`` into ``folder``."""
        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)

        nodes = sorted(self.id_to_node.values(), key=lambda node: node.node_count, reverse=True)
        payload = {node.node_id: node for node in nodes}
        (folder / "nodes.json").write_bytes(_NODES.dump_json(payload, indent=2))

        strength = KeywordStrength(
            kw_strength_event=self.kw_strength_event,
            kw_strength_thought=self.kw_strength_thought,
        )
        (folder / "kw_strength.json").write_text(strength.model_dump_json(indent=2), encoding="utf-8")
        (folder / "embeddings.json").write_bytes(_EMBEDDINGS.dump_json(self.embeddings))

    def _restore(self, node: ConceptNode) -> None:
        """Re-index a saved node exactly as stored."""
        sequence: List[ConceptNode] = getattr(self, f"seq_{node.type}")
        keyword_index: Dict[str, List[ConceptNode]] = getattr(self, f"kw_to_{node.type}")
        sequence.insert(0, node)
        for kw in {kw.lower() for kw in node.keywords}:
            keyword_index.setdefault(kw, []).insert(0, node)
        self.id_to_node[node.node_id] = node
        self._node_count = max(self._node_count, node.node_count)

    @classmethod
    def load(cls, folder: Path | str) -> "AssociativeMemory":
        """Rebuild a memory from a saved folder, oldest node first.

        A missing folder or missing files yield an empty memory. Keyword
        strength comes from ``kw_strength.json`` rather than being recounted.

        Raises:
            pydantic.ValidationError: If a saved node is malformed or has an unknown type.
        """
        folder = Path(folder)
        memory = cls()

        embeddings_path = folder / "embeddings.json"
        if embeddings_path.exists():
            memory.embeddings = _EMBEDDINGS.validate_json(embeddings_path.read_bytes())

        nodes_path = folder / "nodes.json"
        if nodes_path.exists():
            saved = _NODES.validate_json(nodes_path.read_bytes())
            for node in sorted(saved.values(), key=lambda node: node.node_count):
                memory._restore(node)

        strength_path = folder / "kw_strength.json"
        if strength_path.exists():
            strength = KeywordStrength.model_validate_json(strength_path.read_text(encoding="utf-8"))
            memory.kw_strength_event = strength.kw_strength_event
            memory.kw_strength_thought = strength.kw_strength_thought

        return memory
