"""Tests for the associative memory stream."""

import datetime as dt
import json

import pytest
from pydantic import ValidationError

from personaverse.memory import AssociativeMemory
from personaverse.memory.associative import clean_event_description


T0 = dt.datetime(2023, 2, 13, 9, 0, 0)


def _event(memory, description, s="Isabella Rodriguez", p="is", o="cooking", keywords=None, poignancy=4, at=T0):
    return memory.add_event(
        at, None, s, p, o, description, keywords or {s, o}, poignancy, (description, [1.0, 0.0])
    )


def test_nodes_are_indexed_most_recent_first():
    memory = AssociativeMemory()
    first = _event(memory, "Isabella Rodriguez is cooking")
    second = _event(memory, "Isabella Rodriguez is cleaning", o="cleaning", at=T0 + dt.timedelta(minutes=5))

    assert first.node_id == "node_1"
    assert second.node_id == "node_2"
    assert memory.seq_event == [second, first]
    assert (second.node_count, second.type_count) == (2, 2)
    assert len(memory) == 2
    assert memory.embeddings["Isabella Rodriguez is cooking"] == [1.0, 0.0]


def test_node_counters_are_per_instance():
    a, b = AssociativeMemory(), AssociativeMemory()

    _event(a, "Isabella Rodriguez is cooking")
    node = _event(b, "Klaus Mueller is reading", s="Klaus Mueller", o="reading")

    assert node.node_id == "node_1"


def test_thought_depth_follows_evidence():
    memory = AssociativeMemory()
    event = _event(memory, "Isabella Rodriguez is cooking")

    plain = memory.add_thought(T0, None, "Isabella", "likes", "cooking", "Isabella likes cooking",
                               {"cooking"}, 5, ("Isabella likes cooking", [0.0, 1.0]))
    first = memory.add_thought(T0, None, "Isabella", "is", "a cook", "Isabella is a cook",
                               {"cook"}, 6, ("Isabella is a cook", [0.0, 1.0]), [event.node_id])
    second = memory.add_thought(T0, None, "Isabella", "should", "open", "Isabella should open a restaurant",
                                {"restaurant"}, 7, ("Isabella should open a restaurant", [0.0, 1.0]),
                                [event.node_id, first.node_id])

    assert event.depth == 0
    assert plain.depth == 1
    assert first.depth == 1
    assert second.depth == 2


def test_keyword_strength_skips_idle_events_and_chats():
    memory = AssociativeMemory()
    _event(memory, "Isabella Rodriguez is cooking", keywords={"Isabella Rodriguez", "cooking"})
    _event(memory, "bed is idle", s="the Ville:house:bedroom:bed", p="is", o="idle", keywords={"bed", "idle"})
    memory.add_chat(T0, None, "Isabella Rodriguez", "chat with", "Klaus Mueller", "conversing about the party",
                    {"Klaus Mueller"}, 6, ("conversing about the party", [1.0, 1.0]), [["Isabella Rodriguez", "Hi"]])

    assert memory.kw_strength_event == {"isabella rodriguez": 1, "cooking": 1}
    assert "bed" not in memory.kw_strength_event
    assert memory.kw_strength_thought == {}


def test_keyword_lookup_is_case_insensitive_and_unique():
    memory = AssociativeMemory()
    node = _event(memory, "Isabella Rodriguez is cooking", keywords={"Isabella Rodriguez", "Cooking"})
    memory.add_thought(T0, None, "Isabella", "likes", "cooking", "Isabella likes cooking",
                       {"COOKING"}, 5, ("Isabella likes cooking", [0.0, 1.0]))

    events = memory.retrieve_relevant_events("isabella rodriguez", "is", "cooking")
    thoughts = memory.retrieve_relevant_thoughts("Isabella", "likes", "Cooking")

    assert events == [node]
    assert [t.description for t in thoughts] == ["Isabella likes cooking"]


def test_summaries_and_last_chat():
    memory = AssociativeMemory()
    _event(memory, "Isabella Rodriguez is cooking")
    _event(memory, "Isabella Rodriguez is cleaning", o="cleaning")
    chat = memory.add_chat(T0, None, "Isabella Rodriguez", "chat with", "Klaus Mueller",
                           "conversing about the party", {"Klaus Mueller"}, 6,
                           ("conversing about the party", [1.0, 1.0]), [["Isabella Rodriguez", "Hi Klaus"]])

    assert memory.get_summarized_latest_events(1) == {("Isabella Rodriguez", "is", "cleaning")}
    assert memory.get_last_chat("klaus mueller") is chat
    assert memory.get_last_chat("Maria Lopez") is None
    assert memory.get_str_seq_events().startswith("Event 2: Isabella Rodriguez is cleaning")
    assert "Isabella Rodriguez: Hi Klaus" in memory.get_str_seq_chats()


def test_clean_event_description():
    assert clean_event_description("Isabella Rodriguez is cooking") == "Isabella Rodriguez is cooking"
    assert clean_event_description("Isabella is cooking (making pasta)") == "Isabella is cooking making pasta"


def test_save_and_load_round_trip(tmp_path):
    memory = AssociativeMemory()
    event = _event(memory, "Isabella Rodriguez is cooking")
    event.last_accessed = T0 + dt.timedelta(hours=1)
    thought = memory.add_thought(T0, T0 + dt.timedelta(days=30), "Isabella", "is", "a cook",
                                 "Isabella is a cook", {"cook"}, 6, ("Isabella is a cook", [0.5, 0.5]),
                                 [event.node_id])

    memory.save(tmp_path / "associative_memory")
    loaded = AssociativeMemory.load(tmp_path / "associative_memory")

    assert set(loaded.id_to_node) == {event.node_id, thought.node_id}
    restored = loaded.id_to_node[thought.node_id]
    assert restored.depth == 1
    assert restored.filling == [event.node_id]
    assert restored.expiration == T0 + dt.timedelta(days=30)
    assert loaded.id_to_node[event.node_id].last_accessed == T0 + dt.timedelta(hours=1)
    assert loaded.embeddings == memory.embeddings
    assert loaded.kw_strength_event == memory.kw_strength_event
    assert loaded.retrieve_relevant_thoughts("cook", "", "") == [restored]

    # New nodes continue numbering after the restored ones
    new = _event(loaded, "Isabella Rodriguez is cleaning", o="cleaning")
    assert new.node_id == "node_3"


def test_load_missing_folder_is_empty(tmp_path):
    assert len(AssociativeMemory.load(tmp_path / "nothing")) == 0


def test_saved_nodes_use_second_precision_timestamps(tmp_path):
    memory = AssociativeMemory()
    event = _event(memory, "Isabella Rodriguez is cooking", keywords={"stove", "Isabella Rodriguez"},
                   at=T0 + dt.timedelta(microseconds=250))

    memory.save(tmp_path)
    saved = json.loads((tmp_path / "nodes.json").read_text(encoding="utf-8"))

    record = saved[event.node_id]
    assert record["created"] == "2023-02-13 09:00:00"
    assert record["last_accessed"] == "2023-02-13 09:00:00"
    assert record["expiration"] is None
    assert record["keywords"] == ["Isabella Rodriguez", "stove"]
    assert AssociativeMemory.load(tmp_path).id_to_node[event.node_id].created == T0


def test_load_rejects_unknown_node_type(tmp_path):
    memory = AssociativeMemory()
    event = _event(memory, "Isabella Rodriguez is cooking")
    memory.save(tmp_path)

    saved = json.loads((tmp_path / "nodes.json").read_text(encoding="utf-8"))
    saved[event.node_id]["type"] = "dream"
    (tmp_path / "nodes.json").write_text(json.dumps(saved), encoding="utf-8")

    with pytest.raises(ValidationError):
        AssociativeMemory.load(tmp_path)
