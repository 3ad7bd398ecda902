import datetime as dt

import pytest

from helpers import CAFE, COUNTER, FakeEmbedder, START_TIME, ScriptedOracle, add_event, make_persona
from personaverse.persistence import PersonaStore, SimulationStore
from personaverse.schemas import FrameMeta, MovementFrame, PersonaMovement, PersonaPosition, SimulationMeta


def _meta(sim_code: str = "base") -> SimulationMeta:
    return SimulationMeta(
        sim_code=sim_code,
        start_date=START_TIME,
        curr_time=START_TIME + dt.timedelta(seconds=30),
        maze_name="test_ville",
        persona_names=["Isabella Rodriguez"],
        step=3,
        persona_tiles={"Isabella Rodriguez": (1, 2)},
    )


@pytest.mark.asyncio
async def test_persona_round_trip(tmp_path):
    store = PersonaStore(tmp_path)
    persona = make_persona(act_address=COUNTER)
    add_event(persona, "Isabella Rodriguez is baking bread")
    persona.s_mem.add_tile("the Ville", "Hobbs Cafe", "cafe", "counter")

    folder = await store.save_persona(persona)
    assert (folder / "scratch.json").exists()
    assert (folder / "spatial_memory.json").exists()
    assert (folder / "associative_memory" / "nodes.json").exists()

    oracle = ScriptedOracle()
    loaded = await store.load_persona("Isabella Rodriguez", oracle=oracle, embedder=FakeEmbedder())

    assert loaded.name == "Isabella Rodriguez"
    assert loaded.oracle is oracle
    assert loaded.scratch.living_area == CAFE
    assert loaded.scratch.act_address == COUNTER
    assert [node.description for node in loaded.a_mem.seq_event] == ["Isabella Rodriguez is baking bread"]
    assert "counter" in loaded.s_mem.get_str_accessible_arena_game_objects(CAFE)


@pytest.mark.asyncio
async def test_missing_persona_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        await PersonaStore(tmp_path).load_persona("Nobody")


@pytest.mark.asyncio
async def test_list_personas(tmp_path):
    store = PersonaStore(tmp_path / "personas")
    assert await store.list_personas() == []

    await store.save_persona(make_persona("Klaus Mueller"))
    await store.save_persona(make_persona("Isabella Rodriguez"))
    assert await store.list_personas() == ["Isabella Rodriguez", "Klaus Mueller"]


@pytest.mark.asyncio
async def test_meta_round_trip(tmp_path):
    store = SimulationStore("base", tmp_path)
    await store.initialize()
    assert not await store.exists()

    await store.save_meta(_meta())

    assert await store.exists()
    loaded = await store.load_meta()
    assert loaded == _meta()
    assert loaded.persona_tiles["Isabella Rodriguez"] == (1, 2)


@pytest.mark.asyncio
async def test_step_files(tmp_path):
    store = SimulationStore("base", tmp_path)
    assert await store.load_environment(0) is None
    assert await store.load_movement(0) is None

    await store.save_environment(0, {"Isabella Rodriguez": PersonaPosition(x=1, y=2, maze="test_ville")})
    positions = await store.load_environment(0)
    assert positions["Isabella Rodriguez"].tile == (1, 2)
    assert positions["Isabella Rodriguez"].maze == "test_ville"

    frame = MovementFrame(
        persona={
            "Isabella Rodriguez": PersonaMovement(
                movement=(1, 1),
                pronunciatio="☕",
                description=f"working @ {COUNTER}",
                chat=[["Isabella Rodriguez", "Hi!"]],
            )
        },
        meta=FrameMeta(curr_time="February 13, 2023, 07:00:00"),
    )
    await store.save_movement(0, frame)
    assert (tmp_path / "base" / "movement" / "0.json").exists()
    assert await store.load_movement(0) == frame


@pytest.mark.asyncio
async def test_fork_copies_and_records_origin(tmp_path):
    store = SimulationStore("base", tmp_path)
    await store.save_meta(_meta())
    await store.personas.save_persona(make_persona())

    fork = await store.fork("branch")

    meta = await fork.load_meta()
    assert meta.sim_code == "branch"
    assert meta.fork_sim_code == "base"
    assert meta.step == 3
    assert await fork.personas.list_personas() == ["Isabella Rodriguez"]
    # the original is untouched
    assert (await store.load_meta()).fork_sim_code is None
