import contextlib
import datetime as dt
import io

import pytest

from helpers import FakeEmbedder, START_TIME, ScriptedOracle, make_maze, make_persona
from personaverse.orchestrator import Simulation
from personaverse.persistence import SimulationStore
from personaverse.schemas import PersonaPosition


TILES = {"Isabella Rodriguez": (0, 0), "Klaus Mueller": (3, 3)}


def _simulation(store=None):
    personas = {
        name: make_persona(name, ScriptedOracle(), curr_time=None, curr_tile=None)
        for name in TILES
    }
    return Simulation(make_maze(), personas, TILES, START_TIME, sec_per_step=10, sim_code="base", store=store)


def _schedule_minutes(persona):
    return sum(minutes for _, minutes in persona.scratch.f_daily_schedule)


@pytest.mark.asyncio
async def test_two_steps_move_every_persona():
    sim = _simulation()
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        frames = [await sim.step(), await sim.step()]

    for frame in frames:
        assert set(frame.persona) == set(TILES)
        for movement in frame.persona.values():
            x, y = movement.movement
            assert 0 <= x < 5 and 0 <= y < 5
            assert " @ " in movement.description
    assert frames[0].meta.curr_time == "February 13, 2023, 07:00:00"
    assert frames[1].meta.curr_time == "February 13, 2023, 07:00:10"

    for persona in sim.personas.values():
        assert _schedule_minutes(persona) == 1440
        assert persona.scratch.act_address is not None
        assert persona.scratch.curr_time == START_TIME + dt.timedelta(seconds=10)

    assert sim.step_count == 2
    assert sim.curr_time == START_TIME + dt.timedelta(seconds=20)
    assert "[i] Step 0" in buf.getvalue()
    assert "[i] Step 1" in buf.getvalue()


@pytest.mark.asyncio
async def test_step_uses_reported_positions():
    sim = _simulation()
    await sim.step()

    await sim.step({"Isabella Rodriguez": PersonaPosition(x=1, y=0), "Klaus Mueller": (3, 2)})

    assert sim.personas_tile == {"Isabella Rodriguez": (1, 0), "Klaus Mueller": (3, 2)}
    assert sim.personas["Isabella Rodriguez"].scratch.curr_tile == (1, 0)
    subjects = {event.subject for event in sim.maze.access_tile((1, 0)).events}
    assert "Isabella Rodriguez" in subjects


@pytest.mark.asyncio
async def test_save_load_and_resume(tmp_path):
    sim = _simulation()
    await sim.step()
    await sim.step()

    store = await sim.save(SimulationStore("base", tmp_path))
    meta = await store.load_meta()
    assert meta.step == 2
    assert meta.persona_names == list(TILES)

    resumed = await Simulation.load(make_maze(), store, oracle=ScriptedOracle(), embedder=FakeEmbedder())
    assert resumed.step_count == 2
    assert resumed.curr_time == sim.curr_time
    assert resumed.personas_tile == sim._next_tiles
    for name, persona in resumed.personas.items():
        assert persona.scratch.f_daily_schedule == sim.personas[name].scratch.f_daily_schedule
        assert len(persona.a_mem.id_to_node) == len(sim.personas[name].a_mem.id_to_node)

    frames = await resumed.run(1)

    assert len(frames) == 1
    saved = await store.load_movement(2)
    assert saved == frames[0]
    assert (await store.load_meta()).step == 3


@pytest.mark.asyncio
async def test_run_with_store_reads_environment(tmp_path):
    store = SimulationStore("base", tmp_path)
    await store.save_environment(0, {
        "Isabella Rodriguez": PersonaPosition(x=0, y=1),
        "Klaus Mueller": PersonaPosition(x=3, y=3),
    })
    sim = _simulation(store)

    await sim.run(1)

    assert sim.personas_tile["Isabella Rodriguez"] == (0, 1)
    assert (tmp_path / "base" / "movement" / "0.json").exists()
    assert await store.exists()
