import pytest
from pydantic import ValidationError

from helpers import START_TIME
from personaverse.schemas import FrameMeta, MovementFrame, PersonaMovement, PersonaPosition, SimulationMeta


def test_position_rejects_negative_tiles():
    assert PersonaPosition(x=2, y=3).tile == (2, 3)
    with pytest.raises(ValidationError):
        PersonaPosition(x=-1, y=0)


def test_movement_frame_json_shape():
    frame = MovementFrame(
        persona={"Klaus Mueller": PersonaMovement(movement=(3, 4), pronunciatio="📚", description="reading @ library")},
        meta=FrameMeta(curr_time="February 13, 2023, 07:00:00"),
    )
    payload = frame.model_dump(mode="json")
    assert payload["persona"]["Klaus Mueller"]["movement"] == [3, 4]
    assert payload["persona"]["Klaus Mueller"]["chat"] is None
    assert payload["meta"]["curr_time"] == "February 13, 2023, 07:00:00"


def test_meta_defaults_and_validation():
    meta = SimulationMeta(sim_code="base", start_date=START_TIME, curr_time=START_TIME, maze_name="the_ville")
    assert meta.sec_per_step == 10
    assert meta.step == 0
    assert meta.fork_sim_code is None

    with pytest.raises(ValidationError):
        SimulationMeta(
            sim_code="base", start_date=START_TIME, curr_time=START_TIME, maze_name="the_ville", sec_per_step=0
        )
