"""
Scratch: a persona's short-term working state.

Holds the identity constants, the tunable hyperparameters, the action the
persona is currently performing (plus the object it is using), chat state and
the day's schedule. The schedule is a list of ``[description, minutes]``
entries; a full-day schedule always sums to 1440 minutes.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import TypeAdapter

from personaverse.schemas import Timestamp


MINUTES_PER_DAY = 1440

EventTriple = Tuple[Optional[str], Optional[str], Optional[str]]
ScheduleEntry = List[Any]  # [description, duration_minutes]


def schedule_minutes(schedule: List[ScheduleEntry]) -> int:
    return sum(int(duration) for _, duration in schedule)


def pad_schedule(schedule: List[ScheduleEntry], filler: str = "sleeping") -> List[ScheduleEntry]:
    """Append a ``filler`` block so the schedule covers the whole day."""
    deficit = MINUTES_PER_DAY - schedule_minutes(schedule)
    if deficit > 0:
        schedule.append([filler, deficit])
    return schedule


@dataclass
class Scratch:
    # Hyperparameters
    vision_r: int = 4
    att_bandwidth: int = 3
    retention: int = 5

    # World information
    curr_time: Optional[Timestamp] = None
    curr_tile: Optional[Tuple[int, int]] = None
    daily_plan_req: str = ""

    # Identity
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    age: int = 0
    innate: str = ""
    learned: str = ""
    currently: str = ""
    lifestyle: str = ""
    living_area: str = ""

    # Reflection
    concept_forget: int = 100
    daily_reflection_time: int = 60 * 3
    daily_reflection_size: int = 5
    overlap_reflect_th: int = 2
    kw_strg_event_reflect_th: int = 4
    kw_strg_thought_reflect_th: int = 4

    # Retrieval weights
    recency_w: float = 1
    relevance_w: float = 1
    importance_w: float = 1
    recency_decay: float = 0.99
    importance_trigger_max: int = 150
    importance_trigger_curr: Optional[int] = None
    importance_ele_n: int = 0
    thought_count: int = 5

    # Planning
    daily_req: List[str] = field(default_factory=list)
    f_daily_schedule: List[ScheduleEntry] = field(default_factory=list)
    f_daily_schedule_hourly_org: List[ScheduleEntry] = field(default_factory=list)

    # Current action
    act_address: Optional[str] = None
    act_start_time: Optional[Timestamp] = None
    act_duration: Optional[int] = None
    act_description: Optional[str] = None
    act_pronunciatio: Optional[str] = None
    act_event: EventTriple = (None, None, None)

    act_obj_description: Optional[str] = None
    act_obj_pronunciatio: Optional[str] = None
    act_obj_event: EventTriple = (None, None, None)

    chatting_with: Optional[str] = None
    chat: Optional[List[List[str]]] = None
    chatting_with_buffer: Dict[str, int] = field(default_factory=dict)
    chatting_end_time: Optional[Timestamp] = None

    act_path_set: bool = False
    planned_path: List[Tuple[int, int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.importance_trigger_curr is None:
            self.importance_trigger_curr = self.importance_trigger_max
        if self.act_event == (None, None, None):
            self.act_event = (self.name or None, None, None)

    # ========================================================================
    # Schedule
    # ========================================================================

    def _today_min_elapsed(self, advance: int) -> int:
        return self.curr_time.hour * 60 + self.curr_time.minute + advance

    @staticmethod
    def _schedule_index(schedule: List[ScheduleEntry], today_min: int) -> int:
        elapsed = 0
        for index, (_, duration) in enumerate(schedule):
            elapsed += duration
            if elapsed > today_min:
                return index
        return len(schedule)

    def get_f_daily_schedule_index(self, advance: int = 0) -> int:
        """Index of the schedule block running ``advance`` minutes from now."""
        return self._schedule_index(self.f_daily_schedule, self._today_min_elapsed(advance))

    def get_f_daily_schedule_hourly_org_index(self, advance: int = 0) -> int:
        """Same as ``get_f_daily_schedule_index`` but over the undecomposed hourly schedule."""
        return self._schedule_index(self.f_daily_schedule_hourly_org, self._today_min_elapsed(advance))

    @staticmethod
    def _schedule_summary(schedule: List[ScheduleEntry]) -> str:
        lines: List[str] = []
        minutes = 0
        for task, duration in schedule:
            minutes += duration
            lines.append(f"{minutes // 60:02d}:{minutes % 60:02d} || {task}")
        return "".join(f"{line}\n" for line in lines)

    def get_str_daily_schedule_summary(self) -> str:
        return self._schedule_summary(self.f_daily_schedule)

    def get_str_daily_schedule_hourly_org_summary(self) -> str:
        return self._schedule_summary(self.f_daily_schedule_hourly_org)

    # ========================================================================
    # Identity strings
    # ========================================================================

    def get_str_curr_date_str(self) -> str:
        return self.curr_time.strftime("%A %B %d") if self.curr_time else ""

    def get_str_iss(self) -> str:
        """Identity stable set: the persona summary every prompt starts from."""
        return (
            f"Name: {self.name}\n"
            f"Age: {self.age}\n"
            f"Innate traits: {self.innate}\n"
            f"Learned traits: {self.learned}\n"
            f"Currently: {self.currently}\n"
            f"Lifestyle: {self.lifestyle}\n"
            f"Daily plan requirement: {self.daily_plan_req}\n"
            f"Current Date: {self.get_str_curr_date_str()}\n"
        )

    # ========================================================================
    # Current action
    # ========================================================================

    def get_curr_event(self) -> EventTriple:
        if not self.act_address:
            return (self.name, None, None)
        return self.act_event

    def get_curr_event_and_desc(self) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]:
        if not self.act_address:
            return (self.name, None, None, None)
        return (*self.act_event, self.act_description)

    def get_curr_obj_event_and_desc(self) -> Tuple[str, Optional[str], Optional[str], Optional[str]]:
        if not self.act_address:
            return ("", None, None, None)
        return (self.act_address, self.act_obj_event[1], self.act_obj_event[2], self.act_obj_description)

    def add_new_action(
        self,
        action_address: str,
        action_duration: int,
        action_description: str,
        action_pronunciatio: str,
        action_event: EventTriple,
        chatting_with: Optional[str],
        chat: Optional[List[List[str]]],
        chatting_with_buffer: Optional[Dict[str, int]],
        chatting_end_time: Optional[dt.datetime],
        act_obj_description: Optional[str],
        act_obj_pronunciatio: Optional[str],
        act_obj_event: EventTriple,
    ) -> None:
        """Start a new action at the current time; the path to it is recomputed on the next execute."""
        self.act_address = action_address
        self.act_duration = action_duration
        self.act_description = action_description
        self.act_pronunciatio = action_pronunciatio
        self.act_event = tuple(action_event)

        self.chatting_with = chatting_with
        self.chat = chat
        if chatting_with_buffer:
            self.chatting_with_buffer.update(chatting_with_buffer)
        self.chatting_end_time = chatting_end_time

        self.act_obj_description = act_obj_description
        self.act_obj_pronunciatio = act_obj_pronunciatio
        self.act_obj_event = tuple(act_obj_event)

        self.act_start_time = self.curr_time
        self.act_path_set = False

    def act_time_str(self) -> str:
        return self.act_start_time.strftime("%H:%M %p") if self.act_start_time else ""

    def act_check_finished(self) -> bool:
        """True once the current action's end time (to the second) has been reached.

        Non-chat actions that started mid-minute are treated as starting at the
        next full minute.
        """
        if not self.act_address:
            return True

        if self.chatting_with:
            end_time = self.chatting_end_time
        else:
            start = self.act_start_time
            if start.second != 0:
                start = start.replace(second=0) + dt.timedelta(minutes=1)
            end_time = start + dt.timedelta(minutes=self.act_duration or 0)

        if end_time is None:
            return True
        return end_time.strftime("%H:%M:%S") == self.curr_time.strftime("%H:%M:%S")

    def act_summarize(self) -> Dict[str, Any]:
        return {
            "persona": self.name,
            "address": self.act_address,
            "start_datetime": self.act_start_time,
            "duration": self.act_duration,
            "description": self.act_description,
            "pronunciatio": self.act_pronunciatio,
        }

    def act_summary_str(self) -> str:
        start = self.act_start_time.strftime("%A %B %d -- %H:%M %p") if self.act_start_time else ""
        return (
            f"[{start}]\n"
            f"Activity: {self.name} is {self.act_description}\n"
            f"Address: {self.act_address}\n"
            f"Duration in minutes (e.g., x min): {self.act_duration} min\n"
        )

    # ========================================================================
    # Snapshots
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready snapshot; tuples become lists and times ``YYYY-MM-DD HH:MM:SS``."""
        return _SCRATCH.dump_python(self, mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scratch":
        """Validate a snapshot back into a ``Scratch``; unknown keys are ignored."""
        return _SCRATCH.validate_python(data)

    def save(self, out_json: Path | str) -> None:
        out_json = Path(out_json)
        out_json.parent.mkdir(parents=True, exist_ok=True)
        out_json.write_bytes(_SCRATCH.dump_json(self, indent=2))

    @classmethod
    def load(cls, f_saved: Path | str) -> "Scratch":
        return _SCRATCH.validate_json(Path(f_saved).read_bytes())


_SCRATCH = TypeAdapter(Scratch)
