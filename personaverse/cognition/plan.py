"""Planning: daily schedules, the next action, and reactions to other personas.

``plan`` runs three stages each tick:

1. On a new day, long-term planning builds the day's hourly schedule.
2. When the current action has run its course, ``determine_action`` picks the
   next schedule block (decomposing coarse blocks into subtasks first) and
   resolves where it happens.
3. If something perceived this tick is worth reacting to, the persona either
   starts a conversation or waits for the other persona to finish; both
   splice a new block into the schedule.

Every schedule edit keeps the day's total at exactly 1440 minutes.
"""

from __future__ import annotations

import datetime as dt
import random
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple, Union

from personaverse.cognition.converse import THOUGHT_LIFETIME, generate_convo, generate_convo_summary
from personaverse.cognition.retrieve import RetrievedContext, new_retrieve
from personaverse.embeddings import get_or_embed
from personaverse.environment.maze import Maze
from personaverse.llm_calls import (
    query_act_obj_desc,
    query_act_obj_event_triple,
    query_action_arena,
    query_action_game_object,
    query_action_sector,
    query_daily_plan,
    query_decide_to_react,
    query_decide_to_talk,
    query_event_triple,
    query_hourly_activity,
    query_new_decomp_schedule,
    query_pronunciatio,
    query_revised_identity,
    query_task_decomp,
    query_wake_up_hour,
)
from personaverse.logging_utils import log_deterministic, log_llm
from personaverse.memory.scratch import MINUTES_PER_DAY, EventTriple, ScheduleEntry, pad_schedule, schedule_minutes

if TYPE_CHECKING:
    from personaverse.persona import Persona


HOUR_STR = [f"{h % 12 if h % 12 else (0 if h < 12 else 12):02d}:00 {'AM' if h < 12 else 'PM'}" for h in range(24)]
DIVERSITY_REPEAT_COUNT = 3
MIN_DISTINCT_ACTIVITIES = 5
RANDOM_OBJECT = "<random>"
CHAT_COOLDOWN = 800
CHAT_PRONUNCIATIO = "💬"
WAIT_PRONUNCIATIO = "⌛"

NewDay = Union[bool, str]


def activity_detail(description: str) -> str:
    """The subtask in parentheses, or the whole description when there is none."""
    if "(" in description:
        return description.split("(")[-1].rstrip(")")
    return description


# ============================================================================
# Long-term planning
# ============================================================================


async def generate_wake_up_hour(persona: "Persona") -> int:
    return await query_wake_up_hour(persona)


async def generate_first_daily_plan(persona: "Persona", wake_up_hour: int) -> List[str]:
    return await query_daily_plan(persona, wake_up_hour)


async def generate_hourly_schedule(persona: "Persona", wake_up_hour: int) -> List[ScheduleEntry]:
    """Fill 24 hourly slots, then compress repeated hours into minute blocks.

    Slots before ``wake_up_hour`` are "sleeping". The whole day is regenerated
    (up to ``DIVERSITY_REPEAT_COUNT`` times) while it has fewer than
    ``MIN_DISTINCT_ACTIVITIES`` distinct activities.
    """
    activities: List[str] = []
    for _ in range(DIVERSITY_REPEAT_COUNT):
        if len(set(activities)) >= MIN_DISTINCT_ACTIVITIES:
            break
        activities = []
        asleep_for = wake_up_hour
        for curr_hour_str in HOUR_STR:
            if asleep_for > 0:
                activities.append("sleeping")
                asleep_for -= 1
            else:
                activities.append(await query_hourly_activity(persona, curr_hour_str, activities, HOUR_STR))

    compressed: List[ScheduleEntry] = []
    for activity in activities:
        if compressed and compressed[-1][0] == activity:
            compressed[-1][1] += 1
        else:
            compressed.append([activity, 1])
    return [[activity, hours * 60] for activity, hours in compressed]


async def revise_identity(persona: "Persona") -> None:
    """Rewrite ``currently`` and ``daily_plan_req`` from yesterday's memories."""
    scratch = persona.scratch
    curr_date = scratch.curr_time.strftime("%A %B %d")
    focal_points = [
        f"{persona.name}'s plan for {curr_date}.",
        f"Important recent events for {persona.name}'s life.",
    ]
    retrieved = await new_retrieve(persona, focal_points)

    statements = "[Statements]\n"
    for nodes in retrieved.values():
        for node in nodes:
            statements += f"{node.created.strftime('%A %B %d -- %H:%M %p')}: {node.embedding_key}\n"

    revised = await query_revised_identity(persona, statements)
    if revised["currently"]:
        scratch.currently = revised["currently"]
    if revised["daily_plan_req"]:
        scratch.daily_plan_req = revised["daily_plan_req"]
    log_llm(f"[{persona.name}] Revised identity: {scratch.currently}")


async def long_term_planning(persona: "Persona", new_day: NewDay) -> None:
    """Build the day's plan and remember it as a thought."""
    scratch = persona.scratch
    wake_up_hour = await generate_wake_up_hour(persona)

    if new_day == "First day":
        scratch.daily_req = await generate_first_daily_plan(persona, wake_up_hour)
    elif new_day == "New day":
        await revise_identity(persona)
        scratch.daily_req = await generate_first_daily_plan(persona, wake_up_hour)

    scratch.f_daily_schedule = await generate_hourly_schedule(persona, wake_up_hour)
    scratch.f_daily_schedule_hourly_org = [list(entry) for entry in scratch.f_daily_schedule]

    curr_date = scratch.curr_time.strftime("%A %B %d")
    thought = f"This is {scratch.name}'s plan for {curr_date}: {', '.join(scratch.daily_req)}."
    embedding = await get_or_embed(persona, thought)
    persona.a_mem.add_thought(
        scratch.curr_time,
        scratch.curr_time + THOUGHT_LIFETIME,
        scratch.name,
        "plan",
        curr_date,
        thought,
        {"plan"},
        5,
        (thought, embedding),
        None,
    )
    log_llm(
        f"[{persona.name}] Planned {curr_date}: {len(scratch.f_daily_schedule)} block(s), "
        f"wake up at {wake_up_hour}:00"
    )


# ============================================================================
# Next action
# ============================================================================


async def generate_task_decomp(persona: "Persona", task: str, duration: int) -> List[ScheduleEntry]:
    return await query_task_decomp(persona, task, duration)


async def generate_action_sector(persona: "Persona", maze: Maze, act_desp: str) -> str:
    curr_tile = persona.scratch.curr_tile
    world = maze.access_tile(curr_tile).world
    current_sector = maze.access_tile(curr_tile).sector
    return await query_action_sector(persona, world, current_sector, act_desp)


async def generate_action_arena(persona: "Persona", act_world: str, act_sector: str, act_desp: str) -> str:
    return await query_action_arena(persona, act_world, act_sector, act_desp)


async def generate_action_game_object(persona: "Persona", act_address: str, act_desp: str) -> str:
    """Object within ``act_address``; ``"<random>"`` when the persona knows of none there."""
    if not persona.s_mem.get_str_accessible_arena_game_objects(act_address):
        return RANDOM_OBJECT
    return await query_action_game_object(persona, act_address, act_desp)


async def generate_action_pronunciatio(persona: "Persona", act_desp: str) -> str:
    return await query_pronunciatio(persona, act_desp)


async def generate_action_event_triple(persona: "Persona", act_desp: str) -> EventTriple:
    return await query_event_triple(persona, act_desp)


async def generate_act_obj_desc(persona: "Persona", act_game_object: str, act_desp: str) -> str:
    return await query_act_obj_desc(persona, act_game_object, act_desp)


async def generate_act_obj_event_triple(persona: "Persona", act_game_object: str, act_obj_desc: str) -> EventTriple:
    return await query_act_obj_event_triple(persona, act_game_object, act_obj_desc)


def determine_decomp(act_desp: str, act_dura: int) -> bool:
    """Whether a block is worth splitting into subtasks; sleep is only split when short."""
    if "sleep" not in act_desp and "bed" not in act_desp:
        return True
    if "sleeping" in act_desp or "asleep" in act_desp or "in bed" in act_desp:
        return False
    return act_dura <= 60


async def _decompose_block(persona: "Persona", index: int) -> None:
    schedule = persona.scratch.f_daily_schedule
    act_desp, act_dura = schedule[index]
    if act_dura >= 60 and determine_decomp(act_desp, act_dura):
        schedule[index:index + 1] = await generate_task_decomp(persona, act_desp, act_dura)


async def determine_action(persona: "Persona", maze: Maze) -> None:
    """Pick the schedule block running now and turn it into the persona's current action."""
    scratch = persona.scratch
    curr_index = scratch.get_f_daily_schedule_index()
    curr_index_60 = scratch.get_f_daily_schedule_index(advance=60)

    if curr_index == 0:
        await _decompose_block(persona, curr_index)
        if curr_index_60 + 1 < len(scratch.f_daily_schedule):
            await _decompose_block(persona, curr_index_60 + 1)

    if curr_index_60 < len(scratch.f_daily_schedule) and scratch.curr_time.hour < 23:
        await _decompose_block(persona, curr_index_60)

    pad_schedule(scratch.f_daily_schedule)

    act_desp, act_dura = scratch.f_daily_schedule[curr_index]

    act_world = maze.access_tile(scratch.curr_tile).world
    act_sector = await generate_action_sector(persona, maze, act_desp)
    act_arena = await generate_action_arena(persona, act_world, act_sector, act_desp)
    act_address = f"{act_world}:{act_sector}:{act_arena}"
    act_game_object = await generate_action_game_object(persona, act_address, act_desp)
    new_address = f"{act_address}:{act_game_object}"

    act_pron = await generate_action_pronunciatio(persona, act_desp)
    act_event = await generate_action_event_triple(persona, act_desp)
    act_obj_desp = await generate_act_obj_desc(persona, act_game_object, act_desp)
    act_obj_pron = await generate_action_pronunciatio(persona, act_obj_desp)
    act_obj_event = await generate_act_obj_event_triple(persona, act_game_object, act_obj_desp)

    scratch.add_new_action(
        new_address,
        int(act_dura),
        act_desp,
        act_pron,
        act_event,
        None,
        None,
        None,
        None,
        act_obj_desp,
        act_obj_pron,
        act_obj_event,
    )
    log_llm(f"[{persona.name}] Next action: {act_desp} ({int(act_dura)} min) @ {new_address}")


# ============================================================================
# Reactions
# ============================================================================


def choose_retrieved(persona: "Persona", retrieved: Mapping[str, RetrievedContext]) -> Optional[RetrievedContext]:
    """Pick one perceived event to react to.

    The persona's own events are ignored. Another persona's top-level action is
    preferred, then any event that is not idle.
    """
    candidates = {
        desc: ctx for desc, ctx in retrieved.items() if ctx.curr_event.subject != persona.name
    }
    priority = [
        ctx
        for ctx in candidates.values()
        if ":" not in ctx.curr_event.subject and ctx.curr_event.subject != persona.name
    ]
    if priority:
        return random.choice(priority)
    priority = [ctx for desc, ctx in candidates.items() if "is idle" not in desc]
    if priority:
        return random.choice(priority)
    return None


def _both_engaged(init: "Persona", target: "Persona") -> bool:
    """Both personas have a described action, neither is asleep, and it is before 23:00."""
    for scratch in (init.scratch, target.scratch):
        if not scratch.act_address or not scratch.act_description:
            return False
        if "sleeping" in scratch.act_description:
            return False
    return init.scratch.curr_time.hour != 23


async def lets_talk(init: "Persona", target: "Persona", retrieved: RetrievedContext) -> bool:
    if not _both_engaged(init, target):
        return False
    if "<waiting>" in target.scratch.act_address:
        return False
    if target.scratch.chatting_with or init.scratch.chatting_with:
        return False
    if init.scratch.chatting_with_buffer.get(target.name, 0) > 0:
        return False
    return await query_decide_to_talk(init, target, retrieved)


async def lets_react(init: "Persona", target: "Persona", retrieved: RetrievedContext) -> Union[bool, str]:
    if not _both_engaged(init, target):
        return False
    if "waiting" in target.scratch.act_description:
        return False
    if not init.scratch.planned_path:
        return False
    if init.scratch.act_address != target.scratch.act_address:
        return False

    if await query_decide_to_react(init, target, retrieved) == "1":
        wait_until = target.scratch.act_start_time + dt.timedelta(minutes=(target.scratch.act_duration or 0) - 1)
        return f"wait: {wait_until.strftime('%B %d, %Y, %H:%M:%S')}"
    return False


async def should_react(
    persona: "Persona", retrieved: RetrievedContext, personas: Mapping[str, "Persona"]
) -> Union[bool, str]:
    """``"chat with <name>"``, ``"wait: <time>"`` or False."""
    if persona.scratch.chatting_with:
        return False
    if "<waiting>" in (persona.scratch.act_address or ""):
        return False

    subject = retrieved.curr_event.subject
    if ":" not in subject and subject in personas and subject != persona.name:
        target = personas[subject]
        if await lets_talk(persona, target, retrieved):
            return f"chat with {subject}"
        return await lets_react(persona, target, retrieved)
    return False


def splice_schedule(
    persona: "Persona",
    inserted_act: str,
    inserted_act_dur: int,
    start_hour: int,
    end_hour: int,
) -> Dict[str, List[ScheduleEntry]]:
    """Deterministically fit ``inserted_act`` into the ``[start_hour, end_hour)`` window.

    Returns the window as it stands (``main``), the elapsed part ending with
    the inserted block (``truncated``) and the complete replacement for the
    window (``spliced``). ``spliced`` always covers exactly as many minutes as
    ``main``: the block running now is cut at the current minute and relabelled
    "on the way to", the inserted block follows, and the rest of the original
    window fills whatever time is left.
    """
    scratch = persona.scratch
    today_min_pass = scratch.curr_time.hour * 60 + scratch.curr_time.minute + 1

    main: List[ScheduleEntry] = []
    window_start: Optional[int] = None
    dur_sum = 0
    for act, dur in scratch.f_daily_schedule:
        if start_hour * 60 <= dur_sum < end_hour * 60:
            if window_start is None:
                window_start = dur_sum
            main.append([act, dur])
        dur_sum += dur
    if window_start is None:
        window_start = start_hour * 60
    window_total = schedule_minutes(main)

    # Minute-by-minute view of the window makes cutting and refilling exact.
    slots: List[str] = []
    for act, dur in main:
        slots.extend([act] * int(dur))
    elapsed = min(max(today_min_pass - window_start, 1), max(window_total, 1))
    elapsed = min(elapsed, len(slots))

    truncated: List[ScheduleEntry] = []
    for act in slots[:elapsed]:
        if truncated and truncated[-1][0] == act:
            truncated[-1][1] += 1
        else:
            truncated.append([act, 1])

    if truncated and "(" in truncated[-1][0]:
        base = truncated[-1][0].split("(")[0].strip()
        truncated[-1][0] = f"{base} (on the way to {activity_detail(truncated[-1][0])})"
        inserted_label = f"{base} ({inserted_act})"
    else:
        inserted_label = inserted_act

    remaining = window_total - elapsed
    inserted_minutes = min(int(inserted_act_dur), remaining)
    if inserted_minutes > 0:
        truncated.append([inserted_label, inserted_minutes])

    spliced = [list(entry) for entry in truncated]
    for act in slots[elapsed:elapsed + remaining - max(inserted_minutes, 0)]:
        if spliced and spliced[-1][0] == act:
            spliced[-1][1] += 1
        else:
            spliced.append([act, 1])
    return {"main": main, "truncated": truncated, "spliced": spliced}


async def generate_new_decomp_schedule(
    persona: "Persona",
    inserted_act: str,
    inserted_act_dur: int,
    start_hour: int,
    end_hour: int,
) -> List[ScheduleEntry]:
    """Replacement for the schedule window with ``inserted_act`` spliced in.

    The oracle may re-plan what follows the inserted block; if its answer does
    not keep the elapsed part intact or changes the window length, the
    deterministic splice is used.
    """
    parts = splice_schedule(persona, inserted_act, inserted_act_dur, start_hour, end_hour)
    midnight = persona.scratch.curr_time.replace(hour=0, minute=0, second=0, microsecond=0)
    return await query_new_decomp_schedule(
        persona,
        parts["main"],
        parts["truncated"],
        midnight + dt.timedelta(hours=start_hour),
        midnight + dt.timedelta(hours=end_hour),
        inserted_act,
        inserted_act_dur,
        parts["spliced"],
    )


def _reaction_window(persona: "Persona") -> Tuple[int, int]:
    """Hour window around the current hourly block that a reaction may re-plan."""
    hourly = persona.scratch.f_daily_schedule_hourly_org
    index = min(persona.scratch.get_f_daily_schedule_hourly_org_index(), len(hourly) - 1)
    start_hour = sum(dur for _, dur in hourly[:index]) // 60

    block = hourly[index][1]
    if block >= 120:
        end_hour = start_hour + block / 60
    elif index + 1 < len(hourly):
        end_hour = start_hour + (block + hourly[index + 1][1]) / 60
    else:
        end_hour = start_hour + 2
    return start_hour, min(int(end_hour), MINUTES_PER_DAY // 60)


async def create_react(
    persona: "Persona",
    inserted_act: str,
    inserted_act_dur: int,
    act_address: str,
    act_event: EventTriple,
    chatting_with: Optional[str],
    chat: Optional[List[List[str]]],
    chatting_with_buffer: Optional[Dict[str, int]],
    chatting_end_time: Optional[dt.datetime],
    act_pronunciatio: str,
    act_obj_description: Optional[str],
    act_obj_pronunciatio: Optional[str],
    act_obj_event: EventTriple,
) -> None:
    """Splice a reaction into the schedule and make it the current action."""
    scratch = persona.scratch
    start_hour, end_hour = _reaction_window(persona)

    start_index: Optional[int] = None
    end_index: Optional[int] = None
    dur_sum = 0
    for count, (_, dur) in enumerate(scratch.f_daily_schedule):
        if dur_sum >= start_hour * 60 and start_index is None:
            start_index = count
        if dur_sum >= end_hour * 60 and end_index is None:
            end_index = count
        dur_sum += dur
    if start_index is None:
        start_index = len(scratch.f_daily_schedule)

    replacement = await generate_new_decomp_schedule(persona, inserted_act, inserted_act_dur, start_hour, end_hour)
    scratch.f_daily_schedule[start_index:end_index] = replacement
    pad_schedule(scratch.f_daily_schedule)

    scratch.add_new_action(
        act_address,
        inserted_act_dur,
        inserted_act,
        act_pronunciatio,
        act_event,
        chatting_with,
        chat,
        chatting_with_buffer,
        chatting_end_time,
        act_obj_description,
        act_obj_pronunciatio,
        act_obj_event,
    )


async def chat_react(
    maze: Maze, persona: "Persona", focused_event: RetrievedContext, reaction_mode: str, personas: Mapping[str, "Persona"]
) -> None:
    """Hold a conversation and put it on both personas' schedules."""
    init_persona = persona
    target_persona = personas[reaction_mode[len("chat with"):].strip()]

    convo, duration_min = await generate_convo(maze, init_persona, target_persona)
    convo_summary = await generate_convo_summary(init_persona, convo)

    curr_time = target_persona.scratch.curr_time
    if curr_time.second != 0:
        curr_time = curr_time + dt.timedelta(seconds=60 - curr_time.second)
    chatting_end_time = curr_time + dt.timedelta(minutes=duration_min)

    for p, other in ((init_persona, target_persona), (target_persona, init_persona)):
        await create_react(
            p,
            convo_summary,
            duration_min,
            f"<persona> {other.name}",
            (p.name, "chat with", other.name),
            other.name,
            convo,
            {other.name: CHAT_COOLDOWN},
            chatting_end_time,
            CHAT_PRONUNCIATIO,
            None,
            None,
            (None, None, None),
        )


async def wait_react(persona: "Persona", reaction_mode: str) -> None:
    """Stand still until the blocking persona's action ends."""
    scratch = persona.scratch
    detail = activity_detail(scratch.act_description or "")
    inserted_act = f"waiting to start {detail}"
    end_time = dt.datetime.strptime(reaction_mode[len("wait:"):].strip(), "%B %d, %Y, %H:%M:%S")
    inserted_act_dur = (end_time.hour * 60 + end_time.minute) - (scratch.curr_time.hour * 60 + scratch.curr_time.minute) + 1

    await create_react(
        persona,
        inserted_act,
        max(inserted_act_dur, 1),
        f"<waiting> {scratch.curr_tile[0]} {scratch.curr_tile[1]}",
        (persona.name, "waiting to start", detail),
        None,
        None,
        None,
        None,
        WAIT_PRONUNCIATIO,
        None,
        None,
        (None, None, None),
    )


# ============================================================================
# Entry point
# ============================================================================


async def plan(
    persona: "Persona",
    maze: Maze,
    personas: Mapping[str, "Persona"],
    new_day: NewDay,
    retrieved: Mapping[str, RetrievedContext],
) -> str:
    """Advance the persona's plan by one tick and return its action address."""
    scratch = persona.scratch

    if new_day:
        await long_term_planning(persona, new_day)

    if scratch.act_check_finished():
        await determine_action(persona, maze)

    focused_event = choose_retrieved(persona, retrieved) if retrieved else None
    if focused_event:
        reaction_mode = await should_react(persona, focused_event, personas)
        if reaction_mode:
            log_deterministic(f"[{persona.name}] Reacting: {reaction_mode}")
            if reaction_mode.startswith("chat with"):
                await chat_react(maze, persona, focused_event, reaction_mode, personas)
            elif reaction_mode.startswith("wait"):
                await wait_react(persona, reaction_mode)

    if scratch.act_event[1] != "chat with":
        scratch.chatting_with = None
        scratch.chat = None
        scratch.chatting_end_time = None

    for name in scratch.chatting_with_buffer:
        if name != scratch.chatting_with:
            scratch.chatting_with_buffer[name] -= 1

    return scratch.act_address


__all__ = [
    "HOUR_STR",
    "choose_retrieved",
    "chat_react",
    "create_react",
    "determine_action",
    "determine_decomp",
    "generate_act_obj_desc",
    "generate_act_obj_event_triple",
    "generate_action_arena",
    "generate_action_event_triple",
    "generate_action_game_object",
    "generate_action_pronunciatio",
    "generate_action_sector",
    "generate_first_daily_plan",
    "generate_hourly_schedule",
    "generate_new_decomp_schedule",
    "generate_task_decomp",
    "generate_wake_up_hour",
    "lets_react",
    "lets_talk",
    "long_term_planning",
    "plan",
    "revise_identity",
    "should_react",
    "splice_schedule",
    "wait_react",
]
