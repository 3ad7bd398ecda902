"""
Oracle query functions for persona cognition.

Each function renders one prompt template, states how the answer is
validated and cleaned, and names the fail-safe returned when the oracle gives
up. All functions are async and take the persona whose oracle, scratch and
prompt library they use; none of them mutate persona state.
"""

from __future__ import annotations

import datetime as dt
import json
import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from personaverse.cognition.renderers import render_named
from personaverse.memory.scratch import ScheduleEntry, schedule_minutes

if TYPE_CHECKING:
    from personaverse.cognition.retrieve import RetrievedContext
    from personaverse.persona import Persona


Triple = Tuple[str, str, str]

GENERIC_DAILY_PLAN = [
    "wake up and complete the morning routine",
    "have breakfast",
    "work on daily tasks",
    "have lunch",
    "continue working",
    "have dinner",
    "relax and wind down",
    "go to sleep",
]

_TRIPLE_RE = re.compile(r"\(([^,]+),\s*([^,]+),\s*([^)]+)\)")
_INT_RE = re.compile(r"-?\d+")
_SUBTASK_RE = re.compile(r"([^,()]+?)\s*\((\d+)\s*min[a-z]*\)", re.IGNORECASE)
_INSIGHT_RE = re.compile(r"^\s*(?:\d+[.)]\s*)?(.+?)\s*\(because of ([\d,\s]+)\)", re.IGNORECASE)
_SCHEDULE_LINE_RE = re.compile(
    r"(\d{1,2}):(\d{2})\s*(?:[AP]M)?\s*~\s*(\d{1,2}):(\d{2})\s*(?:[AP]M)?\s*--\s*(.+)", re.IGNORECASE
)
_LIST_PREFIX_RE = re.compile(r"^\s*(?:\d+[.)]|[-*])\s*")


# ============================================================================
# Parsing helpers
# ============================================================================


def _render(persona: "Persona", name: str, /, **values: Any) -> str:
    return render_named(name, values, getattr(persona, "prompt_library", None))


def _text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "\n".join(str(item) for item in value)
    return str(value).strip()


def _first_int(value: Any) -> int:
    match = _INT_RE.search(_text(value))
    if match is None:
        raise ValueError(f"no integer in {value!r}")
    return int(match.group())


def _is_int_between(value: Any, low: int, high: int) -> bool:
    return low <= _first_int(value) <= high


def _lines(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        raw = [str(item) for item in value]
    else:
        raw = str(value).splitlines()
    lines = [_LIST_PREFIX_RE.sub("", line).strip() for line in raw]
    return [line for line in lines if line]


def _strip_period(text: str) -> str:
    text = text.strip()
    return text[:-1] if text.endswith(".") else text


def parse_triple(value: Any, subject: str) -> Triple:
    """Read ``(s, p, o)`` from an answer; ``p, o)`` continuations get ``subject`` prepended."""
    text = _text(value)
    match = _TRIPLE_RE.search(text)
    if match:
        return tuple(part.strip() for part in match.groups())  # type: ignore[return-value]
    parts = [part.strip() for part in text.strip("() .").split(")")[0].split(",") if part.strip()]
    if len(parts) == 2:
        return (subject, parts[0], parts[1])
    if len(parts) == 3:
        return (parts[0], parts[1], parts[2])
    raise ValueError(f"not a triple: {value!r}")


def _pick_option(value: Any, options: Sequence[str]) -> str:
    """Return the option named in the answer, preferring an exact match."""
    text = _text(value).strip(" .\"'").lower()
    for option in options:
        if option.lower() == text:
            return option
    for option in sorted(options, key=len, reverse=True):
        if option.lower() in text:
            return option
    raise ValueError(f"{value!r} names none of {list(options)}")


def _options(joined: str) -> List[str]:
    return [option.strip() for option in joined.split(",") if option.strip()]


def normalize_subtasks(subtasks: Sequence[Tuple[str, int]], task: str, duration: int) -> List[ScheduleEntry]:
    """Fit subtasks to exactly ``duration`` minutes and label them ``"task (subtask)"``.

    Durations are rounded down to 5 minute steps, overflow is cut from the end
    and any shortfall extends the last subtask.
    """
    slots: List[str] = []
    for name, minutes in subtasks:
        minutes = int(minutes) - int(minutes) % 5
        slots.extend([name] * max(minutes, 0))
    if not slots:
        return [[task, duration]]
    slots = slots[:duration]
    slots.extend([slots[-1]] * (duration - len(slots)))

    compressed: List[ScheduleEntry] = []
    for name in slots:
        if compressed and compressed[-1][0] == name:
            compressed[-1][1] += 1
        else:
            compressed.append([name, 1])
    return [[f"{task} ({name})", minutes] for name, minutes in compressed]


def parse_schedule_lines(value: Any) -> List[ScheduleEntry]:
    """Parse ``HH:MM ~ HH:MM -- activity`` lines into ``[activity, minutes]`` entries."""
    entries: List[ScheduleEntry] = []
    for line in _lines(value):
        match = _SCHEDULE_LINE_RE.search(line)
        if not match:
            continue
        h1, m1, h2, m2, activity = match.groups()
        minutes = (int(h2) * 60 + int(m2)) - (int(h1) * 60 + int(m1))
        if minutes < 0:
            minutes += 1440
        entries.append([activity.strip(), minutes])
    return entries


def format_schedule_lines(schedule: Sequence[ScheduleEntry], start: dt.datetime) -> str:
    lines: List[str] = []
    curr = start
    for activity, minutes in schedule:
        end = curr + dt.timedelta(minutes=int(minutes))
        lines.append(f"{curr:%H:%M} ~ {end:%H:%M} -- {activity}")
        curr = end
    return "\n".join(lines)


def _first_name(persona: "Persona") -> str:
    return persona.scratch.first_name or persona.scratch.name.split(" ")[0]


def _act_phrase(persona: "Persona") -> str:
    desc = persona.scratch.act_description or ""
    if "(" in desc:
        desc = desc.split("(")[-1][:-1]
    return desc


def _reaction_values(init: "Persona", target: "Persona", retrieved: "RetrievedContext") -> Dict[str, str]:
    context_parts: List[str] = []
    for node in retrieved.events:
        words = node.description.split(" ")
        words[2:3] = ["was"]
        context_parts.append(" ".join(words) + ".")
    context = " ".join(context_parts) + "\n" + " ".join(f"{node.description}." for node in retrieved.thoughts)

    last_chat = init.a_mem.get_last_chat(target.name)
    if last_chat:
        context += (
            f"\n{init.name} last chatted with {target.name} on "
            f"{last_chat.created:%B %d, %Y, %H:%M:%S} about {last_chat.description}."
        )

    def describe(persona: "Persona") -> str:
        desc = _act_phrase(persona)
        if "waiting" in desc:
            return f"{persona.name} is {desc}"
        if not persona.scratch.planned_path:
            return f"{persona.name} is already {desc}"
        return f"{persona.name} is on the way to {desc}"

    return {
        "context": context.strip(),
        "curr_time": init.scratch.curr_time.strftime("%B %d, %Y, %H:%M:%S %p"),
        "init_act": describe(init),
        "target_act": describe(target),
        "init_name": init.name,
        "target_name": target.name,
        "init_act_desc": _act_phrase(init),
        "target_act_desc": _act_phrase(target),
    }


def conversation_text(conversation: Optional[Sequence[Sequence[str]]]) -> str:
    return "".join(f"{speaker}: {utterance}\n" for speaker, utterance in conversation or [])


# ============================================================================
# Daily planning
# ============================================================================


async def query_wake_up_hour(persona: "Persona") -> int:
    prompt = _render(
        persona,
        "wake_up_hour",
        identity=persona.scratch.get_str_iss(),
        lifestyle=persona.scratch.lifestyle,
        first_name=_first_name(persona),
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: _is_int_between(v, 0, 23),
        cleanup=_first_int,
        fail_safe=8,
        example_output="8",
        special_instruction="Output only an integer between 0 and 23.",
        label=f"{persona.name} wake up hour",
    )


async def query_daily_plan(persona: "Persona", wake_up_hour: int) -> List[str]:
    prompt = _render(
        persona,
        "daily_plan",
        identity=persona.scratch.get_str_iss(),
        lifestyle=persona.scratch.lifestyle,
        curr_date=persona.scratch.get_str_curr_date_str(),
        first_name=_first_name(persona),
        wake_up_hour=wake_up_hour,
    )
    first = f"wake up and complete the morning routine at {wake_up_hour}:00 am"

    def cleanup(value: Any) -> List[str]:
        if isinstance(value, (list, tuple)):
            items = [_LIST_PREFIX_RE.sub("", str(item)).strip(" ,.") for item in value]
        else:
            items = [item.strip(" ,.\n") for item in re.split(r"\d+\)", str(value))]
        items = [item for item in items if item]
        if not items:
            raise ValueError("empty plan")
        if not items[0].lower().startswith("wake up"):
            items.insert(0, first)
        return items

    return await persona.oracle.query(
        prompt,
        validator=lambda v: isinstance(v, (list, tuple)) or ")" in str(v),
        cleanup=cleanup,
        fail_safe=list(GENERIC_DAILY_PLAN),
        example_output="1) wake up and complete the morning routine at 8:00 am, 2) eat breakfast at 8:30 am",
        special_instruction="Output a numbered list of 4 to 8 activities such as 1) ..., 2) ...",
        label=f"{persona.name} daily plan",
    )


async def query_hourly_activity(
    persona: "Persona",
    curr_hour_str: str,
    prior_activities: Sequence[str],
    hour_str: Sequence[str],
) -> str:
    """Activity for ``curr_hour_str`` given the activities already chosen for earlier hours."""
    schedule_format = "".join(
        f"[{persona.scratch.get_str_curr_date_str()} -- {hour}] Activity: [Fill in]\n" for hour in hour_str
    )
    prior = "".join(
        f"[{persona.scratch.get_str_curr_date_str()} -- {hour}] Activity: {_first_name(persona)} is {activity}\n"
        for hour, activity in zip(hour_str, prior_activities)
    )
    prompt = _render(
        persona,
        "hourly_schedule",
        identity=persona.scratch.get_str_iss(),
        schedule_format=schedule_format,
        daily_plan=", ".join(persona.scratch.daily_req),
        prior_schedule=prior,
        curr_date=persona.scratch.get_str_curr_date_str(),
        curr_hour=curr_hour_str,
        first_name=_first_name(persona),
    )
    prefix = f"{_first_name(persona)} is ".lower()

    def cleanup(value: Any) -> str:
        text = _strip_period(_text(value))
        if text.lower().startswith(prefix):
            text = text[len(prefix):]
        if not text:
            raise ValueError("empty activity")
        return text

    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=cleanup,
        fail_safe="doing regular activities",
        example_output="working on her painting",
        special_instruction="Output a brief activity description without the persona's name.",
        label=f"{persona.name} hourly schedule {curr_hour_str}",
    )


async def query_task_decomp(persona: "Persona", task: str, duration: int) -> List[ScheduleEntry]:
    """Subtasks of ``task`` as ``["task (subtask)", minutes]`` entries summing to ``duration``."""
    index = persona.scratch.get_f_daily_schedule_hourly_org_index()
    window = persona.scratch.f_daily_schedule_hourly_org[max(index - 1, 0):index + 2]
    prompt = _render(
        persona,
        "task_decomp",
        identity=persona.scratch.get_str_iss(),
        curr_date=persona.scratch.get_str_curr_date_str(),
        schedule_context="\n".join(f"- {act} ({dur} min)" for act, dur in window),
        first_name=_first_name(persona),
        task=task,
        duration=duration,
    )

    def parse(value: Any) -> List[Tuple[str, int]]:
        return [(name.strip(" .-"), int(minutes)) for name, minutes in _SUBTASK_RE.findall(_text(value))]

    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(parse(v)),
        cleanup=lambda v: normalize_subtasks(parse(v), task, duration),
        fail_safe=[[task, duration]],
        example_output="getting out of bed (5 min), brushing teeth (10 min)",
        special_instruction="Output subtasks with durations in parentheses, separated by commas.",
        label=f"{persona.name} task decomposition",
    )


async def query_new_decomp_schedule(
    persona: "Persona",
    main_act_dur: Sequence[ScheduleEntry],
    truncated_act_dur: Sequence[ScheduleEntry],
    start_time: dt.datetime,
    end_time: dt.datetime,
    inserted_act: str,
    inserted_act_dur: int,
    fail_safe: List[ScheduleEntry],
) -> List[ScheduleEntry]:
    """Let the oracle re-plan the rest of an interrupted window.

    The answer must keep ``truncated_act_dur`` (which already ends with the
    inserted block) as its prefix and cover the same number of minutes as
    ``fail_safe``; otherwise ``fail_safe`` is used.
    """
    prompt = _render(
        persona,
        "new_decomp_schedule",
        first_name=_first_name(persona),
        start_time=f"{start_time:%H:%M}",
        end_time=f"{end_time:%H:%M}",
        original_plan=format_schedule_lines(main_act_dur, start_time),
        inserted_act=inserted_act,
        inserted_act_dur=inserted_act_dur,
        new_plan_init=format_schedule_lines(truncated_act_dur, start_time),
    )
    expected_total = schedule_minutes(fail_safe)
    prefix = [[act, int(dur)] for act, dur in truncated_act_dur]

    def validate(value: Any) -> bool:
        entries = parse_schedule_lines(value)
        return (
            schedule_minutes(entries) == expected_total
            and entries[: len(prefix)] == prefix
            and all(minutes > 0 for _, minutes in entries)
        )

    return await persona.oracle.query(
        prompt,
        validator=validate,
        cleanup=parse_schedule_lines,
        fail_safe=[list(entry) for entry in fail_safe],
        example_output="13:00 ~ 13:30 -- having lunch\\n13:30 ~ 14:00 -- reading",
        special_instruction="Output the revised schedule lines separated by newlines.",
        label=f"{persona.name} schedule revision",
    )


# ============================================================================
# Action targeting
# ============================================================================


async def query_action_sector(persona: "Persona", world: str, current_sector: str, act_desp: str) -> str:
    scratch = persona.scratch
    living = scratch.living_area.split(":")
    living_sector = living[1] if len(living) > 1 else ""
    options = _options(persona.s_mem.get_str_accessible_sectors(world))
    prompt = _render(
        persona,
        "action_sector",
        identity=scratch.get_str_iss(),
        first_name=_first_name(persona),
        living_sector=living_sector,
        living_arenas=persona.s_mem.get_str_accessible_sector_arenas(f"{world}:{living_sector}"),
        current_sector=current_sector,
        current_arenas=persona.s_mem.get_str_accessible_sector_arenas(f"{world}:{current_sector}"),
        sector_options=", ".join(options),
        action_description=act_desp,
    )
    fail_safe = living_sector or (options[0] if options else "")
    if not options:
        return fail_safe
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_pick_option(v, options)),
        cleanup=lambda v: _pick_option(v, options),
        fail_safe=fail_safe,
        example_output=options[0],
        special_instruction="Output only the area name.",
        label=f"{persona.name} action sector",
    )


async def query_action_arena(persona: "Persona", world: str, sector: str, act_desp: str) -> str:
    options = _options(persona.s_mem.get_str_accessible_sector_arenas(f"{world}:{sector}"))
    living = persona.scratch.living_area.split(":")
    fail_safe = options[0] if options else (living[2] if len(living) > 2 else "")
    if not options:
        return fail_safe
    prompt = _render(
        persona,
        "action_arena",
        first_name=_first_name(persona),
        sector=sector,
        arena_options=", ".join(options),
        action_description=act_desp,
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_pick_option(v, options)),
        cleanup=lambda v: _pick_option(v, options),
        fail_safe=fail_safe,
        example_output=options[0],
        special_instruction="Output only the area name.",
        label=f"{persona.name} action arena",
    )


async def query_action_game_object(persona: "Persona", act_address: str, act_desp: str) -> str:
    options = _options(persona.s_mem.get_str_accessible_arena_game_objects(act_address))
    prompt = _render(
        persona,
        "action_game_object",
        action_description=act_desp,
        object_options=", ".join(options),
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_pick_option(v, options)),
        cleanup=lambda v: _pick_option(v, options),
        fail_safe=options[0] if options else "",
        example_output=options[0] if options else "bed",
        special_instruction="Output only the object name.",
        label=f"{persona.name} action object",
    )


async def query_pronunciatio(persona: "Persona", act_desp: str) -> str:
    prompt = _render(persona, "pronunciatio", action_description=act_desp)

    def cleanup(value: Any) -> str:
        text = _text(value)
        return text[:3] if len(text) > 3 else text

    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=cleanup,
        fail_safe="🙂",
        example_output="🛁🧖‍♀️",
        special_instruction="The value for the output must ONLY contain the emojis.",
        label=f"{persona.name} pronunciatio",
    )


async def query_event_triple(persona: "Persona", act_desp: str) -> Triple:
    prompt = _render(persona, "event_triple", name=persona.name, action_description=act_desp)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(parse_triple(v, persona.name)),
        cleanup=lambda v: parse_triple(v, persona.name),
        fail_safe=(persona.name, "is", act_desp),
        example_output=f"({persona.name}, eat, breakfast)",
        special_instruction="Output a triple in the format (subject, predicate, object).",
        label=f"{persona.name} event triple",
    )


async def query_act_obj_desc(persona: "Persona", act_game_object: str, act_desp: str) -> str:
    prompt = _render(
        persona,
        "act_obj_desc",
        first_name=_first_name(persona),
        game_object=act_game_object,
        action_description=act_desp,
    )
    prefix = f"{act_game_object} is ".lower()

    def cleanup(value: Any) -> str:
        text = _strip_period(_text(value))
        if text.lower().startswith(prefix):
            text = text[len(prefix):]
        if not text:
            raise ValueError("empty object state")
        return text

    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=cleanup,
        fail_safe="in use",
        example_output="being fixed",
        special_instruction="The output should ONLY contain the phrase that should go in <fill in>.",
        label=f"{persona.name} object state",
    )


async def query_act_obj_event_triple(persona: "Persona", act_game_object: str, act_obj_desc: str) -> Triple:
    prompt = _render(
        persona, "act_obj_event_triple", game_object=act_game_object, object_description=act_obj_desc
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(parse_triple(v, act_game_object)),
        cleanup=lambda v: parse_triple(v, act_game_object),
        fail_safe=(act_game_object, "is", act_obj_desc),
        example_output=f"({act_game_object}, is, {act_obj_desc})",
        special_instruction="Output a triple in the format (subject, predicate, object).",
        label=f"{persona.name} object event triple",
    )


# ============================================================================
# Reaction and conversation
# ============================================================================


def _yes_no(value: Any) -> bool:
    text = _text(value).lower()
    if "yes" in text:
        return True
    if "no" in text:
        return False
    raise ValueError(f"not a yes/no answer: {value!r}")


async def query_decide_to_talk(persona: "Persona", target: "Persona", retrieved: "RetrievedContext") -> bool:
    prompt = _render(persona, "decide_to_talk", **_reaction_values(persona, target, retrieved))
    return await persona.oracle.query(
        prompt,
        validator=lambda v: _yes_no(v) in (True, False),
        cleanup=_yes_no,
        fail_safe=False,
        example_output="yes",
        special_instruction="Answer yes or no.",
        label=f"{persona.name} decide to talk to {target.name}",
    )


async def query_decide_to_react(persona: "Persona", target: "Persona", retrieved: "RetrievedContext") -> str:
    """Reaction code: ``"1"`` waits for ``target`` to finish, ``"2"`` carries on."""
    prompt = _render(persona, "decide_to_react", **_reaction_values(persona, target, retrieved))

    def cleanup(value: Any) -> str:
        code = str(_first_int(value))
        if code not in ("1", "2"):
            raise ValueError(f"unknown option {code}")
        return code

    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(cleanup(v)),
        cleanup=cleanup,
        fail_safe="2",
        example_output="2",
        special_instruction="Output only the option number.",
        label=f"{persona.name} decide to react to {target.name}",
    )


async def query_summarize_conversation(persona: "Persona", conversation: Sequence[Sequence[str]]) -> str:
    prompt = _render(persona, "summarize_conversation", conversation=conversation_text(conversation))

    def cleanup(value: Any) -> str:
        text = _strip_period(_text(value))
        if not text.lower().startswith("conversing about"):
            text = f"conversing about {text}"
        return text

    return await persona.oracle.query(
        prompt,
        validator=lambda v: len(_text(v)) > 5,
        cleanup=cleanup,
        fail_safe="conversing about the day",
        example_output="conversing about what to eat for lunch",
        special_instruction="The output must continue the sentence above by filling in the <fill in> tag.",
        label=f"{persona.name} conversation summary",
    )


async def query_summarize_relationship(persona: "Persona", target_name: str, statements: str) -> str:
    prompt = _render(
        persona,
        "summarize_relationship",
        statements=statements,
        init_name=persona.name,
        target_name=target_name,
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=_text,
        fail_safe=f"{persona.name} is acquainted with {target_name}",
        example_output="Jane Doe is working on a project",
        special_instruction="The output should be a string that responds to the question.",
        label=f"{persona.name} relationship with {target_name}",
    )


def _parse_utterance(value: Any) -> Dict[str, Any]:
    text = _text(value)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end == -1:
        raise ValueError("no JSON object in utterance answer")
    parsed = json.loads(text[start:end + 1])
    utterance = str(parsed["utterance"]).strip()
    if not utterance:
        raise ValueError("empty utterance")
    ended = parsed.get("end", False)
    if isinstance(ended, str):
        ended = ended.strip().lower() in ("true", "yes", "1")
    return {"utterance": utterance, "end": bool(ended)}


async def query_iterative_chat_utterance(
    persona: "Persona",
    target: "Persona",
    retrieved: Dict[str, List[Any]],
    curr_context: str,
    curr_chat: Sequence[Sequence[str]],
) -> Dict[str, Any]:
    """Next line of ``persona`` in a conversation: ``{"utterance": str, "end": bool}``."""
    memory_lines = "".join(
        f"- {node.embedding_key}\n" for nodes in retrieved.values() for node in nodes
    )
    prev_convo = ""
    last_chat = persona.a_mem.get_last_chat(target.name)
    if last_chat and persona.scratch.curr_time:
        minutes_ago = int((persona.scratch.curr_time - last_chat.created).total_seconds() / 60)
        if minutes_ago <= 480:
            prev_convo = (
                f"{minutes_ago} minutes ago, {persona.name} and {target.name} were already "
                f"{last_chat.description}. This context takes place after that conversation."
            )
    conversation = conversation_text(curr_chat) or "[The conversation has not started yet -- start it!]"
    prompt = _render(
        persona,
        "iterative_chat_utterance",
        init_iss=persona.scratch.get_str_iss(),
        init_name=persona.name,
        target_name=target.name,
        retrieved=memory_lines,
        prev_convo=prev_convo,
        curr_context=curr_context,
        conversation=conversation,
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_parse_utterance(v)),
        cleanup=_parse_utterance,
        fail_safe={"utterance": "...", "end": True},
        structured=False,
        label=f"{persona.name} utterance to {target.name}",
    )


async def query_planning_thought_on_convo(persona: "Persona", all_utt: str) -> str:
    prompt = _render(persona, "planning_thought_on_convo", conversation=all_utt, name=persona.name)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=_text,
        fail_safe="Reflecting on the conversation.",
        example_output="I need to remember to bring the flyers to the party.",
        special_instruction="The output should be a string that responds to the question.",
        label=f"{persona.name} planning thought on conversation",
    )


async def query_memo_on_convo(persona: "Persona", all_utt: str) -> str:
    prompt = _render(persona, "memo_on_convo", conversation=all_utt, name=persona.name)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=_text,
        fail_safe="noted the conversation.",
        example_output="found the conversation about the party interesting.",
        special_instruction="The output should ONLY contain a string that summarizes anything interesting.",
        label=f"{persona.name} memo on conversation",
    )


async def query_whisper_inner_thought(persona: "Persona", whisper: str) -> str:
    prompt = _render(persona, "whisper_inner_thought", name=persona.name, whisper=whisper)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_text(v)),
        cleanup=lambda v: _text(v).strip('"'),
        fail_safe=f"{persona.name} {whisper}",
        example_output=f"{persona.name} is planning a party",
        special_instruction="Output only the statement.",
        label=f"{persona.name} inner thought",
    )


# ============================================================================
# Importance and reflection
# ============================================================================


async def _query_poignancy(persona: "Persona", template: str, description: str) -> int:
    prompt = _render(
        persona,
        template,
        identity=persona.scratch.get_str_iss(),
        name=persona.name,
        description=description,
    )
    return await persona.oracle.query(
        prompt,
        validator=lambda v: _is_int_between(v, 1, 10),
        cleanup=_first_int,
        fail_safe=5,
        example_output="5",
        special_instruction="Output a number between 1 and 10.",
        label=f"{persona.name} {template.replace('_', ' ')}",
    )


async def query_event_poignancy(persona: "Persona", description: str) -> int:
    return await _query_poignancy(persona, "event_poignancy", description)


async def query_thought_poignancy(persona: "Persona", description: str) -> int:
    return await _query_poignancy(persona, "thought_poignancy", description)


async def query_chat_poignancy(persona: "Persona", description: str) -> int:
    return await _query_poignancy(persona, "chat_poignancy", description)


async def query_focal_points(persona: "Persona", statements: str, n: int = 3) -> List[str]:
    prompt = _render(persona, "focal_points", statements=statements, count=n)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(_lines(v)),
        cleanup=lambda v: _lines(v)[:n],
        fail_safe=["daily activities"],
        example_output="What is Jane Doe's relationship with her neighbours?",
        special_instruction=f"Output {n} questions, one per line.",
        label=f"{persona.name} focal points",
    )


def parse_insights(value: Any, n: int) -> Dict[str, List[int]]:
    """Map each ``insight (because of 1, 5, 3)`` line to its statement numbers."""
    insights: Dict[str, List[int]] = {}
    for line in _lines(value):
        match = _INSIGHT_RE.match(line)
        if not match:
            continue
        thought = _strip_period(match.group(1))
        insights[thought] = [int(i) for i in _INT_RE.findall(match.group(2))]
        if len(insights) == n:
            break
    return insights


async def query_insight_and_evidence(persona: "Persona", statements: str, n: int = 5) -> Dict[str, List[int]]:
    prompt = _render(persona, "insight_and_evidence", statements=statements, count=n)
    return await persona.oracle.query(
        prompt,
        validator=lambda v: bool(parse_insights(v, n)),
        cleanup=lambda v: parse_insights(v, n),
        fail_safe={"this is blank": [0]},
        example_output="Jane Doe enjoys painting (because of 1, 4)",
        special_instruction=f"Output up to {n} insights, one per line.",
        label=f"{persona.name} insights",
    )


# ============================================================================
# Identity revision
# ============================================================================


async def query_revised_identity(persona: "Persona", statements: str) -> Dict[str, str]:
    """Plan note, thought note, new ``currently`` and new daily plan requirement for a new day."""
    scratch = persona.scratch
    curr_date = scratch.curr_time.strftime("%A %B %d")
    prev_date = (scratch.curr_time - dt.timedelta(days=1)).strftime("%A %B %d")
    oracle = persona.oracle

    plan_note = await oracle.single_request(
        _render(persona, "revise_plan_note", statements=statements, name=persona.name, curr_date=curr_date),
        label=f"{persona.name} plan note",
    )
    thought_note = await oracle.single_request(
        _render(persona, "revise_thought_note", statements=statements, name=persona.name),
        label=f"{persona.name} thought note",
    )
    currently = await oracle.single_request(
        _render(
            persona,
            "revise_currently",
            name=persona.name,
            prev_date=prev_date,
            curr_date=curr_date,
            currently=scratch.currently,
            notes=(plan_note + thought_note).replace("\n", ""),
        ),
        label=f"{persona.name} status",
    )
    currently = re.sub(r"^\s*status:\s*", "", currently, flags=re.IGNORECASE).strip()
    daily_req = await oracle.single_request(
        _render(persona, "revise_daily_req", identity=scratch.get_str_iss(), name=persona.name, curr_date=curr_date),
        label=f"{persona.name} daily requirement",
    )
    return {
        "plan_note": plan_note,
        "thought_note": thought_note,
        "currently": currently,
        "daily_plan_req": daily_req.replace("\n", " ").strip(),
    }
