"""Prompt templates for every oracle query the cognition modules make.

Templates use ``{{placeholder}}`` markers so literal JSON braces in examples
need no escaping. ``cognition.renderers.render_prompt`` fills them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass
class PromptTemplate:
    """A named prompt with placeholders."""

    name: str
    user: str
    system: str = ""
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]

    def copy(self) -> "PromptLibrary":
        library = PromptLibrary()
        library.templates = dict(self.templates)
        return library


DEFAULT_PROMPTS = PromptLibrary()


def _register(name: str, user: str, description: str, system: str = "") -> None:
    DEFAULT_PROMPTS.register(PromptTemplate(name=name, user=user, system=system, description=description))


# Daily planning ---------------------------------------------------------------

_register(
    "wake_up_hour",
    "{{identity}}\n"
    "In general, {{lifestyle}}\n"
    "What hour of the day does {{first_name}} wake up today? Answer with the hour on a 24 hour clock.",
    "Hour (0-23) the persona gets up.",
)

_register(
    "daily_plan",
    "{{identity}}\n"
    "In general, {{lifestyle}}\n"
    "Today is {{curr_date}}. Here is {{first_name}}'s plan today in broad strokes "
    "(with the time of the day, e.g., have lunch at 12:00 pm, watch TV from 7 to 8 pm):\n"
    "1) wake up and complete the morning routine at {{wake_up_hour}}:00 am, 2)",
    "Numbered broad-strokes plan for the day.",
)

_register(
    "hourly_schedule",
    "{{identity}}\n"
    "Hourly schedule format:\n{{schedule_format}}\n"
    "===\n"
    "{{first_name}}'s broad plan for today: {{daily_plan}}\n"
    "{{prior_schedule}}"
    "[{{curr_date}} -- {{curr_hour}}] Activity: {{first_name}} is",
    "Activity for a single hour slot of the day.",
)

_register(
    "task_decomp",
    "Describe subtasks in 5 min increments.\n"
    "{{identity}}\n"
    "Today is {{curr_date}}. {{first_name}}'s schedule around this time:\n{{schedule_context}}\n"
    "In {{duration}} minutes, {{first_name}} is {{task}}. "
    "List {{first_name}}'s subtasks as 'subtask (N min)' items separated by commas; "
    "the durations must add up to {{duration}} minutes.",
    "Breaks a schedule block into timed subtasks.",
)

_register(
    "new_decomp_schedule",
    "Here was {{first_name}}'s originally planned schedule from {{start_time}} to {{end_time}}:\n"
    "{{original_plan}}\n"
    "But {{first_name}} unexpectedly ended up {{inserted_act}} for {{inserted_act_dur}} minutes. "
    "Revise {{first_name}}'s schedule from {{start_time}} to {{end_time}} accordingly "
    "(it has to end by {{end_time}}). The revised schedule starts with:\n"
    "{{new_plan_init}}\n"
    "Output the complete revised schedule, one 'HH:MM ~ HH:MM -- activity' line per block.",
    "Re-plans an interrupted window of the schedule.",
)

# Action targeting -------------------------------------------------------------

_register(
    "action_sector",
    "{{identity}}\n"
    "{{first_name}} lives in {{living_sector}} that has {{living_arenas}}.\n"
    "{{first_name}} is currently in {{current_sector}} that has {{current_arenas}}.\n"
    "Area options: {{sector_options}}.\n"
    "* Stay in the current area if the activity can be done there. Only go out if the activity needs to take place in another place.\n"
    "* Must be one of the area options, verbatim.\n"
    "For {{action_description}}, which area should {{first_name}} go to?",
    "Sector the action takes place in.",
)

_register(
    "action_arena",
    "{{first_name}} is going to {{sector}} that has the following areas: {{arena_options}}.\n"
    "* Stay in the current area if the activity can be done there. Never go into other people's rooms unless necessary.\n"
    "* Must be one of the listed areas, verbatim.\n"
    "For {{action_description}}, which area in {{sector}} should {{first_name}} go to?",
    "Arena inside the chosen sector.",
)

_register(
    "action_game_object",
    "Current activity: {{action_description}}\n"
    "Objects available: {{object_options}}\n"
    "Pick the most relevant object from the objects available, verbatim.",
    "Game object used for the action.",
)

_register(
    "pronunciatio",
    "Convert an action description to an emoji (important: use two or less emojis).\n"
    "Action description: {{action_description}}",
    "Emoji glyph shown for an action.",
)

_register(
    "event_triple",
    "Task: Turn the input into (subject, predicate, object).\n"
    "Input: Sam Johnson is eating breakfast.\n"
    "Output: (Dolores Murphy, eat, breakfast)\n"
    "---\n"
    "Input: {{name}} is {{action_description}}.\n"
    "Output: ({{name}},",
    "Event triple for an action description.",
)

_register(
    "act_obj_desc",
    "Task: We want to understand the state of an object that is being used by someone.\n"
    "Let's think step by step.\n"
    "We want to know about {{game_object}}'s state.\n"
    "Step 1. {{first_name}} is {{action_description}}.\n"
    "Step 2. Describe the {{game_object}}'s state: {{game_object}} is",
    "State of the object the persona is using.",
)

_register(
    "act_obj_event_triple",
    "Task: Turn the input into (subject, predicate, object).\n"
    "Input: {{game_object}} is {{object_description}}.\n"
    "Output: ({{game_object}},",
    "Event triple for an object state.",
)

# Reaction ---------------------------------------------------------------------

_register(
    "decide_to_talk",
    "Task -- given context, determine whether the subject will initiate a conversation with another.\n"
    "Context: {{context}}\n"
    "Right now, it is {{curr_time}}. {{init_act}}\n{{target_act}}\n"
    "Question: Would {{init_name}} initiate a conversation with {{target_name}}? Answer yes or no.",
    "Whether to start a conversation.",
)

_register(
    "decide_to_react",
    "Task -- given context and two options that a subject can take, determine which option is the most acceptable.\n"
    "Context: {{context}}\n"
    "Right now, it is {{curr_time}}.\n{{init_act}}\n{{target_act}}\n"
    "My question: Let's think step by step. Of the following two options, what should {{init_name}} do?\n"
    "Option 1: Wait on {{init_act_desc}} until {{target_name}} is done {{target_act_desc}}\n"
    "Option 2: Continue on to {{init_act_desc}} now\n"
    "Answer with the option number, 1 or 2.",
    "Whether to wait for a blocking persona.",
)

_register(
    "summarize_conversation",
    "Conversation:\n{{conversation}}\n"
    "Summarize the conversation above in one sentence, starting with 'conversing about'.",
    "One-line summary of a chat.",
)

_register(
    "summarize_relationship",
    "[Statements]\n{{statements}}\n"
    "Based on the statements above, summarize {{init_name}} and {{target_name}}'s relationship. "
    "What do they feel or know about each other?",
    "Relationship summary used before each utterance.",
)

_register(
    "iterative_chat_utterance",
    "Context for the task:\n\n"
    "PART 1.\n{{init_iss}}\n\n"
    "Here is the memory that is in {{init_name}}'s head:\n{{retrieved}}\n\n"
    "PART 2.\nPast context:\n{{prev_convo}}\n\n"
    "Current context:\n{{curr_context}}\n\n"
    "{{init_name}} and {{target_name}} are chatting. Here is their conversation so far:\n{{conversation}}\n\n"
    "---\n"
    "Task: Given the above, what should {{init_name}} say to {{target_name}} next in the conversation? "
    "And did it end the conversation?\n\n"
    "Output format: Output a json of the following format:\n"
    "{\n"
    '"utterance": "<{{init_name}}\'s utterance>",\n'
    '"end": "<json Boolean: true if the conversation ends after this utterance>"\n'
    "}",
    "Next utterance of an ongoing conversation.",
)

_register(
    "planning_thought_on_convo",
    "[Conversation]\n{{conversation}}\n\n"
    "Write down if there is anything from the conversation that {{name}} needs to remember for their planning, "
    "from {{name}}'s perspective, in a full sentence.",
    "Planning note taken after a chat.",
)

_register(
    "memo_on_convo",
    "[Conversation]\n{{conversation}}\n\n"
    "Write down if there is anything from the conversation that {{name}} might have found interesting, "
    "from {{name}}'s perspective, in a full sentence.",
    "Memo taken after a chat.",
)

_register(
    "whisper_inner_thought",
    "Translate the following thought into a statement about {{name}}.\n"
    "Thought: \"{{whisper}}\"\n"
    "Statement: \"",
    "Turns an injected inner voice into a third-person statement.",
)

# Importance -------------------------------------------------------------------

_POIGNANCY_TAIL = (
    "On the scale of 1 to 10, where 1 is purely mundane (e.g., brushing teeth, making bed) "
    "and 10 is extremely poignant (e.g., a break up, college acceptance), rate the likely "
    "poignancy of the following {{kind}} for {{name}}.\n"
)

_register(
    "event_poignancy",
    "{{identity}}\n" + _POIGNANCY_TAIL.replace("{{kind}}", "event")
    + "Event: {{description}}\nRate (return a number between 1 to 10):",
    "Importance of a perceived event.",
)

_register(
    "thought_poignancy",
    "{{identity}}\n" + _POIGNANCY_TAIL.replace("{{kind}}", "thought")
    + "Thought: {{description}}\nRate (return a number between 1 to 10):",
    "Importance of a thought.",
)

_register(
    "chat_poignancy",
    "{{identity}}\n" + _POIGNANCY_TAIL.replace("{{kind}}", "conversation")
    + "Conversation: {{description}}\nRate (return a number between 1 to 10):",
    "Importance of a conversation.",
)

# Reflection -------------------------------------------------------------------

_register(
    "focal_points",
    "{{statements}}\n\n"
    "Given only the information above, what are {{count}} most salient high-level questions we can answer "
    "about the subjects in the statements? Output one question per line.",
    "Questions reflection is centred on.",
)

_register(
    "insight_and_evidence",
    "Input:\n{{statements}}\n\n"
    "What {{count}} high-level insights can you infer from the above statements? "
    "Output one insight per line in the format: insight (because of 1, 5, 3)",
    "Insights with the statement numbers supporting them.",
)

# Identity revision ------------------------------------------------------------

_register(
    "revise_plan_note",
    "{{statements}}\n"
    "Given the statements above, is there anything that {{name}} should remember as they plan for *{{curr_date}}*? "
    "If there is any scheduling information, be as specific as possible (include date, time, and location if stated in the statement)\n\n"
    "Write the response from {{name}}'s perspective.",
    "Morning plan note.",
)

_register(
    "revise_thought_note",
    "{{statements}}\n"
    "Given the statements above, how might we summarize {{name}}'s feelings about their days up to now?\n\n"
    "Write the response from {{name}}'s perspective.",
    "Morning mood note.",
)

_register(
    "revise_currently",
    "{{name}}'s status from {{prev_date}}:\n{{currently}}\n\n"
    "{{name}}'s thoughts at the end of {{prev_date}}:\n{{notes}}\n\n"
    "It is now {{curr_date}}. Given the above, write {{name}}'s status for {{curr_date}} that reflects "
    "{{name}}'s thoughts at the end of {{prev_date}}. Write this in third-person talking about {{name}}. "
    "If there is any scheduling information, be as specific as possible (include date, time, and location if stated in the statement).\n\n"
    "Follow this format below:\nStatus: <new status>",
    "New 'currently' status for a new day.",
)

_register(
    "revise_daily_req",
    "{{identity}}\n"
    "Today is {{curr_date}}. Here is {{name}}'s plan today in broad-strokes "
    "(with the time of the day. e.g., have a lunch at 12:00 pm, watch TV from 7 to 8 pm).\n\n"
    "Follow this format (the list should have 4~6 items but no more):\n"
    "1. wake up and complete the morning routine at <time>, 2. ...",
    "New daily plan requirement for a new day.",
)
