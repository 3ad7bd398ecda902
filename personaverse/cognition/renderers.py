"""Prompt rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate


@dataclass
class RenderedPrompt:
    system: str
    user: str

    @property
    def text(self) -> str:
        """System and user sections joined into the single prompt the oracle sends."""
        return "\n\n".join(section for section in (self.system, self.user) if section)


def render_prompt(template: PromptTemplate, values: Mapping[str, Any]) -> RenderedPrompt:
    """Replace ``{{name}}`` placeholders with ``str(values[name])``.

    Placeholders without a value are left as-is; templates control structure.
    """

    system = template.system
    user = template.user
    for key, value in values.items():
        placeholder = "{{" + key + "}}"
        text = "" if value is None else str(value)
        system = system.replace(placeholder, text)
        user = user.replace(placeholder, text)
    return RenderedPrompt(system=system, user=user)


def render_named(name: str, values: Mapping[str, Any], library: PromptLibrary | None = None) -> str:
    """Render template ``name`` from ``library`` (default prompts when omitted) to prompt text."""

    library = library or DEFAULT_PROMPTS
    return render_prompt(library.get(name), values).text
