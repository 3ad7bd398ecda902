"""Persona cognition stack.

The per-tick pipeline lives in submodules: ``perceive``, ``retrieve``,
``plan`` (with ``converse`` for conversations), ``execute`` and ``reflect``.
Only the dependency-free pieces are re-exported here; the pipeline modules
call the oracle query set, which itself renders prompts from this package.
"""

from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate
from .renderers import RenderedPrompt, render_named, render_prompt
from .retrieve import RetrievedContext, cos_sim, new_retrieve, normalize_dict_floats, retrieve

__all__ = [
    "DEFAULT_PROMPTS",
    "PromptLibrary",
    "PromptTemplate",
    "RenderedPrompt",
    "render_named",
    "render_prompt",
    "RetrievedContext",
    "cos_sim",
    "new_retrieve",
    "normalize_dict_floats",
    "retrieve",
]
