"""
File-based persistence for personas and simulations.

Everything is plain JSON on disk so a saved simulation can be inspected,
copied or forked by hand. File I/O runs in a worker thread
(``asyncio.to_thread``) so saving never blocks the event loop.

Directory structure::

    {base_path}/
      {sim_code}/
        meta.json                       # SimulationMeta
        personas/
          {persona name}/
            associative_memory/
              nodes.json
              kw_strength.json
              embeddings.json
            spatial_memory.json
            scratch.json
        environment/
          {step}.json                   # {name: PersonaPosition} consumed at a step
        movement/
          {step}.json                   # MovementFrame produced by a step
"""

from __future__ import annotations

import asyncio
import json
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Union

from personaverse.cognition.prompts import PromptLibrary
from personaverse.config import Config
from personaverse.embeddings import Embedder
from personaverse.oracle import Oracle
from personaverse.persona import Persona
from personaverse.schemas import MovementFrame, PersonaPosition, SimulationMeta


PathLike = Union[Path, str]


class PersonaStore:
    """Save and load personas, one folder per persona name."""

    def __init__(self, base_path: PathLike):
        self.base_path = Path(base_path)

    def persona_dir(self, name: str) -> Path:
        return self.base_path / name

    async def save_persona(self, persona: Persona) -> Path:
        folder = self.persona_dir(persona.name)
        await asyncio.to_thread(persona.save, folder)
        return folder

    async def load_persona(
        self,
        name: str,
        *,
        oracle: Optional[Oracle] = None,
        embedder: Optional[Embedder] = None,
        prompt_library: Optional[PromptLibrary] = None,
    ) -> Persona:
        """Load a saved persona.

        Raises:
            FileNotFoundError: If no persona called ``name`` was saved here.
        """
        folder = self.persona_dir(name)
        if not folder.exists():
            raise FileNotFoundError(f"No saved persona {name!r} under {self.base_path}")
        return await asyncio.to_thread(
            Persona.load, folder, oracle=oracle, embedder=embedder, prompt_library=prompt_library
        )

    async def list_personas(self) -> List[str]:
        if not self.base_path.exists():
            return []
        return sorted(path.name for path in self.base_path.iterdir() if path.is_dir())


class SimulationStore:
    """Meta, persona folders and per-step files of one simulation."""

    def __init__(self, sim_code: str, base_path: Optional[PathLike] = None):
        self.sim_code = sim_code
        self.base_path = Path(base_path) if base_path is not None else Config.STORAGE_DIR
        self.root = self.base_path / sim_code
        self.personas = PersonaStore(self.root / "personas")

    async def initialize(self) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)

    async def exists(self) -> bool:
        return await asyncio.to_thread((self.root / "meta.json").exists)

    # Meta -------------------------------------------------------------------

    async def save_meta(self, meta: SimulationMeta) -> None:
        path = self.root / "meta.json"
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        payload = meta.model_dump(mode="json")
        await asyncio.to_thread(path.write_text, json.dumps(payload, indent=2), "utf-8")

    async def load_meta(self) -> SimulationMeta:
        path = self.root / "meta.json"
        payload = json.loads(await asyncio.to_thread(path.read_text, "utf-8"))
        return SimulationMeta.model_validate(payload)

    # Step files -------------------------------------------------------------

    async def save_environment(self, step: int, positions: Dict[str, PersonaPosition]) -> None:
        path = self.root / "environment" / f"{step}.json"
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        payload = {name: position.model_dump(mode="json") for name, position in positions.items()}
        await asyncio.to_thread(path.write_text, json.dumps(payload, indent=2), "utf-8")

    async def load_environment(self, step: int) -> Optional[Dict[str, PersonaPosition]]:
        """Positions for ``step``, or None if the front end has not written them yet."""
        path = self.root / "environment" / f"{step}.json"
        if not path.exists():
            return None
        payload = json.loads(await asyncio.to_thread(path.read_text, "utf-8"))
        return {name: PersonaPosition.model_validate(data) for name, data in payload.items()}

    async def save_movement(self, step: int, frame: MovementFrame) -> None:
        path = self.root / "movement" / f"{step}.json"
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_text, frame.model_dump_json(indent=2), "utf-8")

    async def load_movement(self, step: int) -> Optional[MovementFrame]:
        path = self.root / "movement" / f"{step}.json"
        if not path.exists():
            return None
        return MovementFrame.model_validate_json(await asyncio.to_thread(path.read_text, "utf-8"))

    async def fork(self, new_sim_code: str) -> "SimulationStore":
        """Copy this simulation under ``new_sim_code`` and record where it came from."""
        target = SimulationStore(new_sim_code, self.base_path)
        await asyncio.to_thread(shutil.copytree, self.root, target.root)
        meta = await target.load_meta()
        meta = meta.model_copy(update={"sim_code": new_sim_code, "fork_sim_code": self.sim_code})
        await target.save_meta(meta)
        return target


__all__ = ["PersonaStore", "SimulationStore"]
