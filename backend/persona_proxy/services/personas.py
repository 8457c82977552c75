"""Persona definitions and their system prompts.

Each persona is a fixed system prompt loaded from ``<prompts_dir>/<file>``
and exposed at ``POST /<slug>-chat``.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class PromptLoadError(Exception):
    """Raised when a persona prompt file is missing or empty."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class Persona:
    slug: str
    name: str
    prompt_file: str
    system_prompt: str = ""

    @property
    def route_path(self) -> str:
        return f"/{self.slug}-chat"


PERSONAS: tuple[Persona, ...] = (
    Persona(slug="persona-a", name="Mentor", prompt_file="persona_a.txt"),
    Persona(slug="persona-b", name="Builder", prompt_file="persona_b.txt"),
)


def load_prompt(prompts_dir: Path, filename: str) -> str:
    path = Path(prompts_dir) / filename
    if not path.is_file():
        raise PromptLoadError(f"Prompt file not found: {path}")
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        raise PromptLoadError(f"Prompt file is empty: {path}")
    return text


def load_personas(prompts_dir: Path) -> dict[str, Persona]:
    """Load every persona's system prompt. Returns personas keyed by slug."""
    loaded = {}
    for persona in PERSONAS:
        prompt = load_prompt(prompts_dir, persona.prompt_file)
        loaded[persona.slug] = Persona(
            slug=persona.slug,
            name=persona.name,
            prompt_file=persona.prompt_file,
            system_prompt=prompt,
        )
        logger.info(f"Loaded persona '{persona.slug}' ({len(prompt)} chars)")
    return loaded
