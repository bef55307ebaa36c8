"""Registry of the markdown agent personas shipped with edge-stack.

Each persona is a markdown file whose frontmatter names it::

    ---
    name: kv-optimization-specialist
    description: Reviews Workers KV usage
    model: sonnet
    ---
    You are ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import frontmatter
import yaml

logger = logging.getLogger("agents")

PROMPTS_DIR = Path(__file__).parent / "prompts"


@dataclass
class AgentPersona:
    """A named prompt telling an LLM how to work on Cloudflare Workers code."""

    name: str
    description: str
    body: str
    model: str | None = None
    color: str | None = None
    path: Path | None = None


def parse_frontmatter(content: str) -> tuple[dict[str, str], str]:
    """Split *content* into its frontmatter fields and the markdown body.

    Scalar values are returned as stripped strings; content without
    frontmatter yields ``({}, body)``.

    Raises:
        ValueError: If the frontmatter is not valid YAML.
    """
    try:
        post = frontmatter.loads(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid frontmatter: {e}") from e

    fields = {
        str(key): str(value).strip()
        for key, value in post.metadata.items()
        if value is not None
    }
    return fields, post.content


def load_agent(path: Path) -> AgentPersona:
    """Load one persona file.

    Raises:
        ValueError: If the frontmatter is invalid or has no ``name``.
    """
    fields, body = parse_frontmatter(path.read_text(encoding="utf-8"))
    if not fields.get("name"):
        raise ValueError(f"Agent file {path} has no 'name' in its frontmatter")
    return AgentPersona(
        name=fields["name"],
        description=fields.get("description", ""),
        body=body.strip() + "\n",
        model=fields.get("model") or None,
        color=fields.get("color") or None,
        path=path,
    )


class AgentRegistry:
    """Personas loaded from a directory of markdown files."""

    def __init__(self, directory: Path = PROMPTS_DIR) -> None:
        self._directory = directory
        self._agents: dict[str, AgentPersona] | None = None

    def _load(self) -> dict[str, AgentPersona]:
        if self._agents is None:
            agents: dict[str, AgentPersona] = {}
            for path in sorted(self._directory.glob("*.md")):
                agent = load_agent(path)
                if agent.name in agents:
                    logger.warning("Duplicate agent name %s in %s", agent.name, path)
                agents[agent.name] = agent
            self._agents = agents
        return self._agents

    def list(self) -> list[AgentPersona]:
        return list(self._load().values())

    def names(self) -> list[str]:
        return list(self._load())

    def get(self, name: str) -> AgentPersona:
        """Look up a persona by name.

        Raises:
            KeyError: If no persona has that name.
        """
        agents = self._load()
        if name not in agents:
            raise KeyError(f"Unknown agent '{name}'. Available: {sorted(agents)}")
        return agents[name]


def render_prompt(agent: AgentPersona, context: dict[str, str] | str | None = None) -> str:
    """Return the persona prompt, followed by a ``## Context`` section if given."""
    prompt = agent.body.rstrip() + "\n"
    if not context:
        return prompt
    if isinstance(context, dict):
        lines = [f"- **{key}**: {value}" for key, value in context.items()]
        context_text = "\n".join(lines)
    else:
        context_text = context.strip()
    return f"{prompt}\n## Context\n\n{context_text}\n"
