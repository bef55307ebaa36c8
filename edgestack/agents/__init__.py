"""Cloudflare Workers agent personas."""

from edgestack.agents.registry import (
    AgentPersona,
    AgentRegistry,
    load_agent,
    parse_frontmatter,
    render_prompt,
)

__all__ = [
    "AgentPersona",
    "AgentRegistry",
    "load_agent",
    "parse_frontmatter",
    "render_prompt",
]
