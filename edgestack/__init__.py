"""edge-stack -- Cloudflare Workers development assistant tooling."""

__version__ = "0.4.0"
