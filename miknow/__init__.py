"""MiKnow: LLM-assisted knowledge notebook service."""

__version__ = "0.1.0"
