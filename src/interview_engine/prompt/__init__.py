"""Jinja2 prompt rendering."""

from interview_engine.prompt.manager import PromptManager

__all__ = ["PromptManager"]
