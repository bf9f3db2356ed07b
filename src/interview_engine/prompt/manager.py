"""PromptManager — Jinja2-based renderer for user-facing and provider prompts.

Loads templates from the ``template/`` directory next to this module:

  - ``adaptive_prompt.jinja2``: the question text shown when confirmed
    document evidence backs the medical-conditions question
  - ``decision_entry.jinja2``: the ``rules`` transcript line written when
    the interview completes
  - ``condition_extraction.jinja2``: instructions for LLM-backed condition
    providers, with the document text truncated to a fixed budget
"""

from __future__ import annotations

import json
from pathlib import Path

import jinja2

from interview_engine.constants import EXTRACTION_PROMPT_MAX_CHARS


class PromptManager:
    """Renders the package's Jinja2 templates.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self._env.filters["tojson"] = lambda v: json.dumps(v, ensure_ascii=False)

    def render(self, template_name: str, **context) -> str:
        """Render a named template with arbitrary context, stripped."""
        template = self._env.get_template(template_name)
        return template.render(**context).strip()

    def render_adaptive_prompt(self, labels: list[str]) -> str:
        return self.render("adaptive_prompt.jinja2", labels=labels)

    def render_decision_entry(self, decision: str, reason: str) -> str:
        return self.render("decision_entry.jinja2", decision=decision, reason=reason)

    def render_condition_extraction(
        self,
        text: str,
        *,
        known_labels: list[str] | None = None,
        max_chars: int = EXTRACTION_PROMPT_MAX_CHARS,
    ) -> str:
        """Build the instruction prompt for an LLM condition provider."""
        return self.render(
            "condition_extraction.jinja2",
            text=text[:max_chars],
            known_labels=known_labels or [],
        )
