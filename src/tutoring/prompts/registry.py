"""Prompt registry for the LLM calls.

Templates are Markdown files under templates/, addressed by path-like
keys such as "analysis/system". Placeholders use {name} syntax; JSON
examples in the templates are left alone because only bare lower-case
identifiers count as placeholders.

Usage:
    from tutoring.prompts import get_prompt

    prompt = get_prompt(
        "analysis/user",
        worksheet_text="...",
        answer_key_text="...",
    )
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

PLACEHOLDER_PATTERN = re.compile(r"\{([a-z_]+)\}")


class PromptError(Exception):
    """A template is missing or was rendered without its variables."""

    pass


@lru_cache(maxsize=32)
def load_template(key: str) -> str:
    """Raw template text for a key.

    Raises:
        PromptError: If no template exists for the key
    """
    path = TEMPLATES_DIR / f"{key}.md"
    if not path.is_file():
        raise PromptError(f"Prompt not found: {key} (looked at {path})")
    return path.read_text(encoding="utf-8")


def template_variables(key: str) -> set[str]:
    """Placeholder names a template expects."""
    return set(PLACEHOLDER_PATTERN.findall(load_template(key)))


def get_prompt(key: str, **variables: str) -> str:
    """Render a template with its variables.

    Substitution is a single pass, so text inside a value (a worksheet
    that happens to contain "{topics}") is never substituted again.

    Args:
        key: Path-like key, e.g. "analysis/user"
        **variables: Values for every placeholder in the template

    Returns:
        Rendered prompt, stripped

    Raises:
        PromptError: If the template is missing or a placeholder has no value
    """
    template = load_template(key)

    missing = template_variables(key) - variables.keys()
    if missing:
        raise PromptError(f"Prompt {key} is missing variables: {', '.join(sorted(missing))}")

    unused = variables.keys() - template_variables(key)
    if unused:
        logger.debug("prompts.unused_variables", key=key, names=sorted(unused))

    rendered = PLACEHOLDER_PATTERN.sub(lambda m: str(variables[m.group(1)]), template)
    return rendered.strip()


def clear_cache() -> None:
    load_template.cache_clear()
