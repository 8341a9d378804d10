"""Prompt templates for LLM calls."""

from tutoring.prompts.registry import PromptError, clear_cache, get_prompt, template_variables

__all__ = ["PromptError", "clear_cache", "get_prompt", "template_variables"]
