"""Prompt templates for the clarify, plan and fix phases."""

from .loader import extract_variables, format_prompt, load_prompt, render_prompt

__all__ = ["extract_variables", "format_prompt", "load_prompt", "render_prompt"]
