"""Prompts used by the evaluation service client."""

from .evaluation import EVALUATION_USER_PROMPT_TEMPLATE, format_evaluation_prompt

__all__ = [
    "EVALUATION_USER_PROMPT_TEMPLATE",
    "format_evaluation_prompt",
]
