"""
Completion gateway: prompt construction, the upstream client and parsing of
its free-text answer into a reflection plus follow-up questions.
"""

from .client import CompletionClient
from .parsing import MAX_QUESTIONS, Reflection, extract_questions, parse_reflection
from .prompts import build_messages, build_system_prompt, build_user_prompt

__all__ = [
    "CompletionClient",
    "MAX_QUESTIONS",
    "Reflection",
    "build_messages",
    "build_system_prompt",
    "build_user_prompt",
    "extract_questions",
    "parse_reflection",
]
