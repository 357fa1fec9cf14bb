"""
Prompt construction for journal reflections.
"""

from typing import Dict, List, Optional

SYSTEM_PROMPT = (
    "You are Homi, a gentle journaling companion. Respond with warmth, validation, and reflective questions.\n"
    "Avoid medical advice or diagnostics. Encourage self-care and next steps.\n"
    "Keep responses concise (4-7 sentences), empathetic, and non-judgmental."
)

USER_PROMPT_TEMPLATE = (
    "Journal entry:\n\n{entry}\n\n"
    "Task: 1) Provide an empathetic reflection. "
    "2) Then propose 2-3 short reflective questions labeled as Q1:, Q2:, Q3:. "
    "Keep it safe and supportive."
)


def build_system_prompt(tone: Optional[str] = None) -> str:
    """Persona instruction, with the caller's preferred tone appended when given."""
    if not tone:
        return SYSTEM_PROMPT
    return f"{SYSTEM_PROMPT}\nPreferred tone: {tone}."


def build_user_prompt(entry: str) -> str:
    return USER_PROMPT_TEMPLATE.format(entry=entry)


def build_messages(entry: str, tone: Optional[str] = None) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": build_system_prompt(tone)},
        {"role": "user", "content": build_user_prompt(entry)},
    ]
