"""
Extraction of follow-up questions from free-form reflection text.

Grammar, applied line by line after trimming whitespace::

    question-line := "Q" [0-9]+ ws* ":" ws* text

The label match is case-insensitive. Lines that do not match, or whose text
is empty once the label is removed, are ignored. At most three questions are
kept, in their original order. The reflection content itself is left intact,
so labelled questions appear both there and in the extracted list.
"""

import re
from dataclasses import dataclass, field
from typing import List

MAX_QUESTIONS = 3

QUESTION_LABEL = re.compile(r"^Q[0-9]+\s*:\s*", re.IGNORECASE)


@dataclass
class Reflection:
    content: str
    questions: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"content": self.content, "questions": list(self.questions)}


def extract_questions(text: str, limit: int = MAX_QUESTIONS) -> List[str]:
    questions: List[str] = []
    for line in text.split("\n"):
        line = line.strip()
        match = QUESTION_LABEL.match(line)
        if not match:
            continue
        question = line[match.end():]
        if question:
            questions.append(question)
        if len(questions) == limit:
            break
    return questions


def parse_reflection(text: str) -> Reflection:
    """Build a Reflection whose content is ``text`` verbatim."""
    return Reflection(content=text, questions=extract_questions(text))
