"""
Answer Synthesis

- Evidence selection and citation-numbered context formatting
- Follow-up question parsing
- AnswerSynthesizer: language-model answer generation with caching
"""

from __future__ import annotations

from .answer import SYSTEM_PROMPT, AnswerSynthesizer, SynthesizedAnswer, build_messages
from .evidence import (
    format_evidence_context,
    parse_follow_up_questions,
    select_evidence,
    split_follow_ups,
)

__all__ = [
    "AnswerSynthesizer",
    "SynthesizedAnswer",
    "SYSTEM_PROMPT",
    "build_messages",
    "select_evidence",
    "format_evidence_context",
    "parse_follow_up_questions",
    "split_follow_ups",
]
