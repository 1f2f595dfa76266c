"""Heuristic gate that only lets action-oriented requests onto the board.

Rules are checked in priority order against the trimmed, lower-cased text:

1. too short
2. casual chat or greeting
3. an offer of services rather than a need
4. a request keyword (or an inflection of one), or a question
   asking for someone                                   -> accepted
5. a bare action verb in a very short post, or a post ending in
   "needed"/"required"                                  -> uncertain
6. anything else                                        -> rejected

Replies never come through here; the reply relationship already states intent.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from needboard.core.settings import settings

ACCEPTED: Final = "accepted"
UNCERTAIN: Final = "uncertain"
REJECTED: Final = "rejected"

CODE_TOO_SHORT: Final = "too_short"
CODE_CASUAL: Final = "casual"
CODE_OFFER: Final = "offer"
CODE_UNCLEAR: Final = "unclear"
CODE_LOW_CONFIDENCE: Final = "low_confidence"

REASONS: Final[dict[str, str]] = {
    CODE_TOO_SHORT: "Message too short. Please describe what you want done.",
    CODE_CASUAL: (
        'Please post action requests only. Example: "I want to hire a plumber" '
        'or "Looking for a tutor"'
    ),
    CODE_OFFER: (
        'Please post what you need, not what you offer. Example: "I need a plumber" '
        'instead of "I offer plumbing services"'
    ),
    CODE_UNCLEAR: (
        "Your message should clearly state what you want done. "
        'Try starting with "I want...", "I need...", or "Looking for..."'
    ),
    CODE_LOW_CONFIDENCE: "Low confidence - needs review",
}

REQUEST_KEYWORDS: Final = (
    "want", "need", "looking for", "seeking", "hire", "require", "help",
    "assist", "find", "get", "searching for", "in need of", "request",
    "requesting", "could use", "urgently",
)

# Inflected forms of the keywords above. "needed" and "required" are left out:
# a post that only ends in them is low confidence, not a clear request.
REQUEST_INFLECTIONS: Final = (
    r"wants", r"wanted", r"wanting", r"needs", r"needing", r"seeks?",
    r"hir(?:es|ing)", r"requires", r"requiring", r"helps", r"helping",
    r"assists", r"assisting", r"finds", r"finding", r"gets", r"getting",
    r"requests", r"searching",
)

ACTION_VERBS: Final = (
    "fix", "repair", "build", "create", "deliver", "install", "design",
    "make", "clean", "paint", "move", "transport", "teach", "maintain",
    "setup", "configure", "service",
)

QUESTION_PHRASES: Final = ("how can i", "where can i", "who can", "anyone", "can someone")
QUESTION_WORDS: Final = ("where", "who", "how")

CASUAL_PATTERNS: Final = tuple(
    re.compile(pattern)
    for pattern in (
        r"^hi+[!.]*$", r"^hello+[!.]*$", r"^hey+[!.]*$", r"^good (morning|afternoon|evening)[!.]*$",
        r"^how are you", r"^what'?s up", r"^lol+$", r"^ok+(ay)?[!.]*$", r"^thanks+[!.]*$",
        r"^thank you", r"^bye+[!.]*$", r"^see you",
    )
)

OFFER_PATTERNS: Final = tuple(
    re.compile(pattern)
    for pattern in (
        r"offering", r"\bi can (help|fix|repair|build)\b", r"\bi (do|offer|provide) ",
        r"available for", r"\bselling\b", r"for sale",
    )
)

ENDS_WITH_NEED: Final = re.compile(r"\b(needed|required)[\s.!]*$")


def _word_pattern(terms: tuple[str, ...], *, regexes: tuple[str, ...] = ()) -> re.Pattern[str]:
    alternatives = "|".join([re.escape(term) for term in terms] + list(regexes))
    return re.compile(rf"\b(?:{alternatives})\b")


_REQUEST_RE: Final = _word_pattern(REQUEST_KEYWORDS, regexes=REQUEST_INFLECTIONS)
_ACTION_RE: Final = _word_pattern(ACTION_VERBS)
_QUESTION_PHRASE_RE: Final = _word_pattern(QUESTION_PHRASES)
_QUESTION_WORD_RE: Final = _word_pattern(QUESTION_WORDS)


@dataclass(frozen=True)
class Verdict:
    """Outcome of classifying one candidate message."""

    status: str
    code: str | None = None

    @property
    def reason(self) -> str | None:
        return REASONS.get(self.code) if self.code else None

    @property
    def admitted(self) -> bool:
        return self.status != REJECTED

    @property
    def uncertain(self) -> bool:
        return self.status == UNCERTAIN


def _is_question(text: str) -> bool:
    if _QUESTION_PHRASE_RE.search(text):
        return True
    return "?" in text and _QUESTION_WORD_RE.search(text) is not None


def classify(message: str | None, *, min_length: int | None = None) -> Verdict:
    """Classify a candidate top-level message as accepted, uncertain or rejected."""
    text = (message or "").strip().lower()
    if len(text) < (settings.min_message_length if min_length is None else min_length):
        return Verdict(REJECTED, CODE_TOO_SHORT)

    if any(pattern.search(text) for pattern in CASUAL_PATTERNS):
        return Verdict(REJECTED, CODE_CASUAL)

    if any(pattern.search(text) for pattern in OFFER_PATTERNS):
        return Verdict(REJECTED, CODE_OFFER)

    if _REQUEST_RE.search(text) or _is_question(text):
        return Verdict(ACCEPTED)

    very_short = len(text.split()) <= 3
    if (very_short and _ACTION_RE.search(text)) or ENDS_WITH_NEED.search(text):
        return Verdict(UNCERTAIN, CODE_LOW_CONFIDENCE)

    return Verdict(REJECTED, CODE_UNCLEAR)
