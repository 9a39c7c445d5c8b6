"""Lexical redundancy check for new facts.

Only the three lexical rules in `is_redundant` apply. No semantic model is consulted
(an LLM check was tried and dropped legitimate facts).
"""

import re

SUBSTRING_LENGTH_RATIO = 0.85
WORD_OVERLAP_THRESHOLD = 0.5

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_WORD_RE = re.compile(r"[a-z]+")


def _numbers(text: str) -> set[str]:
    return {m.replace(",", "") for m in _NUMBER_RE.findall(text)}


def _words(text: str) -> set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) > 3}


def _is_restatement(new: str, old: str) -> bool:
    if new in old or old in new:
        longest = max(len(new), len(old))
        if longest and min(len(new), len(old)) / longest > SUBSTRING_LENGTH_RATIO:
            return True
    return False


def _same_numbers(new: str, old: str) -> bool:
    new_numbers = _numbers(new)
    if not new_numbers or new_numbers != _numbers(old):
        return False

    new_words = _words(new)
    old_words = _words(old)
    union = new_words | old_words
    if not union:
        return False
    return len(new_words & old_words) / len(union) > WORD_OVERLAP_THRESHOLD


def is_redundant(new_fact: str, existing_facts: list[str], entity_name: str = "") -> bool:
    """True if `new_fact` restates one of `existing_facts`.

    `entity_name` is accepted for callers that pass it but does not change the rules.
    """
    new = new_fact.strip().lower()

    for existing in existing_facts:
        old = existing.strip().lower()
        if new == old:
            return True
        if _is_restatement(new, old):
            return True
        if _same_numbers(new, old):
            return True
    return False
