"""Structural checks applied to submitted introduction fields."""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Pattern

from .errors import ValidationFailed

DEFAULT_COHORT_LETTERS = "NSR"


@lru_cache(maxsize=8)
def cohort_pattern(letters: str = DEFAULT_COHORT_LETTERS) -> Pattern[str]:
    """Return the cohort grammar: one designated letter then a positive integer."""

    return re.compile(rf"[{re.escape(letters)}][1-9][0-9]*")


def is_valid_cohort(value: str, letters: str = DEFAULT_COHORT_LETTERS) -> bool:
    return bool(cohort_pattern(letters).fullmatch(value))


def validate_cohort(value: str, letters: str = DEFAULT_COHORT_LETTERS) -> str:
    """Return the cohort label unchanged or raise ``ValidationFailed``."""

    if is_valid_cohort(value, letters):
        return value
    choices = ", ".join(letters)
    examples = ", ".join(f"{letter}{index}" for index, letter in enumerate(letters, start=1))
    raise ValidationFailed(
        "cohort",
        f"Invalid cohort `{value}`. Use one of {choices} followed by a number "
        f"of 1 or more, for example {examples}.",
    )


__all__ = ["cohort_pattern", "is_valid_cohort", "validate_cohort"]
