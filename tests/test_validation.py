"""Tests for cohort validation."""
from __future__ import annotations

import pytest

from introbot.errors import ValidationFailed
from introbot.validation import is_valid_cohort, validate_cohort


@pytest.mark.parametrize("value", ["N1", "S2", "R3", "N10", "S123"])
def test_valid_cohorts(value):
    assert is_valid_cohort(value)
    assert validate_cohort(value) == value


@pytest.mark.parametrize("value", ["", "N", "N0", "N01", "X1", "n1", " N1", "N1 ", "N1a", "NS1"])
def test_invalid_cohorts(value):
    assert not is_valid_cohort(value)


def test_validation_error_lists_letters_and_examples():
    with pytest.raises(ValidationFailed) as excinfo:
        validate_cohort("Z9")
    assert excinfo.value.field == "cohort"
    assert "N, S, R" in excinfo.value.user_message
    assert "N1, S2, R3" in excinfo.value.user_message


def test_custom_cohort_letters():
    assert is_valid_cohort("A4", "AB")
    assert not is_valid_cohort("N4", "AB")
