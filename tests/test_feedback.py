"""Learner feedback mapping tests."""

import pytest

from tilescript_core import LearnerError, enhance_error, explain_concept


@pytest.mark.parametrize(
    "message, concept, severity",
    [
        ("Cannot move right: out of bounds", "coordinates", "warning"),
        ("Not enough energy. Required: 5, Available: 2", "resource_management", "warning"),
        ("Cannot move: path is blocked by another character", "collision_detection", "warning"),
        ("Entity is currently busy: Planting wheat", "timing", "warning"),
        ("Mining terminal is already in use", "timing", "warning"),
        ("Crop is not ready to harvest", "timing", "info"),
        ("Must be standing on Farmland to use plant()", "coordinates", "warning"),
        ("Function 'foo' not found", "functions", "error"),
        ("Variable 'total' is not defined", "variables", "error"),
        ("While loop exceeded maximum iterations (5). Possible infinite loop.", "loops", "error"),
    ],
)
def test_enhance_error_concepts(message: str, concept: str, severity: str) -> None:
    feedback = enhance_error(message)

    assert isinstance(feedback, LearnerError)
    assert feedback.original_message == message
    assert feedback.concept == concept
    assert feedback.severity == severity
    assert feedback.explanation == explain_concept(concept)


def test_unmatched_message_falls_back_to_debugging() -> None:
    feedback = enhance_error("Something odd happened")

    assert feedback.concept == "debugging"
    assert feedback.severity == "error"
    assert feedback.user_message == "Something went wrong with your code."


def test_first_matching_pattern_wins() -> None:
    # "invalid for loop" is listed before the while-loop pattern
    assert enhance_error("Invalid for loop syntax").suggestion.startswith("Try: for variable in range(5)")


def test_explain_unknown_concept() -> None:
    assert explain_concept("quantum").startswith("This concept helps you write better code.")
    assert "grid" in explain_concept("coordinates")
