"""Learner-facing feedback for failed script execution.

Raw failure messages are written for programmers ("Function 'foo' not found").
`enhance_error` maps them onto a friendlier explanation with a suggestion and
the programming concept involved, so a presentation layer can teach rather
than just report.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["error", "warning", "info"]


class LearnerError(BaseModel):
    """Failure message rephrased for a learner."""
    original_message: str
    user_message: str
    suggestion: str
    concept: str
    severity: Severity = "error"
    explanation: str = Field(default="")


# (pattern, user message, suggestion, concept, severity). First match wins.
_ERROR_PATTERNS: list[tuple[re.Pattern[str], str, str, str, Severity]] = [
    (
        re.compile(r"invalid function call syntax", re.I),
        "Oops! Your function call has a syntax error.",
        "Remember: function_name(parameter1, parameter2). Check for missing parentheses, commas, or quotes.",
        "function_calls",
        "error",
    ),
    (
        re.compile(r"invalid (if|elif|else) statement", re.I),
        "Your if statement needs a colon (:) at the end.",
        'Try: if condition: (not just "if condition")',
        "conditionals",
        "error",
    ),
    (
        re.compile(r"invalid for loop", re.I),
        "Your for loop needs the correct format.",
        "Try: for variable in range(5): or for item in my_list:",
        "loops",
        "error",
    ),
    (
        re.compile(r"invalid while (loop|statement)|maximum iterations", re.I),
        "Your while loop has a problem.",
        "Try: while condition: and make sure the condition eventually becomes False.",
        "loops",
        "error",
    ),
    (
        re.compile(r"out of bounds", re.I),
        "You tried to move outside the game world!",
        "Check your coordinates with get_position() or use smaller movement steps.",
        "coordinates",
        "warning",
    ),
    (
        re.compile(r"not enough energy", re.I),
        "You're out of energy! Time to rest.",
        "Move to a food tile and use eat() to restore energy, or use get_energy() to check your current level.",
        "resource_management",
        "warning",
    ),
    (
        re.compile(r"cannot move.*blocked", re.I),
        "Something is blocking your path!",
        "Check what's around you with scanner(x, y) and look for other characters or busy tiles.",
        "collision_detection",
        "warning",
    ),
    (
        re.compile(r"currently busy|already in use|already .*task", re.I),
        "That is still busy with an earlier task.",
        "Use wait(seconds) to give the task time to finish before trying again.",
        "timing",
        "warning",
    ),
    (
        re.compile(r"not ready", re.I),
        "That isn't ready yet.",
        "Some actions take time. wait() for them to finish, or check first with can_harvest() or scanner(x, y).",
        "timing",
        "info",
    ),
    (
        re.compile(r"must be (standing )?on", re.I),
        "You're not standing in the right place for that.",
        "Use get_current_tile() to see where you are, then move_to(x, y) the right tile.",
        "coordinates",
        "warning",
    ),
    (
        re.compile(r"function.*not found", re.I),
        "That function doesn't exist.",
        "Check the function glossary to see all available functions, or verify the spelling.",
        "functions",
        "error",
    ),
    (
        re.compile(r"variable.*not defined|undefined variable", re.I),
        "You're using a variable that hasn't been created yet.",
        "Create variables like: my_variable = 5, or check the spelling of the variable name.",
        "variables",
        "error",
    ),
]

_DEFAULT = (
    "Something went wrong with your code.",
    "Check your syntax and try again. If you're stuck, look at the code examples or ask for help!",
    "debugging",
    "error",
)

_CONCEPT_EXPLANATIONS: dict[str, str] = {
    "function_calls": "Functions are mini-programs that do specific tasks. Call one by writing its name followed by parentheses: function_name()",
    "conditionals": "If statements let your code make decisions. They check whether something is true and run different code depending on the answer.",
    "loops": "Loops repeat the same code several times. For loops are great when you know exactly how many times to repeat.",
    "coordinates": "The world is a grid. X grows as you move right, Y grows as you move down. The top-left corner is (0, 0).",
    "resource_management": "Energy is fuel for your character. Moving and interacting spend it; eating at food tiles restores it.",
    "collision_detection": "The world has obstacles and other characters. Check that a space is free before moving into it.",
    "timing": "Some actions run for a while after you start them. Your character or the tile stays busy until the task finishes.",
    "functions": "Every available function is listed in the glossary, together with its parameters.",
    "variables": "Variables store information for later. Think of them as labelled boxes you can put values into.",
    "debugging": "Debugging means finding and fixing problems in your code. Start by checking for typos and syntax errors.",
}


def explain_concept(concept: str) -> str:
    return _CONCEPT_EXPLANATIONS.get(
        concept,
        "This concept helps you write better code. Check the lesson or examples for more details.",
    )


def enhance_error(message: str) -> LearnerError:
    """Map a raw failure message to a LearnerError (never returns None)."""
    for pattern, user_message, suggestion, concept, severity in _ERROR_PATTERNS:
        if pattern.search(message):
            break
    else:
        user_message, suggestion, concept, severity = _DEFAULT
    return LearnerError(
        original_message=message,
        user_message=user_message,
        suggestion=suggestion,
        concept=concept,
        severity=severity,
        explanation=explain_concept(concept),
    )
