"""
Spoken confirmation text, one template per intent kind.
The style ("minimal" | "concise" | "detailed") changes verbosity, never content.
"""

from __future__ import annotations

import re

from voice.config import ABBREVIATIONS, FEEDBACK_EVENTS, UNIT_WORDS


def _fmt(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def set_logged(params: dict, style: str = "concise") -> str:
    exercise = params.get("exercise")
    reps, weight, unit, rpe = params.get("reps"), params.get("weight"), params.get("unit", "lbs"), params.get("rpe")

    if style == "minimal":
        return "Logged."
    if style == "detailed":
        what = f" of {exercise.name}" if exercise is not None else ""
        message = f"Successfully logged {reps} repetitions{what} at {_fmt(weight)} {unit}"
        if rpe:
            message += f" with RPE {_fmt(rpe)}"
        return message + "."
    message = f"Logged {reps} reps, {_fmt(weight)} {unit}"
    if rpe:
        message += f", RPE {_fmt(rpe)}"
    return message + "."


def workout_started(params: dict, style: str = "concise") -> str:
    title = params.get("title")
    if style == "minimal":
        return "Started."
    if style == "detailed":
        if title:
            return f"Successfully started your {title} workout. Ready to log your first set."
        return "Successfully started your workout session. Ready to log your first set."
    return f"Started {title} workout." if title else "Workout started."


def entry_edited(params: dict, style: str = "concise") -> str:
    field, value = params.get("field"), _fmt(params.get("value"))
    if params.get("unit"):
        value = f"{value} {params['unit']}"
    if style == "minimal":
        return "Updated."
    if style == "detailed":
        return f"Successfully updated {field} to {value}."
    return f"{field.capitalize()} changed to {value}."


def entry_undone(params: dict, style: str = "concise") -> str:
    if style == "minimal":
        return "Undone."
    if style == "detailed":
        return "Last entry has been removed successfully."
    return "Last set removed."


def rest_timer_started(params: dict, style: str = "concise") -> str:
    seconds = int(params.get("seconds", 0))
    minutes, remaining = divmod(seconds, 60)
    if minutes and remaining:
        duration = f"{_plural(minutes, 'minute')} and {_plural(remaining, 'second')}"
    elif minutes:
        duration = _plural(minutes, "minute")
    else:
        duration = _plural(seconds, "second")

    if style == "minimal":
        return f"Resting {duration}."
    return f"Rest timer started for {duration}."


def exercise_selected(params: dict, style: str = "concise") -> str:
    exercise = params.get("exercise")
    name = exercise.name if exercise is not None else "that exercise"
    if style == "minimal":
        return f"{name}."
    if style == "detailed":
        return f"Switched to {name}. Ready when you are."
    return f"Got it, {name}."


def unclear(params: dict | None = None, style: str = "concise") -> str:
    return FEEDBACK_EVENTS["command_unclear"]


TEMPLATES = {
    "log_set": set_logged,
    "start_workout": workout_started,
    "edit_last": entry_edited,
    "undo_last": entry_undone,
    "rest_timer": rest_timer_started,
    "exercise_mention": exercise_selected,
    "unknown": unclear,
}


def confirmation_for(intent, style: str = "concise") -> str:
    """Confirmation text for an Intent (or anything with .kind and .parameters)."""
    kind = getattr(intent.kind, "value", intent.kind)
    template = TEMPLATES.get(kind, unclear)
    return template(intent.parameters, style)


def clarification_for(intent) -> str:
    """'Did you mean X?' for a low-confidence intent; the unclear prompt when nothing fits."""
    if intent.alternatives:
        option = intent.alternatives[0]["exercise"].name
        return FEEDBACK_EVENTS["needs_confirmation"].format(option=option)
    exercise = intent.parameters.get("exercise")
    if exercise is not None:
        return FEEDBACK_EVENTS["needs_confirmation"].format(option=exercise.name)
    return FEEDBACK_EVENTS["command_unclear"]


# === Pronunciation ===

_ABBREVIATION_RES = [
    (re.compile(rf"\b{abbr}\b", re.IGNORECASE), expansion) for abbr, expansion in ABBREVIATIONS.items()
]
_UNIT_RES = [
    (re.compile(rf"\b(\d+(?:\.\d+)?)\s*(?:{pattern})\b", re.IGNORECASE), rf"\1 {word}")
    for pattern, word in UNIT_WORDS.items()
]


def expand_abbreviations(text: str) -> str:
    for regex, expansion in _ABBREVIATION_RES:
        text = regex.sub(expansion, text)
    return text


def expand_units(text: str) -> str:
    """'185 lbs' -> '185 pounds', '10reps' -> '10 repetitions'."""
    for regex, replacement in _UNIT_RES:
        text = regex.sub(replacement, text)
    return text


def add_natural_pauses(text: str) -> str:
    text = re.sub(r"([.!?])\s+", r"\1 ", text)
    text = re.sub(r",(?!\d)\s*", ", ", text)
    return re.sub(r"\s+", " ", text).strip()


def prepare_for_speech(text: str, natural_pauses: bool = True) -> str:
    """Abbreviations, then unit words, then pauses."""
    text = expand_units(expand_abbreviations(text))
    return add_natural_pauses(text) if natural_pauses else text.strip()
