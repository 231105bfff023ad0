"""
Intent parser.
Converts workout speech transcripts into structured intents
(log a set, start a workout, edit or undo the last entry, rest timer).

Parsing never raises for unrecognised input: it returns an `unknown` intent
with confidence 0 and whatever exercise suggestions the words allow.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable

from constants import (
    ALTERNATIVE_SIMILARITY,
    CONFIDENCE_THRESHOLD,
    FUZZY_MATCH_THRESHOLD,
    MAX_ALTERNATIVES,
    WORKOUT_CONFIDENCE_BOOST,
)
from voice.number_parser import (
    ORDINALS,
    extract_all_numbers,
    normalize_weight_unit,
    parse_rpe,
    parse_time,
    parse_weight,
    replace_number_words,
)
from voice.text_utils import (
    STOP_WORDS,
    acronym,
    compact,
    contains_phrase,
    is_numeric,
    normalize_text,
    similarity,
    tokenize,
)

logger = logging.getLogger(__name__)


class IntentKind(str, Enum):
    LOG_SET = "log_set"
    START_WORKOUT = "start_workout"
    EDIT_LAST = "edit_last"
    UNDO_LAST = "undo_last"
    REST_TIMER = "rest_timer"
    EXERCISE_MENTION = "exercise_mention"
    UNKNOWN = "unknown"


# Kinds that only make sense inside a running workout
_WORKOUT_SCOPED = frozenset(IntentKind) - {IntentKind.START_WORKOUT, IntentKind.UNKNOWN}


@dataclass(frozen=True)
class Exercise:
    """Catalogue entry. Immutable reference data."""
    id: str
    name: str
    synonyms: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> Exercise:
        return cls(
            id=str(data.get("id", data["name"])),
            name=data["name"],
            synonyms=tuple(data.get("synonyms") or ()),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "synonyms": list(self.synonyms)}


@dataclass(frozen=True)
class ExerciseMatch:
    exercise: Exercise
    score: float
    method: str     # "exact" | "synonym" | "abbreviation" | "partial" | "fuzzy"


@dataclass(frozen=True)
class ParseContext:
    last_exercise: Exercise | None = None
    in_workout: bool = False


@dataclass(frozen=True)
class Intent:
    """Structured action extracted from one utterance."""
    kind: IntentKind
    confidence: float
    parameters: dict = field(default_factory=dict)
    utterance: str = ""
    tokens: tuple[str, ...] = ()
    needs_confirmation: bool = False
    alternatives: tuple[dict, ...] = ()

    @property
    def exercise(self) -> Exercise | None:
        return self.parameters.get("exercise")

    def to_dict(self) -> dict:
        params = {
            key: value.to_dict() if isinstance(value, Exercise) else value
            for key, value in self.parameters.items()
        }
        return {
            "kind": self.kind.value,
            "confidence": self.confidence,
            "parameters": params,
            "utterance": self.utterance,
            "tokens": list(self.tokens),
            "needs_confirmation": self.needs_confirmation,
            "alternatives": [
                {**alt, "exercise": alt["exercise"].to_dict()} for alt in self.alternatives
            ],
        }


# Gym shorthand -> canonical catalogue name. Only used when that name is loaded.
DEFAULT_SYNONYMS: dict[str, str] = {
    "bench": "barbell bench press",
    "bp": "barbell bench press",
    "flat bench": "barbell bench press",
    "squat": "back squat",
    "bs": "back squat",
    "dl": "deadlift",
    "dead": "deadlift",
    "ohp": "overhead press",
    "op": "overhead press",
    "press": "overhead press",
    "military press": "overhead press",
    "row": "bent over barbell row",
    "barbell row": "bent over barbell row",
    "bb row": "bent over barbell row",
}

# Words stripped from both ends of an extracted exercise phrase
_PHRASE_FILLER = frozenset({
    "i", "just", "log", "logged", "did", "do", "done", "got", "a", "an", "the",
    "some", "my", "set", "sets", "of", "for", "at", "with", "on", "now", "next",
})

_NUM = r"\d+(?:\.\d+)?"
_WEIGHT_UNIT = r"lbs?|pounds?|kgs?|kilos?|kilograms?"
_REPS_WORD = r"reps?|repetitions?|times"
_LEAD = r"^(?:(?:i\s+)?(?:just\s+)?(?:log|logged|did|do|done|got)\s+)?"
_EXERCISE = r"(?P<exercise>[a-z][a-z0-9\s-]*?)"
_TAIL = r"(?P<tail>(?:\s+.*)?)$"
_LETS = r"(?:(?:let\s+s|lets|let\s+us)\s+)?"

_SET_INDEX_PATTERNS = [
    re.compile(r"\bset\s+(?:number\s+)?(\d+)\b"),
    re.compile(r"\b(\d+)(?:st|nd|rd|th)?\s+set\b"),
]
_ORDINAL_SET = re.compile(r"\b(" + "|".join(ORDINALS) + r")\s+set\b")

_TITLE_REJECT = re.compile(r"\b(?:rest|timer|break)\b")


@dataclass
class _Template:
    kind: IntentKind
    patterns: list[re.Pattern]
    extractor: Callable[[re.Match], tuple[dict, float] | None]
    confidence: float


def _key(text: str) -> str:
    """Index key: normalized, hyphens as spaces, spelled numbers as digits."""
    return replace_number_words(normalize_text(text.replace("-", " ")))


def _clean_phrase(phrase: str | None) -> str | None:
    if not phrase:
        return None
    words = phrase.replace("-", " ").split()
    while words and words[0] in _PHRASE_FILLER:
        words.pop(0)
    while words and words[-1] in _PHRASE_FILLER:
        words.pop()
    return " ".join(words) or None


def _set_index(text: str) -> int | None:
    for pattern in _SET_INDEX_PATTERNS:
        m = pattern.search(text)
        if m:
            return int(m.group(1))
    m = _ORDINAL_SET.search(text)
    if m:
        return ORDINALS[m.group(1)]
    return None


def _first_number(text: str) -> int | float | None:
    numbers = extract_all_numbers(text)
    return numbers[0] if numbers else None


class IntentParser:
    """
    Rule-based NLU over an exercise catalogue.

    Usage:
        parser = IntentParser()
        parser.load_exercise_catalogue([{"id": "1", "name": "Barbell Bench Press"}])
        intent = parser.parse_intent("bench press 10 reps at 185 pounds")
        intent.kind        # IntentKind.LOG_SET
        intent.parameters  # {"exercise": Exercise(...), "reps": 10, "weight": 185, "unit": "lbs", ...}
    """

    def __init__(
        self,
        confidence_threshold: float = CONFIDENCE_THRESHOLD,
        fuzzy_match_threshold: float = FUZZY_MATCH_THRESHOLD,
        max_alternatives: int = MAX_ALTERNATIVES,
    ):
        self.confidence_threshold = confidence_threshold
        self.fuzzy_match_threshold = fuzzy_match_threshold
        self.max_alternatives = max_alternatives

        self._exercises: list[Exercise] = []
        self._names: dict[str, Exercise] = {}
        self._index: dict[str, tuple[Exercise, str]] = {}
        self._synonyms: dict[str, str] = dict(DEFAULT_SYNONYMS)
        self._templates = self._build_templates()

        self._parsed = 0
        self._by_kind: Counter = Counter()
        self._confirmations = 0

    # === Catalogue ===

    def load_exercise_catalogue(self, exercises: Iterable[Exercise | dict]) -> int:
        """Rebuild the lookup index. Linear in catalogue size."""
        self._exercises = [e if isinstance(e, Exercise) else Exercise.from_dict(e) for e in exercises]
        self._names = {}
        self._index = {}

        # Names first so no alias can shadow a real exercise name
        for exercise in self._exercises:
            key = _key(exercise.name)
            self._names.setdefault(key, exercise)
            self._index.setdefault(key, (exercise, "exact"))

        for exercise in self._exercises:
            key = _key(exercise.name)
            for synonym in exercise.synonyms:
                self._index.setdefault(_key(synonym), (exercise, "synonym"))
            if "barbell" in key:
                self._index.setdefault(key.replace("barbell", "bb"), (exercise, "abbreviation"))
            if "dumbbell" in key:
                self._index.setdefault(key.replace("dumbbell", "db"), (exercise, "abbreviation"))

        for phrase, canonical in self._synonyms.items():
            if canonical in self._names:
                self._index.setdefault(phrase, (self._names[canonical], "synonym"))

        # Acronyms last: "bbp" for barbell bench press, never over a name or synonym
        for exercise in self._exercises:
            words = _key(exercise.name).split()
            if len(words) > 1:
                self._index.setdefault(acronym(" ".join(words)), (exercise, "abbreviation"))

        logger.info(f"Loaded {len(self._exercises)} exercises ({len(self._index)} index keys)")
        return len(self._exercises)

    def add_synonym(self, phrase: str, exercise_name: str) -> bool:
        """Teach a new spoken alias. Returns False if the exercise is not loaded."""
        key, canonical = _key(phrase), _key(exercise_name)
        self._synonyms[key] = canonical
        exercise = self._names.get(canonical)
        if exercise is None:
            return False
        if key not in self._names:
            self._index[key] = (exercise, "synonym")
        return True

    @property
    def exercises(self) -> list[Exercise]:
        return list(self._exercises)

    def match_exercise(self, query: str | None) -> ExerciseMatch | None:
        """
        Resolve a spoken phrase to a catalogue entry.

        Order: exact name / synonym / abbreviation lookup, then whole-word
        containment inside a name ("bench press" in "barbell bench press"),
        then normalized edit-distance similarity above the fuzzy threshold.
        """
        q = _clean_phrase(_key(query)) if query else None
        if not q or not self._exercises:
            return None

        hit = self._index.get(q) or self._index.get(compact(q))
        if hit:
            return ExerciseMatch(exercise=hit[0], score=1.0, method=hit[1])

        threshold = self.fuzzy_match_threshold
        if len(q) >= 3:
            best: ExerciseMatch | None = None
            for name, exercise in self._names.items():
                if contains_phrase(name, q):
                    score = threshold + (1 - threshold) * len(q) / len(name)
                    if best is None or score > best.score:
                        best = ExerciseMatch(exercise=exercise, score=round(score, 3), method="partial")
            if best:
                return best

        q_compact = compact(q)
        best_key, best_score = None, 0.0
        for key, (exercise, method) in self._index.items():
            if method == "abbreviation" and len(key) <= 4:
                continue
            longest = max(len(q), len(key))
            if abs(len(q) - len(key)) / longest > 1 - threshold:
                continue
            score = max(similarity(q, key), similarity(q_compact, compact(key)))
            if score >= threshold and score > best_score:
                best_key, best_score = key, score

        if best_key is None:
            return None
        exercise = self._index[best_key][0]
        logger.info(f"Fuzzy matched '{query}' to '{exercise.name}' (score: {best_score:.2f})")
        return ExerciseMatch(exercise=exercise, score=round(best_score, 3), method="fuzzy")

    def find_exercise(self, query: str | None) -> Exercise | None:
        match = self.match_exercise(query)
        return match.exercise if match else None

    def similar_exercises(self, reference: str, exclude: Exercise | None = None) -> list[tuple[Exercise, float]]:
        """Catalogue entries that look or read like `reference`, best first."""
        ref = _key(reference)
        ref_words = set(ref.split()) - STOP_WORDS
        scored = []
        for exercise in self._exercises:
            if exercise is exclude or (exclude is not None and exercise.id == exclude.id):
                continue
            name = _key(exercise.name)
            score = similarity(ref, name)
            shared = ref_words & set(name.split())
            if shared:
                score = max(score, len(shared) / max(len(ref_words), len(name.split())))
            if score >= ALTERNATIVE_SIMILARITY or shared:
                scored.append((exercise, round(score, 3)))
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[: self.max_alternatives]

    # === Templates ===

    def _build_templates(self) -> list[_Template]:
        c = re.compile
        return [
            _Template(
                IntentKind.LOG_SET,
                [
                    # "10 reps at 185" (exercise from context)
                    c(_LEAD + rf"(?P<reps>\d+)\s*(?:{_REPS_WORD})\s+(?:at|with|of|for)\s*"
                      rf"(?P<weight>{_NUM})\s*(?P<unit>{_WEIGHT_UNIT})?" + _TAIL),
                    # "bench press 10 reps at 185 pounds rpe 8 set 3"
                    c(_LEAD + _EXERCISE + rf"\s+(?:for\s+)?(?P<reps>\d+)\s*(?:{_REPS_WORD})\s*"
                      rf"(?:at|with|of|for)?\s*(?P<weight>{_NUM})\s*(?P<unit>{_WEIGHT_UNIT})?" + _TAIL),
                    # "10 reps of squat at 225"
                    c(_LEAD + rf"(?P<reps>\d+)\s*(?:{_REPS_WORD})\s+(?:of\s+)?" + _EXERCISE +
                      rf"\s+(?:at|with|for)?\s*(?P<weight>{_NUM})\s*(?P<unit>{_WEIGHT_UNIT})?" + _TAIL),
                    # "squat 225 pounds for 5 reps"
                    c(_LEAD + _EXERCISE + rf"\s+(?P<weight>{_NUM})\s*(?P<unit>{_WEIGHT_UNIT})\s+"
                      rf"(?:for\s+|x\s*|times\s+)?(?P<reps>\d+)\s*(?:{_REPS_WORD})?" + _TAIL),
                    # "185 pounds for 10"
                    c(_LEAD + rf"(?P<weight>{_NUM})\s*(?P<unit>{_WEIGHT_UNIT})\s+"
                      rf"(?:for\s+|x\s*|times\s+)?(?P<reps>\d+)\s*(?:{_REPS_WORD})?" + _TAIL),
                ],
                self._extract_log_set,
                0.9,
            ),
            _Template(
                IntentKind.EDIT_LAST,
                [
                    c(r"^(?:please\s+)?(?:change|edit|modify|update|correct|fix|make|set)\s+"
                      r"(?:the\s+|my\s+)?(?:last\s+|previous\s+)?(?:set\s+|entry\s+|one\s+)?(?:s\s+)?"
                      r"(?P<field>weight|reps?|repetitions?|rpe)\s+(?:to|is|was|should\s+be)\s*(?P<value>.+)$"),
                    c(r"^(?:the\s+)?(?:last\s+|previous\s+)?(?:set\s+)?(?P<field>weight|reps?|repetitions?|rpe)\s+"
                      r"(?:was|is|should\s+be)\s+(?P<value>.+)$"),
                    c(r"^(?:actually|correction|no)\s+(?:it\s+was\s+|that\s+was\s+|make\s+(?:it|that)\s+)?"
                      rf"(?P<value>{_NUM})\s*(?P<field>{_WEIGHT_UNIT}|reps?|repetitions?)$"),
                    c(r"^(?:actually|correction|no)\s+(?:it\s+was\s+|that\s+was\s+|make\s+(?:it|that)\s+)?"
                      rf"(?P<field>rpe)\s+(?P<value>{_NUM})$"),
                ],
                self._extract_edit_last,
                0.85,
            ),
            _Template(
                IntentKind.UNDO_LAST,
                [
                    c(r"^(?:undo|cancel|delete|remove|scratch|erase)"
                      r"(?:\s+(?:that|it|this|last|previous|the\s+last|my\s+last|the\s+previous))?"
                      r"(?:\s+(?:set|entry|log|one))?$"),
                    c(r"^(?:oops|mistake|wrong)\b"),
                    c(r"^(?:take\s+(?:that|it)\s+back|scratch\s+that|that\s+was\s+(?:wrong|a\s+mistake))$"),
                ],
                lambda m: ({}, 0.0),
                0.9,
            ),
            _Template(
                IntentKind.REST_TIMER,
                [
                    c(r"^(?:start\s+(?:a\s+|the\s+)?|set\s+(?:a\s+|the\s+)?)?(?:rest\s+timer|rest|break|timer)\s+"
                      r"(?:timer\s+)?(?:for\s+)?(?P<duration>.+)$"),
                    c(r"^(?P<duration>.+?)\s+(?:rest|break)(?:\s+timer)?$"),
                ],
                self._extract_rest_timer,
                0.9,
            ),
            _Template(
                IntentKind.START_WORKOUT,
                [
                    c(_LETS + r"(?:start|begin|commence|kick\s+off)(?:ing)?\s+"
                      r"(?:(?:a|my|the|new|our)\s+)*(?:workout|training|session)"
                      r"(?:\s+(?:called|named|for))?(?:\s+(?P<title>.+))?$"),
                    c(r"^(?:workout|training)\s+(?:start|begin|time)$"),
                    c(_LETS + r"(?:start|begin)\s+(?:(?:a|my|the)\s+)?(?P<named>[a-z][a-z0-9\s]*?)"
                      r"(?:\s+(?:workout|session|training))?$"),
                ],
                self._extract_start_workout,
                0.95,
            ),
            _Template(
                IntentKind.EXERCISE_MENTION,
                [
                    c(r"^(?:(?:now|next|then|moving\s+on\s+to|switching\s+to|switch\s+to|going\s+to|doing|"
                      r"let\s+s\s+do|lets\s+do|starting|next\s+up|up\s+next)\s+)*"
                      + _EXERCISE + r"(?:\s+(?:exercise|movement|lift))?(?:\s+(?:now|next))?$"),
                ],
                self._extract_exercise_mention,
                0.5,
            ),
        ]

    # === Extractors ===
    # Each returns (parameters, confidence penalty) or None when the match is unusable.

    def _resolve_phrase(self, phrase: str | None, params: dict) -> float:
        """Fill params['exercise']; returns the confidence penalty."""
        cleaned = _clean_phrase(phrase)
        if not cleaned:
            params["exercise"] = None
            return 0.0
        match = self.match_exercise(cleaned)
        if match is None:
            params["exercise"] = None
            params["exercise_phrase"] = cleaned
            return 0.3
        params["exercise"] = match.exercise
        params["match_method"] = match.method
        return (1 - match.score) * 0.5

    def _extract_log_set(self, m: re.Match) -> tuple[dict, float] | None:
        groups = m.groupdict()
        reps = int(float(groups["reps"]))
        weight = float(groups["weight"])
        if reps <= 0 or weight < 0:
            return None

        params: dict = {}
        penalty = self._resolve_phrase(groups.get("exercise"), params)
        params["reps"] = reps
        params["weight"] = int(weight) if weight.is_integer() else weight
        params["unit"] = normalize_weight_unit(groups["unit"]) if groups.get("unit") else "lbs"

        tail = (groups.get("tail") or "").strip()
        rpe = parse_rpe(tail) if tail else None
        params["rpe"] = rpe["rpe"] if rpe else None
        params["set_index"] = _set_index(tail) if tail else None
        return params, penalty

    def _extract_edit_last(self, m: re.Match) -> tuple[dict, float] | None:
        raw_field = m.group("field")
        value_text = m.group("value").strip()

        if raw_field == "rpe":
            rpe = parse_rpe(f"rpe {value_text}")
            if rpe is None:
                return None
            return {"field": "rpe", "value": rpe["rpe"]}, 0.0

        if raw_field.startswith("rep") or raw_field == "times":
            reps = _first_number(value_text)
            if reps is None or reps <= 0 or not float(reps).is_integer():
                return None
            return {"field": "reps", "value": int(reps)}, 0.0

        # weight, or a weight unit spoken after the value ("actually 200 pounds")
        if raw_field != "weight":
            return {"field": "weight", "value": float(value_text) if "." in value_text else int(value_text),
                    "unit": normalize_weight_unit(raw_field)}, 0.0
        weight = parse_weight(value_text)
        if weight:
            return {"field": "weight", "value": weight["weight"], "unit": weight["unit"]}, 0.0
        number = _first_number(value_text)
        if number is None or number < 0:
            return None
        return {"field": "weight", "value": number, "unit": "lbs"}, 0.0

    def _extract_rest_timer(self, m: re.Match) -> tuple[dict, float] | None:
        duration = m.group("duration").strip()
        parsed = parse_time(duration)
        if parsed:
            seconds = parsed["seconds"]
            params = {"original_duration": parsed["duration"], "original_unit": parsed["unit"]}
        elif is_numeric(duration):
            seconds = float(duration)
            params = {"original_duration": seconds, "original_unit": "seconds"}
        else:
            return None
        if seconds <= 0:
            return None
        params["seconds"] = int(round(seconds))
        return params, 0.0

    def _extract_start_workout(self, m: re.Match) -> tuple[dict, float] | None:
        groups = m.groupdict()
        named = groups.get("named")
        title = _clean_phrase(groups.get("title") or named)
        if title:
            title = re.sub(r"\s+(?:workout|session|training)$", "", title).strip() or None
        if title and _TITLE_REJECT.search(title):
            return None
        # "start bench press" is an exercise, not a workout title
        if title and named:
            match = self.match_exercise(title)
            if match and match.method in ("exact", "synonym", "abbreviation"):
                return None
        return {"title": title}, 0.0

    def _extract_exercise_mention(self, m: re.Match) -> tuple[dict, float] | None:
        params: dict = {}
        phrase = _clean_phrase(m.group("exercise"))
        if not phrase:
            return None
        penalty = self._resolve_phrase(phrase, params)
        if params["exercise"] is None:
            return None
        return params, penalty

    # === Parsing ===

    def parse_intent(self, utterance: str | None, context: ParseContext | None = None) -> Intent:
        """Interpret one utterance. Never raises for unrecognised input."""
        context = context or ParseContext()
        normalized = normalize_text(utterance or "")
        # periods survive normalization only as decimal points
        normalized = re.sub(r"(?<!\d)\.|\.(?!\d)", " ", normalized)
        text = replace_number_words(" ".join(normalized.split()))
        tokens = tuple(tokenize(text))

        intent = None
        if text:
            intent = self._match_templates(text, tokens)
        if intent is None:
            intent = self._unknown(text, tokens)
        else:
            intent = self._enrich(intent, context)

        self._parsed += 1
        self._by_kind[intent.kind.value] += 1
        if intent.needs_confirmation:
            self._confirmations += 1
        logger.debug(f"Parsed '{utterance}' -> {intent.kind.value} ({intent.confidence:.2f})")
        return intent

    def _match_templates(self, text: str, tokens: tuple[str, ...]) -> Intent | None:
        for template in self._templates:
            for pattern in template.patterns:
                m = pattern.match(text)
                if not m:
                    continue
                extracted = template.extractor(m)
                if extracted is None:
                    continue
                params, penalty = extracted
                return Intent(
                    kind=template.kind,
                    confidence=max(0.0, template.confidence - penalty),
                    parameters=params,
                    utterance=text,
                    tokens=tokens,
                )
        return None

    def _enrich(self, intent: Intent, context: ParseContext) -> Intent:
        params = dict(intent.parameters)
        confidence = intent.confidence

        if intent.kind is IntentKind.LOG_SET and params.get("exercise") is None:
            if context.last_exercise is not None and not params.get("exercise_phrase"):
                params["exercise"] = context.last_exercise
                params["exercise_inferred"] = True
            elif "exercise_phrase" not in params:
                # no exercise spoken and none to infer
                confidence -= 0.3

        if context.in_workout and intent.kind in _WORKOUT_SCOPED:
            confidence += WORKOUT_CONFIDENCE_BOOST

        confidence = round(min(1.0, max(0.0, confidence)), 3)
        needs_confirmation = confidence < self.confidence_threshold
        alternatives: tuple[dict, ...] = ()
        if needs_confirmation:
            alternatives = self._alternatives_for(params)

        return replace(
            intent,
            parameters=params,
            confidence=confidence,
            needs_confirmation=needs_confirmation,
            alternatives=alternatives,
        )

    def _alternatives_for(self, params: dict) -> tuple[dict, ...]:
        exercise = params.get("exercise")
        reference = exercise.name if exercise else params.get("exercise_phrase")
        if not reference:
            return ()
        return tuple(
            {"exercise": ex, "score": score, "description": f"Did you mean {ex.name}?"}
            for ex, score in self.similar_exercises(reference, exclude=exercise)
        )

    def _unknown(self, text: str, tokens: tuple[str, ...]) -> Intent:
        suggestions: list[dict] = []
        seen: set[str] = set()
        for token in tokens:
            if token in STOP_WORDS or len(token) <= 2 or is_numeric(token):
                continue
            match = self.match_exercise(token)
            if match is None or match.exercise.id in seen:
                continue
            seen.add(match.exercise.id)
            suggestions.append({
                "exercise": match.exercise,
                "score": match.score,
                "description": f"Did you mean to log {match.exercise.name}?",
            })
            if len(suggestions) >= self.max_alternatives:
                break

        return Intent(
            kind=IntentKind.UNKNOWN,
            confidence=0.0,
            parameters={},
            utterance=text,
            tokens=tokens,
            needs_confirmation=False,
            alternatives=tuple(suggestions),
        )

    def get_stats(self) -> dict:
        return {
            "exercises": len(self._exercises),
            "index_keys": len(self._index),
            "synonyms": len(self._synonyms),
            "parsed": self._parsed,
            "by_kind": dict(self._by_kind),
            "needs_confirmation": self._confirmations,
            "confidence_threshold": self.confidence_threshold,
            "fuzzy_match_threshold": self.fuzzy_match_threshold,
        }
