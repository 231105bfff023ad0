"""
Spoken number and unit parsing.
Turns "one hundred eighty five pounds" into 185 lbs and "three minutes" into 180 s.

Everything here is pure: unparsable input gives None, never an exception.
"""

from __future__ import annotations

import re

from constants import (
    WEIGHT_UNITS,
    TIME_UNITS,
    DISTANCE_UNITS,
    RPE_MIN,
    RPE_MAX,
)

ONES = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9,
}
TEENS = {
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
}
TENS = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50, "sixty": 60,
    "seventy": 70, "eighty": 80, "ninety": 90,
}
SCALES = {"thousand": 1000, "million": 1000000}
ORDINALS = {
    "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5,
    "sixth": 6, "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10,
}
EXTRAS = {"dozen": 12}

CARDINAL_WORDS = {**ONES, **TEENS, **TENS, "hundred": 100, **SCALES}

_NUMERIC = re.compile(r"^-?\d+(?:\.\d+)?$")
_NUMERIC_ANYWHERE = re.compile(r"\d+(?:\.\d+)?")

_WEIGHT_UNIT_RE = r"kilograms?|kilos?|kgs?|pounds?|lbs?|stones?|ounces?|oz"
_TIME_UNIT_RE = r"seconds?|secs?|minutes?|mins?|hours?|hrs?"

_KG_NAMES = {"kg", "kgs", "kilo", "kilos", "kilogram", "kilograms"}
_STONE_NAMES = {"stone", "stones"}
_OZ_NAMES = {"oz", "ounce", "ounces"}
_MINUTE_NAMES = {"min", "mins", "minute", "minutes"}
_HOUR_NAMES = {"hr", "hrs", "hour", "hours"}


def _as_number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def _unit_key(unit: str) -> str:
    return re.sub(r"[^a-z]", "", unit.lower())


def _split_words(text: str) -> list[str]:
    words = []
    for raw in text.lower().split():
        for part in raw.split("-"):
            word = re.sub(r"[^a-z0-9.]", "", part)
            if word:
                words.append(word)
    return words


def parse_number(text: str | None) -> int | float | None:
    """
    Parse a numeral ("185", "45.5") or English cardinal words
    ("two hundred fifty", "twenty-one", "eight point five").

    Ones/teens/tens accumulate, "hundred" multiplies the running group,
    "thousand"/"million" multiply and flush it. A ones word directly followed
    by a tens or teens word is read the way lifters say weights:
    "one fifty" -> 150, "two twenty five" -> 225.
    Unknown words are skipped; if no number word is found the result is None.
    """
    if not text:
        return None

    clean = text.lower().strip()
    if _NUMERIC.match(clean):
        return _as_number(float(clean))

    words = _split_words(clean)
    # "a minute", "an hour"
    if words in (["a"], ["an"]):
        return 1
    total = 0
    current = 0
    seen = False
    last = None            # kind of the previous number word
    group_start = True     # True when `current` was empty before the last ones word
    decimals: list[int] | None = None
    i = 0

    while i < len(words):
        word = words[i]

        if decimals is not None:
            if word in ONES:
                decimals.append(ONES[word])
            elif word.isdigit():
                decimals.extend(int(c) for c in word)
            i += 1
            continue

        if word in ("a", "an") and i + 1 < len(words) and words[i + 1] == "half":
            current += 0.5
            seen = True
            i += 2
            continue

        if word in ("a", "an") and i + 1 < len(words) and words[i + 1] in ("hundred", "thousand", "dozen"):
            word = "one"

        if word.isdigit():
            current += int(word)
            seen, last = True, "digits"
        elif word in ONES:
            group_start = current == 0
            current += ONES[word]
            seen, last = True, "ones"
        elif word in TEENS or word in TENS:
            value = TEENS.get(word) or TENS[word]
            if last == "ones" and group_start and 0 < current < 10:
                current = current * 100 + value
            else:
                current += value
            seen, last = True, "tens"
        elif word == "hundred":
            current = (current or 1) * 100
            seen, last = True, "hundred"
        elif word in SCALES:
            total += (current or 1) * SCALES[word]
            current = 0
            seen, last = True, "scale"
        elif word in EXTRAS:
            current = (current or 1) * EXTRAS[word]
            seen, last = True, "extra"
        elif word in ORDINALS and not seen:
            current += ORDINALS[word]
            seen, last = True, "ordinal"
        elif word == "point" and seen:
            decimals = []
        # anything else ("and", filler) is ignored
        i += 1

    if not seen:
        return None

    value = total + current
    if decimals:
        value = float(f"{int(value)}." + "".join(str(d) for d in decimals))
    return _as_number(value)


def number_to_words(num: int) -> str:
    """Inverse of parse_number for whole numbers 0..999,999."""
    num = int(num)
    if num < 0:
        return "minus " + number_to_words(-num)
    if num == 0:
        return "zero"

    ones = ["", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine"]
    teens = ["ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
             "sixteen", "seventeen", "eighteen", "nineteen"]
    tens = ["", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety"]

    if num < 10:
        return ones[num]
    if num < 20:
        return teens[num - 10]
    if num < 100:
        return tens[num // 10] + (" " + ones[num % 10] if num % 10 else "")
    if num < 1000:
        rest = num % 100
        return ones[num // 100] + " hundred" + (" " + number_to_words(rest) if rest else "")
    if num < 1000000:
        rest = num % 1000
        return number_to_words(num // 1000) + " thousand" + (" " + number_to_words(rest) if rest else "")
    return str(num)


def _is_number_word(word: str) -> bool:
    parts = word.split("-")
    return all(p in CARDINAL_WORDS for p in parts)


def replace_number_words(text: str) -> str:
    """
    Rewrite each run of cardinal words as digits:
    "ten reps at one eighty five pounds" -> "10 reps at 185 pounds".
    "and"/"point" are kept inside a run only when a number word follows.
    """
    tokens = text.split()
    out: list[str] = []
    i = 0
    while i < len(tokens):
        if not _is_number_word(tokens[i]):
            out.append(tokens[i])
            i += 1
            continue

        j = i
        run: list[str] = []
        while j < len(tokens):
            tok = tokens[j]
            if _is_number_word(tok):
                run.append(tok)
                j += 1
            elif tok in ("and", "point") and j + 1 < len(tokens) and _is_number_word(tokens[j + 1]):
                run.append(tok)
                j += 1
            else:
                break

        value = parse_number(" ".join(run))
        out.append(str(value) if value is not None else " ".join(run))
        i = j
    return " ".join(out)


def _trailing_number_phrase(text: str) -> str:
    """The number words (or numeral) directly preceding a unit word."""
    tokens = text.split()
    phrase: list[str] = []
    for tok in reversed(tokens):
        if _is_number_word(tok) or tok in ("and", "point", "a", "an", "half") or _NUMERIC.match(tok):
            phrase.insert(0, tok)
        else:
            break
    while phrase and phrase[0] in ("and", "point", "half"):
        phrase.pop(0)
    return " ".join(phrase)


def _parse_quantity(text: str, unit_pattern: str) -> tuple[int | float, str] | None:
    clean = text.lower().strip()

    m = re.search(rf"(\d+(?:\.\d+)?)\s*({unit_pattern})\b", clean)
    if m:
        return _as_number(float(m.group(1))), m.group(2)

    for m in re.finditer(rf"\b({unit_pattern})\b", clean):
        phrase = _trailing_number_phrase(clean[:m.start()])
        value = parse_number(phrase) if phrase else None
        if value is not None:
            return value, m.group(1)
    return None


def normalize_weight_unit(unit: str) -> str:
    key = _unit_key(unit)
    if key in _KG_NAMES:
        return "kg"
    if key in _STONE_NAMES:
        return "stone"
    if key in _OZ_NAMES:
        return "oz"
    return "lbs"


def normalize_time_unit(unit: str) -> str:
    key = _unit_key(unit)
    if key in _MINUTE_NAMES:
        return "minutes"
    if key in _HOUR_NAMES:
        return "hours"
    return "seconds"


def parse_weight(text: str | None) -> dict | None:
    """'185 pounds' -> {'weight': 185, 'unit': 'lbs'}; 'eighty kilos' -> 80 kg."""
    if not text:
        return None
    found = _parse_quantity(text, _WEIGHT_UNIT_RE)
    if not found:
        return None
    weight, unit = found
    return {
        "weight": weight,
        "unit": normalize_weight_unit(unit),
        "original_text": text,
    }


def parse_time(text: str | None) -> dict | None:
    """'three minutes' -> {'duration': 3, 'unit': 'minutes', 'seconds': 180}."""
    if not text:
        return None
    found = _parse_quantity(text, _TIME_UNIT_RE)
    if not found:
        return None
    duration, unit = found
    return {
        "duration": duration,
        "unit": normalize_time_unit(unit),
        "seconds": convert_time(duration, unit, "seconds"),
        "original_text": text,
    }


_RPE_PATTERNS = [
    re.compile(r"rpe\s*(\d+(?:\.\d+)?)"),
    re.compile(r"rpe\s+([a-z][a-z\s\-]*)"),
    re.compile(r"(\d+(?:\.\d+)?)\s*rpe"),
    re.compile(r"([a-z][a-z\s\-]*?)\s+rpe"),
    re.compile(r"\bat\s*(\d+(?:\.\d+)?)"),
    re.compile(r"\brated?\s*(\d+(?:\.\d+)?)"),
]


def parse_rpe(text: str | None) -> dict | None:
    """'RPE 8', 'rpe nine', 'at 7', 'rated 6.5'. Values outside 1-10 are rejected."""
    if not text:
        return None
    clean = text.lower().strip()

    for pattern in _RPE_PATTERNS:
        m = pattern.search(clean)
        if not m:
            continue
        part = m.group(1).strip()
        if not _NUMERIC.match(part):
            # keep only the number words next to "rpe"
            words = part.split()
            if pattern.pattern.startswith("rpe"):
                lead = []
                for w in words:
                    if not _is_number_word(w) and w != "point":
                        break
                    lead.append(w)
                part = " ".join(lead)
            else:
                part = _trailing_number_phrase(part)
        rpe = parse_number(part) if part else None
        if rpe is not None and RPE_MIN <= rpe <= RPE_MAX:
            return {"rpe": rpe, "original_text": text}
    return None


def _convert(value: float, from_unit: str, to_unit: str, table: dict) -> int | float | None:
    source = table.get(_unit_key(from_unit))
    target = table.get(_unit_key(to_unit))
    if source is None or target is None:
        return None
    return _as_number(value * source / target)


def convert_weight(value: float, from_unit: str, to_unit: str = "lbs") -> int | float | None:
    return _convert(value, from_unit, to_unit, WEIGHT_UNITS)


def convert_time(value: float, from_unit: str, to_unit: str = "seconds") -> int | float | None:
    return _convert(value, from_unit, to_unit, TIME_UNITS)


def convert_distance(value: float, from_unit: str, to_unit: str = "m") -> int | float | None:
    return _convert(value, from_unit, to_unit, DISTANCE_UNITS)


def extract_all_numbers(text: str) -> list[int | float]:
    """Numerals first, then standalone number words, in order of appearance within each group."""
    if not text:
        return []
    numbers = [_as_number(float(n)) for n in _NUMERIC_ANYWHERE.findall(text)]
    for word in _split_words(text):
        if word in CARDINAL_WORDS and word not in ("hundred",) and word not in SCALES:
            numbers.append(CARDINAL_WORDS[word])
    return numbers


def contains_number(text: str) -> bool:
    if not text:
        return False
    if re.search(r"\d", text):
        return True
    return any(word in CARDINAL_WORDS for word in _split_words(text))


def supported_units(kind: str) -> list[str]:
    tables = {"weight": WEIGHT_UNITS, "time": TIME_UNITS, "distance": DISTANCE_UNITS}
    return list(tables.get(kind, {}))
