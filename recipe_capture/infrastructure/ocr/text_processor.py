"""
Clean-up of raw OCR text before it reaches recipe validation and parsing.

Tesseract output of a recipe card tends to carry stray whitespace, digits
read in place of letters ("f10ur") and inconsistent list markers. The
repairs are narrow: quantities such as "1/2" or "2.5"
and punctuation inside ingredient lines are left alone.
"""

import re

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.result import Result

# Digits commonly read in place of letters when sandwiched between letters.
_DIGIT_FOR_LETTER = {"0": "o", "1": "l", "5": "s", "8": "B"}
_DIGIT_BETWEEN_LETTERS = re.compile(r"(?<=[A-Za-z])([0158])(?=[A-Za-z])")

_KNOWN_MISREADS = {
    "1ngred1ents": "ingredients",
    "1ngredlents": "ingredients",
    "f10ur": "flour",
    "Ch0c0late": "Chocolate",
    "Choc0late": "Chocolate",
    "C00k1es": "Cookies",
    "C00kles": "Cookies",
}

_SECTION_HEADER = re.compile(
    r"^(ingredients?|directions?|instructions?|method|preparation)[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_BULLET = re.compile(r"^[ \t]*[-•*·][ \t]*", re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*(\d+)[.)][ \t]*", re.MULTILINE)
_NUMBER_UNIT = re.compile(
    r"(\d)(tbsp|tsp|cups?|tablespoons?|teaspoons?|oz|g|kg|ml|l|lbs?|mins?|minutes?|hrs?|hours?)\b",
    re.IGNORECASE,
)


def normalize_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" ?\n ?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def fix_common_ocr_errors(text: str) -> str:
    for wrong, right in _KNOWN_MISREADS.items():
        text = text.replace(wrong, right)
    return _DIGIT_BETWEEN_LETTERS.sub(lambda m: _DIGIT_FOR_LETTER[m.group(1)], text)


def improve_structure(text: str) -> str:
    text = _SECTION_HEADER.sub(lambda m: f"{m.group(1).upper()}:", text)
    text = _NUMBER_UNIT.sub(r"\1 \2", text)
    text = _BULLET.sub("- ", text)
    return _NUMBERED.sub(r"\1. ", text)


def remove_noise(text: str) -> str:
    text = re.sub(r"\.{4,}", "...", text)
    text = re.sub(r"!{2,}", "!", text)
    text = re.sub(r"\?{2,}", "?", text)
    # Single stray characters on their own line are scanner noise.
    lines = [line for line in text.split("\n") if len(line.strip()) != 1 or line.strip().isdigit()]
    return "\n".join(lines)


def process_text(raw_text: str) -> Result[str]:
    """Runs every clean-up pass over ``raw_text``."""
    if not raw_text or not raw_text.strip():
        return Result.failure("No text to process", ErrorKind.NO_TEXT_EXTRACTED)

    text = normalize_whitespace(raw_text)
    text = fix_common_ocr_errors(text)
    text = improve_structure(text)
    text = remove_noise(text)
    return Result.success(text.strip())


def estimate_structure_confidence(text: str) -> float:
    """
    Scores how recipe-shaped a block of text looks, in [0, 1].

    Long lines, many lines, section headers and measured quantities each
    raise the score from a 0.5 baseline.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return 0.0

    confidence = 0.5
    average_length = sum(len(line) for line in lines) / len(lines)
    if average_length > 20:
        confidence += 0.1
    if len(lines) > 5:
        confidence += 0.1
    lowered = text.lower()
    if "ingredient" in lowered or "direction" in lowered or "instruction" in lowered:
        confidence += 0.2
    if re.search(r"\d+\s*(cups?|tbsp|tsp|tablespoons?|teaspoons?)\b", text, re.IGNORECASE):
        confidence += 0.1
    return min(confidence, 1.0)
