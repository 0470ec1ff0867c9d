"""
Line Tokenizer - Turns OCR output into ordered receipt line tokens

Two input shapes:
1. Joined text: split on newlines, trim, drop empties
2. Positioned fragments: group fragments sharing a horizontal band into one
   line (left-to-right), order bands top-to-bottom

OCR engines often report each word or price column as its own fragment, so
mode 2 is what rebuilds "GREAT VALUE MILK    3.99" as one physical line.
"""
from typing import Iterable, List, Sequence, Union

import structlog

from receipt_validator.parsers.ocr.base import OcrResult, TextObservation

logger = structlog.get_logger()

# Fragments are on the same line when their centers are closer than this
# fraction of the shorter fragment's height
SAME_LINE_HEIGHT_RATIO = 0.5

TokenSource = Union[str, OcrResult, Sequence[TextObservation], Sequence[str]]


def tokenize_text(text: str) -> List[str]:
    """Split joined OCR text into trimmed, non-empty lines"""
    return [line.strip() for line in text.splitlines() if line.strip()]


def tokenize_observations(observations: Iterable[TextObservation]) -> List[str]:
    """
    Rebuild physical receipt lines from positioned fragments.

    Args:
        observations: Fragments in any order

    Returns:
        One token per physical line, top-to-bottom
    """
    fragments = [obs for obs in observations if obs.text.strip()]
    if not fragments:
        return []

    # Top of image first; ties resolved left-to-right so output is stable
    fragments.sort(key=lambda obs: (-obs.bounding_box.mid_y, obs.bounding_box.min_x))

    lines: List[str] = []
    current: List[TextObservation] = [fragments[0]]

    for fragment in fragments[1:]:
        previous = current[-1]
        threshold = SAME_LINE_HEIGHT_RATIO * min(
            previous.bounding_box.height, fragment.bounding_box.height
        )
        if abs(fragment.bounding_box.mid_y - previous.bounding_box.mid_y) < threshold:
            current.append(fragment)
        else:
            lines.append(_join_line(current))
            current = [fragment]

    lines.append(_join_line(current))

    logger.debug("observations_tokenized", fragments=len(fragments), lines=len(lines))
    return lines


def _join_line(group: List[TextObservation]) -> str:
    ordered = sorted(group, key=lambda obs: obs.bounding_box.min_x)
    return " ".join(obs.text.strip() for obs in ordered)


def tokenize(source: TokenSource) -> List[str]:
    """
    Tokenize any supported OCR output shape.

    Accepts joined text, an OcrResult (fragments preferred over text),
    a list of TextObservation, or an already tokenized list of strings.
    """
    if isinstance(source, str):
        return tokenize_text(source)

    if isinstance(source, OcrResult):
        if source.observations:
            return tokenize_observations(source.observations)
        return tokenize_text(source.text)

    items = list(source)
    if items and all(isinstance(item, TextObservation) for item in items):
        return tokenize_observations(items)

    return [str(item).strip() for item in items if str(item).strip()]
