"""
OCR Package

Collaborator-facing types for OCR output. Recognition itself is done outside
this package; the parser only consumes OcrResult / TextObservation values.

    from receipt_validator.parsers.ocr import OcrResult, TextObservation, BoundingBox

    result = OcrResult(observations=[
        TextObservation("MILK", BoundingBox(min_x=0.1, mid_y=0.8, height=0.02)),
        TextObservation("3.99", BoundingBox(min_x=0.7, mid_y=0.8, height=0.02)),
    ])
"""
from receipt_validator.parsers.ocr.base import (
    BoundingBox,
    OcrProvider,
    OcrResult,
    TextObservation,
)

__all__ = [
    "BoundingBox",
    "OcrProvider",
    "OcrResult",
    "TextObservation",
]
