"""
OCR Collaborator Interface

OCR itself happens outside this package (on-device recognition, Textract, ...).
These types describe what an OCR collaborator hands to the tokenizer:
either joined multi-line text or positioned text fragments.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol


@dataclass(frozen=True)
class BoundingBox:
    """
    Normalized fragment geometry with a bottom-left origin.

    Attributes:
        min_x: Left edge (0.0 = left of image)
        mid_y: Vertical center (1.0 = top of image)
        height: Fragment height
    """
    min_x: float
    mid_y: float
    height: float

    def __post_init__(self) -> None:
        """Validate height is usable for line grouping"""
        if self.height < 0:
            raise ValueError(f"Height must be non-negative, got {self.height}")


@dataclass(frozen=True)
class TextObservation:
    """A single recognized text fragment and where it sits on the image"""
    text: str
    bounding_box: BoundingBox
    confidence: float = 1.0

    @classmethod
    def from_top_left_box(
        cls,
        text: str,
        left: float,
        top: float,
        width: float,
        height: float,
        confidence: float = 1.0,
    ) -> "TextObservation":
        """
        Build an observation from a top-left-origin box (Textract style).

        Textract reports `top` growing downward; flip it so larger mid_y
        still means higher on the receipt.
        """
        mid_y = 1.0 - (top + height / 2)
        return cls(
            text=text,
            bounding_box=BoundingBox(min_x=left, mid_y=mid_y, height=height),
            confidence=confidence,
        )


@dataclass
class OcrResult:
    """
    Result handed over by the OCR collaborator.

    Attributes:
        text: Joined text, newline separated
        observations: Positioned fragments, in no guaranteed order
        method: Name of OCR method used (vision, textract, ...)
    """
    text: str = ""
    observations: List[TextObservation] = field(default_factory=list)
    method: str = "unknown"


class OcrProvider(Protocol):
    """
    Protocol for OCR collaborators.

    Anything that turns a receipt image into an OcrResult can feed the parser.
    """

    async def extract(self, image_path: Path) -> OcrResult:
        """
        Recognize text in a receipt image.

        Args:
            image_path: Path to the captured image

        Returns:
            OcrResult with text and/or positioned fragments
        """
        ...
