"""
Intermediate document tree produced by the builder and consumed by the serializer.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

LEFT = "left"
CENTER = "center"


@dataclass(frozen=True)
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False
    color: Optional[str] = None
    size: Optional[float] = None  # points


@dataclass(frozen=True)
class Heading:
    level: int  # 0 is the document title
    text: str
    alignment: str = LEFT


@dataclass(frozen=True)
class Paragraph:
    runs: List[TextRun] = field(default_factory=list)
    alignment: str = LEFT
    space_after: Optional[float] = None  # points

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class ImageBlock:
    data: bytes = field(repr=False)
    width_px: int
    height_px: int
    caption: str = ""


@dataclass(frozen=True)
class Separator:
    pass


Block = Union[Heading, Paragraph, ImageBlock, Separator]
