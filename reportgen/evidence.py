"""
Proof-of-concept images attached to vulnerabilities.

Images are associated with a vulnerability by exact string match on its name. A rename
or a case change in the sheet orphans the image; orphaned images are never rendered.
"""

import asyncio
import base64
import binascii
import io
import re
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .errors import ItemError


DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]+)*?),(?P<payload>.*)$", re.DOTALL)

# Formats python-docx can embed as they are; anything else is converted to PNG
EMBEDDABLE_FORMATS = {"PNG", "JPEG", "GIF", "BMP", "TIFF"}


@dataclass(frozen=True)
class EvidenceImage:
    id: str
    data: Union[bytes, str]  # raw bytes, or a data: URL from a clipboard paste
    vulnerability_name: str

    @classmethod
    def from_upload(cls, filename: str, content: bytes, vulnerability_name: str) -> "EvidenceImage":
        return cls(
            id=f"{int(time.time() * 1000)}-{filename}",
            data=content,
            vulnerability_name=vulnerability_name,
        )

    @classmethod
    def from_data_url(cls, data_url: str, vulnerability_name: str, index: int = 0) -> "EvidenceImage":
        return cls(
            id=f"{int(time.time() * 1000)}-pasted-{index}",
            data=data_url,
            vulnerability_name=vulnerability_name,
        )


def images_for(vulnerability_name: str, images: Sequence[EvidenceImage]) -> List[EvidenceImage]:
    return [image for image in images if image.vulnerability_name == vulnerability_name]


class EvidenceCollection:
    """Images gathered while paging through vulnerabilities, kept in attachment order."""

    def __init__(self, images: Optional[Sequence[EvidenceImage]] = None):
        self._images: List[EvidenceImage] = []
        self._final: Optional[Tuple[EvidenceImage, ...]] = None
        for image in images or []:
            self.add(image)

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self):
        return iter(self._images)

    @property
    def finalized(self) -> bool:
        return self._final is not None

    def _check_open(self):
        if self._final is not None:
            raise RuntimeError("Evidence collection is already finalized")

    def add(self, image: EvidenceImage) -> EvidenceImage:
        self._check_open()
        if any(existing.id == image.id for existing in self._images):
            # Two attachments in the same millisecond with the same name
            image = EvidenceImage(
                id=f"{image.id}-{len(self._images)}",
                data=image.data,
                vulnerability_name=image.vulnerability_name,
            )
        self._images.append(image)
        return image

    def remove(self, image_id: str) -> bool:
        self._check_open()
        before = len(self._images)
        self._images = [image for image in self._images if image.id != image_id]
        return len(self._images) != before

    def images_for(self, vulnerability_name: str) -> List[EvidenceImage]:
        return images_for(vulnerability_name, self._images)

    def finalize(self) -> Tuple[EvidenceImage, ...]:
        if self._final is None:
            self._final = tuple(self._images)
        return self._final


def decode_data_url(data_url: str) -> bytes:
    match = DATA_URL_RE.match(data_url.strip())
    if not match:
        raise ValueError("Not a data URL")
    payload = match.group("payload")
    if ";base64" in (match.group("params") or ""):
        return base64.b64decode(payload, validate=True)
    return payload.encode("latin-1")


def decode_image(image: EvidenceImage) -> bytes:
    """
    Resolve the image payload to bytes python-docx can embed.

    Raises ItemError when the payload is not a readable image.
    """
    try:
        raw = decode_data_url(image.data) if isinstance(image.data, str) else bytes(image.data)
    except (ValueError, binascii.Error) as e:
        raise ItemError(f"Could not decode image data: {e}", image_id=image.id) from e
    if not raw:
        raise ItemError("Image is empty", image_id=image.id)

    try:
        with Image.open(io.BytesIO(raw)) as probe:
            probe.verify()
        with Image.open(io.BytesIO(raw)) as img:
            if img.format in EMBEDDABLE_FORMATS:
                return raw
            if img.mode not in ("RGB", "RGBA", "L", "P"):
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ItemError(f"Could not read image: {e}", image_id=image.id) from e


async def load_image(image: EvidenceImage) -> bytes:
    """Decode one image off the event loop; one awaited step per image."""
    return await asyncio.to_thread(decode_image, image)
