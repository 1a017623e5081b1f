"""
Write a block list out as a .docx document with python-docx.

When a template is supplied it is rendered with docxtpl first and the report body is
appended after the template's own content.
"""

import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.shared import Emu, Inches, Mm, Pt, RGBColor
from docxtpl import DocxTemplate

from .blocks import CENTER, Block, Heading, ImageBlock, Paragraph, Separator, TextRun
from .colors import RED

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# python-docx works in EMU; 9525 EMU is one pixel at 96 DPI
EMU_PER_PX = 9525
SEPARATOR_TEXT = "─" * 80

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
}


@dataclass(frozen=True)
class DocumentStyle:
    font_name: str = "Times New Roman"
    font_size: float = 12
    page_width_mm: float = 210
    page_height_mm: float = 297
    margin_inches: float = 1.0


def _apply_style(doc, style: DocumentStyle):
    normal = doc.styles["Normal"]
    normal.font.name = style.font_name
    normal.font.size = Pt(style.font_size)
    # Only one section; everything goes in it
    section = doc.sections[0]
    section.page_width = Mm(style.page_width_mm)
    section.page_height = Mm(style.page_height_mm)
    for side in ("left_margin", "right_margin", "top_margin", "bottom_margin"):
        setattr(section, side, Inches(style.margin_inches))


def _add_run(paragraph, run_block: TextRun):
    run = paragraph.add_run(run_block.text)
    run.bold = run_block.bold or None
    run.italic = run_block.italic or None
    if run_block.size:
        run.font.size = Pt(run_block.size)
    if run_block.color:
        run.font.color.rgb = RGBColor.from_string(run_block.color)
    return run


def _write_heading(doc, block: Heading):
    style_name = "Title" if block.level == 0 else f"Heading {min(block.level, 9)}"
    try:
        paragraph = doc.add_paragraph(style=doc.styles[style_name])
        paragraph.add_run(block.text)
    except KeyError:
        # Template without built-in heading styles
        paragraph = doc.add_paragraph()
        run = paragraph.add_run(block.text)
        run.bold = True
        run.font.size = Pt(max(20 - 2 * block.level, 12))
    paragraph.alignment = ALIGNMENTS.get(block.alignment, WD_ALIGN_PARAGRAPH.LEFT)


def _write_paragraph(doc, block: Paragraph):
    paragraph = doc.add_paragraph()
    paragraph.alignment = ALIGNMENTS.get(block.alignment, WD_ALIGN_PARAGRAPH.LEFT)
    if block.space_after is not None:
        paragraph.paragraph_format.space_after = Pt(block.space_after)
    for run_block in block.runs:
        _add_run(paragraph, run_block)


def _write_image(doc, block: ImageBlock):
    paragraph = doc.add_paragraph()
    try:
        paragraph.add_run().add_picture(
            io.BytesIO(block.data),
            width=Emu(block.width_px * EMU_PER_PX),
            height=Emu(block.height_px * EMU_PER_PX),
        )
    except UnrecognizedImageError as e:
        logger.warning(f"Could not embed image for '{block.caption}': {e}")
        _add_run(paragraph, TextRun("Error: Failed to include image", color=RED, size=10))
        return
    if block.caption:
        caption = doc.add_paragraph()
        _add_run(caption, TextRun(block.caption, italic=True, size=10))


def _write_separator(doc):
    paragraph = doc.add_paragraph()
    paragraph.alignment = ALIGNMENTS[CENTER]
    _add_run(paragraph, TextRun(SEPARATOR_TEXT, size=10))


def render_template(template: bytes, context: Dict[str, Any]):
    """Fill the template's placeholders and reopen the result as a python-docx document."""
    tpl = DocxTemplate(io.BytesIO(template))
    tpl.render(context)
    rendered = io.BytesIO()
    tpl.save(rendered)
    rendered.seek(0)
    return Document(rendered)


def serialize(
    blocks: Sequence[Block],
    style: Optional[DocumentStyle] = None,
    template: Optional[bytes] = None,
    context: Optional[Dict[str, Any]] = None,
) -> bytes:
    style = style or DocumentStyle()
    doc = render_template(template, context or {}) if template else Document()
    _apply_style(doc, style)

    for block in blocks:
        if isinstance(block, Heading):
            _write_heading(doc, block)
        elif isinstance(block, Paragraph):
            _write_paragraph(doc, block)
        elif isinstance(block, ImageBlock):
            _write_image(doc, block)
        elif isinstance(block, Separator):
            _write_separator(doc)
        else:
            raise TypeError(f"Unknown block type: {type(block).__name__}")

    output = io.BytesIO()
    doc.save(output)
    content = output.getvalue()
    logger.info(f"Document generated, size: {len(content)} bytes")
    return content
