"""
Report tree builder.

Walks scope, vulnerability and observation rows and turns them into the ordered list of
content blocks the serializer writes out. Field classification, normalisation, evidence
lookup and colour resolution all happen here so the preview and the final report agree.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from .blocks import CENTER, Block, Heading, ImageBlock, Paragraph, Separator, TextRun
from .colors import RED, resolve_severity_color, resolve_status_color
from .errors import ItemError, ValidationError
from .evidence import EvidenceImage, images_for, load_image
from .fields import FieldRoles, FieldSelection, classify, included_fields
from .normalizer import display_value, is_blank, normalize
from .templates import CERT_IN, GT

logger = logging.getLogger(__name__)

IMAGE_WIDTH_PX = 500
IMAGE_HEIGHT_PX = 300
IMAGE_ERROR_TEXT = "Error: Failed to include image"

RECOMMENDATIONS = [
    ("1. Immediate Actions", [
        "Address all critical and high-severity vulnerabilities within 30 days",
        "Implement temporary mitigations for critical findings",
        "Review and update security policies",
    ]),
    ("2. Short-Term Improvements (1-3 months)", [
        "Remediate medium-severity vulnerabilities",
        "Enhance security monitoring and logging",
        "Conduct security awareness training",
    ]),
    ("3. Long-Term Strategy (3-12 months)", [
        "Implement comprehensive security framework",
        "Establish regular security assessment schedule",
        "Develop incident response procedures",
    ]),
]

Row = Mapping[str, Any]
ImageLoader = Callable[[EvidenceImage], Awaitable[bytes]]


@dataclass(frozen=True)
class ReportConfig:
    assessment_type: str
    company_name: str
    report_type: str = GT

    @property
    def standard_phrase(self) -> str:
        if self.report_type == CERT_IN:
            return "CERT-In guidelines and standards"
        return "industry best practices"


def validate_inputs(vulnerabilities: Sequence[Row], fields: Sequence[FieldSelection], config: ReportConfig):
    if not vulnerabilities:
        raise ValidationError(
            "No vulnerability data found. Please upload a valid Excel file with vulnerability data in the first sheet."
        )
    if not fields:
        raise ValidationError("No fields configured. Please ensure your Excel file has proper column headers.")
    if not included_fields(fields):
        raise ValidationError(
            "No fields selected. Please select at least one field to include in the report."
        )
    if not (config.company_name or "").strip():
        raise ValidationError("Company name is required. Please enter a company name before generating the report.")


def long_date(on: date) -> str:
    return f"{on.strftime('%B')} {on.day}, {on.year}"


def row_summary(index: int, row: Row) -> Paragraph:
    """Numbered paragraph listing every non-blank "key: value" pair of a scope or observation row."""
    entries = "\n".join(f"{key}: {value}" for key, value in row.items() if not is_blank(value))
    return Paragraph([TextRun(f"{index}. {entries}", size=11)], space_after=10)


def labelled_value(label: str, value: str, color: str) -> Paragraph:
    return Paragraph([
        TextRun(f"{label}: ", bold=True, size=12),
        TextRun(value, bold=True, size=12, color=color),
    ], space_after=5)


def _title_blocks(config: ReportConfig, today: date) -> List[Block]:
    return [
        Heading(0, config.company_name, alignment=CENTER),
        Heading(1, f"{config.assessment_type} Security Assessment Report", alignment=CENTER),
        Paragraph([TextRun(f"Report Type: {config.report_type}", size=12)], alignment=CENTER, space_after=5),
        Paragraph([TextRun(f"Date: {long_date(today)}", size=12)], alignment=CENTER, space_after=30),
    ]


def _executive_summary(config: ReportConfig, vulnerability_count: int) -> List[Block]:
    text = (
        f"This {config.assessment_type.lower()} security assessment report for {config.company_name} "
        f"has been prepared following {config.standard_phrase}. The assessment identified "
        f"{vulnerability_count} vulnerabilities and provides comprehensive recommendations for "
        f"security improvements."
    )
    return [
        Heading(1, "Executive Summary"),
        Paragraph([TextRun(text, size=12)], space_after=20),
    ]


def _recommendations(config: ReportConfig) -> List[Block]:
    blocks: List[Block] = [
        Heading(1, "Recommendations"),
        Paragraph([TextRun(
            f"Based on the findings of this {config.assessment_type.lower()} assessment, "
            f"we recommend the following actions:",
            size=12,
        )], space_after=10),
    ]
    for title, bullets in RECOMMENDATIONS:
        blocks.append(Heading(2, title))
        for bullet in bullets:
            blocks.append(Paragraph([TextRun(f"• {bullet}", size=11)], space_after=2))
    return blocks


def _footer(config: ReportConfig, today: date) -> List[Block]:
    return [
        Paragraph([TextRun(
            f"This report was generated on {today.isoformat()} for {config.company_name}",
            italic=True, size=10,
        )], alignment=CENTER),
        Paragraph([TextRun(
            f"Report Type: {config.report_type} | Assessment: {config.assessment_type}",
            italic=True, size=10,
        )], alignment=CENTER),
    ]


async def _evidence_blocks(name: str, images: Sequence[EvidenceImage], image_loader: ImageLoader) -> List[Block]:
    matched = images_for(name, images)
    if not matched:
        return []
    blocks: List[Block] = [Heading(3, "Proof of Concept")]
    for image in matched:
        try:
            data = await image_loader(image)
        except ItemError as e:
            logger.warning(f"Skipping evidence image {image.id} for '{name}': {e}")
            blocks.append(Paragraph([TextRun(IMAGE_ERROR_TEXT, color=RED, size=10)], space_after=5))
            continue
        except Exception as e:
            # Injected loaders may raise anything; one image never aborts the report
            logger.warning(f"Unexpected error loading evidence image {image.id} for '{name}': {e!r}")
            blocks.append(Paragraph([TextRun(IMAGE_ERROR_TEXT, color=RED, size=10)], space_after=5))
            continue
        blocks.append(ImageBlock(
            data=data,
            width_px=IMAGE_WIDTH_PX,
            height_px=IMAGE_HEIGHT_PX,
            caption=f"Evidence for: {name}",
        ))
    return blocks


async def _vulnerability_blocks(
    index: int,
    row: Row,
    fields: Sequence[FieldSelection],
    roles: FieldRoles,
    images: Sequence[EvidenceImage],
    image_loader: ImageLoader,
) -> List[Block]:
    blocks: List[Block] = []
    name = None

    if roles.name is not None and not is_blank(row.get(roles.name.name)):
        name = display_value(row.get(roles.name.name))
        blocks.append(Heading(2, f"{index}. {name}"))

    if roles.severity is not None and not is_blank(row.get(roles.severity.name)):
        severity = display_value(row.get(roles.severity.name))
        blocks.append(labelled_value("Severity", severity, resolve_severity_color(severity)))

    if roles.status is not None and not is_blank(row.get(roles.status.name)):
        status = display_value(row.get(roles.status.name))
        blocks.append(labelled_value("Status", status, resolve_status_color(status)))

    for entry in normalize(row, fields, roles):
        if entry.role is not None:
            continue
        blocks.append(Paragraph([TextRun(entry.label, bold=True, size=12)], space_after=2))
        blocks.append(Paragraph([TextRun(entry.value, size=11)], space_after=8))

    if name is not None:
        blocks.extend(await _evidence_blocks(name, images, image_loader))
    return blocks


async def build_report(
    vulnerabilities: Sequence[Row],
    observations: Sequence[Row],
    scope: Sequence[Row],
    fields: Sequence[FieldSelection],
    images: Sequence[EvidenceImage],
    config: ReportConfig,
    image_loader: Optional[ImageLoader] = None,
    today: Optional[date] = None,
) -> List[Block]:
    """
    Build the full report body.

    Raises ValidationError before producing anything when the inputs cannot make a report.
    A broken evidence image is replaced by an inline error marker and the build carries on.
    """
    validate_inputs(vulnerabilities, fields, config)
    image_loader = image_loader or load_image
    today = today or date.today()
    selected = included_fields(fields)
    roles = classify(selected)
    observations = observations or []
    scope = scope or []

    blocks: List[Block] = []
    blocks.extend(_title_blocks(config, today))
    blocks.extend(_executive_summary(config, len(vulnerabilities)))

    if scope:
        blocks.append(Heading(1, "Assessment Scope"))
        for index, row in enumerate(scope, 1):
            blocks.append(row_summary(index, row))

    blocks.append(Heading(1, f"Identified Vulnerabilities ({len(vulnerabilities)})"))
    for index, row in enumerate(vulnerabilities, 1):
        blocks.extend(await _vulnerability_blocks(index, row, selected, roles, images, image_loader))
        if index < len(vulnerabilities):
            blocks.append(Separator())

    if observations:
        blocks.append(Heading(1, "Additional Observations"))
        for index, row in enumerate(observations, 1):
            blocks.append(row_summary(index, row))

    blocks.extend(_recommendations(config))
    blocks.extend(_footer(config, today))
    logger.info(f"Built report for {config.company_name}: {len(blocks)} blocks, {len(vulnerabilities)} vulnerabilities")
    return blocks
