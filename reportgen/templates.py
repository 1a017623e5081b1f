"""
Report template selection and loading.

Every (assessment type, report type) pair maps to one template file laid out as
    {gt|certin}/{assessment_slug}/template.docx
under a template source, which is either a local directory or an http(s) base URL.
"""

import io
import logging
import os
import re
import zipfile
from datetime import date
from typing import Dict, List, Optional

import requests
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from .errors import ResourceError

logger = logging.getLogger(__name__)

GT = "GT"
CERT_IN = "CERT-In"
REPORT_TYPES = [GT, CERT_IN]

ASSESSMENT_SLUGS = {
    "API": "api",
    "Web Blackbox": "web_blackbox",
    "Web Grey Box": "web_greybox",
    "Network": "network",
    "Network Architecture": "network_architecture",
    "Config Review": "config_review",
    "CSPM": "cspm",
    "Source Code": "source_code",
}
ASSESSMENT_TYPES = list(ASSESSMENT_SLUGS)
DEFAULT_ASSESSMENT_SLUG = "web_blackbox"

TEMPLATE_CATALOG = [
    {"category": "Web Security", "assessment_types": ["Web Blackbox", "Web Grey Box", "API"]},
    {"category": "Infrastructure", "assessment_types": ["Network", "Network Architecture"]},
    {"category": "Cloud & Configuration", "assessment_types": ["Config Review", "CSPM"]},
    {"category": "Application Security", "assessment_types": ["Source Code"]},
]


def report_folder(report_type: str) -> str:
    return "gt" if str(report_type).lower() == "gt" else "certin"


def template_identifier(assessment_type: str, report_type: str) -> str:
    """Unknown assessment types fall back to the Web Blackbox template."""
    slug = ASSESSMENT_SLUGS.get(assessment_type, DEFAULT_ASSESSMENT_SLUG)
    return f"{report_folder(report_type)}/{slug}/template.docx"


def catalog() -> List[Dict]:
    return [
        {
            "category": group["category"],
            "templates": [
                {
                    "assessment_type": assessment_type,
                    "gt_template": template_identifier(assessment_type, GT),
                    "certin_template": template_identifier(assessment_type, CERT_IN),
                }
                for assessment_type in group["assessment_types"]
            ],
        }
        for group in TEMPLATE_CATALOG
    ]


def _safe_component(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", value)


def report_filename(company_name: str, assessment_type: str, report_type: str, on: Optional[date] = None) -> str:
    on = on or date.today()
    return "_".join([
        _safe_component(company_name),
        _safe_component(assessment_type),
        _safe_component(report_type),
        "Report",
        on.isoformat(),
    ]) + ".docx"


class TemplateLoader:
    """Fetch template bytes from a directory or an http(s) base URL."""

    def __init__(self, source: str, timeout: float = 10):
        self.source = source
        self.timeout = timeout

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    def location(self, identifier: str) -> str:
        if self.is_remote:
            return f"{self.source.rstrip('/')}/{identifier}"
        return os.path.join(self.source, *identifier.split("/"))

    def _fetch(self, identifier: str, location: str) -> bytes:
        if self.is_remote:
            try:
                response = requests.get(location, timeout=self.timeout)
            except requests.RequestException as e:
                raise ResourceError(f"Failed to load template: {e}", identifier, location) from e
            if response.status_code != 200:
                raise ResourceError(
                    f"Template not found: {response.status_code} {response.reason}", identifier, location
                )
            return response.content
        try:
            with open(location, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise ResourceError("Template not found", identifier, location) from e
        except OSError as e:
            raise ResourceError(f"Failed to load template: {e}", identifier, location) from e

    def load(self, identifier: str) -> bytes:
        location = self.location(identifier)
        logger.info(f"Loading template {identifier} from {location}")
        content = self._fetch(identifier, location)
        if not content:
            raise ResourceError("Template file is empty", identifier, location)
        if not zipfile.is_zipfile(io.BytesIO(content)):
            raise ResourceError("Template is not a valid .docx file", identifier, location)
        logger.info(f"Template loaded successfully, {len(content)} bytes")
        return content


def create_sample_template(assessment_type: str, report_type: str):
    """A minimal docxtpl template with the cover fields the report context provides."""
    doc = Document()
    title = doc.add_paragraph()
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = title.add_run("{{ company }}")
    run.bold = True
    run.font.size = Pt(24)

    subtitle = doc.add_paragraph()
    subtitle.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = subtitle.add_run("{{ engagement_type }} Security Assessment")
    run.font.size = Pt(16)

    meta = doc.add_paragraph()
    meta.alignment = WD_ALIGN_PARAGRAPH.CENTER
    meta.add_run("{{ report_type }} Report | {{ date }}")

    note = doc.add_paragraph()
    note.alignment = WD_ALIGN_PARAGRAPH.CENTER
    standard = "CERT-In guidelines" if report_folder(report_type) == "certin" else "industry best practices"
    note.add_run(f"{assessment_type} template prepared according to {standard}.").italic = True
    doc.add_page_break()
    return doc


def write_sample_templates(root: str) -> List[str]:
    """Write one sample template for each of the 16 template identifiers under root."""
    written = []
    for report_type in REPORT_TYPES:
        for assessment_type in ASSESSMENT_TYPES:
            path = os.path.join(root, *template_identifier(assessment_type, report_type).split("/"))
            os.makedirs(os.path.dirname(path), exist_ok=True)
            create_sample_template(assessment_type, report_type).save(path)
            written.append(path)
    return written
