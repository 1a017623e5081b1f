"""
Report generation pipeline: validate, load the template, build, serialize, record history.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from docx.opc.exceptions import PackageNotFoundError
from jinja2 import TemplateError

from history_service import PersistenceWarning, ReportHistory, ReportHistoryRecord

from .builder import ReportConfig, build_report, long_date, validate_inputs
from .errors import ResourceError
from .evidence import EvidenceImage
from .fields import FieldSelection
from .serializer import DocumentStyle, serialize
from .templates import TemplateLoader, report_filename, template_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedReport:
    filename: str
    content: bytes
    record: Optional[ReportHistoryRecord] = None


def template_context(config: ReportConfig, today: date) -> Dict[str, Any]:
    return {
        "company": config.company_name,
        "date": long_date(today),
        "engagement_type": config.assessment_type,
        "report_type": config.report_type,
    }


class ReportGenerator:
    """
    Runs one report generation at a time for a single user.

    processing is True while generate() is running, so a front end can disable its
    generate button; a second concurrent call is not rejected.
    """

    def __init__(
        self,
        history: Optional[ReportHistory] = None,
        template_loader: Optional[TemplateLoader] = None,
        style: Optional[DocumentStyle] = None,
    ):
        self.history = history
        self.template_loader = template_loader
        self.style = style or DocumentStyle()
        self.processing = False

    def _load_template(self, config: ReportConfig) -> Optional[bytes]:
        if self.template_loader is None:
            return None
        return self.template_loader.load(template_identifier(config.assessment_type, config.report_type))

    def _serialize(self, blocks, template: Optional[bytes], config: ReportConfig, today: date) -> bytes:
        try:
            return serialize(blocks, self.style, template, template_context(config, today))
        except (TemplateError, PackageNotFoundError) as e:
            if template is None:
                raise
            identifier = template_identifier(config.assessment_type, config.report_type)
            raise ResourceError(
                f"Template could not be rendered: {e}", identifier, self.template_loader.location(identifier)
            ) from e

    def _record(self, filename: str, config: ReportConfig, size: int, today: date) -> Optional[ReportHistoryRecord]:
        if self.history is None:
            return None
        record = ReportHistoryRecord.for_report(filename, config, size, on=today)
        try:
            self.history.append(record)
        except PersistenceWarning as e:
            logger.warning(f"Report generated but not saved to history: {e}")
            return None
        return record

    async def generate(
        self,
        vulnerabilities: Sequence[Mapping[str, Any]],
        fields: Sequence[FieldSelection],
        images: Sequence[EvidenceImage],
        config: ReportConfig,
        observations: Optional[Sequence[Mapping[str, Any]]] = None,
        scope: Optional[Sequence[Mapping[str, Any]]] = None,
        today: Optional[date] = None,
    ) -> GeneratedReport:
        today = today or date.today()
        self.processing = True
        try:
            validate_inputs(vulnerabilities, fields, config)
            logger.info(
                f"Generating {config.report_type} {config.assessment_type} report for {config.company_name} "
                f"with {len(vulnerabilities)} vulnerabilities and {len(images)} images"
            )
            template = self._load_template(config)
            blocks = await build_report(
                vulnerabilities, observations or [], scope or [], fields, images, config, today=today
            )
            content = self._serialize(blocks, template, config, today)
            filename = report_filename(config.company_name, config.assessment_type, config.report_type, today)
            record = self._record(filename, config, len(content), today)
            logger.info(f"Report generated successfully: {filename}")
            return GeneratedReport(filename=filename, content=content, record=record)
        finally:
            self.processing = False
