import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Form, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import validate_config
from db import get_db, AuditLog
from excel_parser import parse_workbook, build_sample_workbook
from history_service import PersistenceWarning, create_history

from .builder import ReportConfig
from .errors import ResourceError, ValidationError
from .evidence import EvidenceCollection, EvidenceImage
from .fields import create_field_selections, fields_from_payload
from .pipeline import ReportGenerator
from .preview import build_preview
from .serializer import DOCX_MIME, DocumentStyle
from .templates import ASSESSMENT_TYPES, REPORT_TYPES, GT, TemplateLoader, catalog

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def create_generator(config: Dict[str, Any]) -> ReportGenerator:
    loader = None
    if config['template_source']:
        loader = TemplateLoader(config['template_source'], timeout=config['template_timeout'])
    style = DocumentStyle(font_name=config['report_font'], font_size=config['report_font_size'])
    return ReportGenerator(create_history(config), template_loader=loader, style=style)


settings = validate_config()

app = FastAPI()
app.state.generator = create_generator(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings['cors_origins'],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PreviewImage(BaseModel):
    vulnerabilityName: str


class PreviewRequest(BaseModel):
    vulnerabilities: List[Dict[str, Any]]
    fields: List[Dict[str, Any]]
    images: List[PreviewImage] = []
    observations: List[Dict[str, Any]] = []
    scope: List[Dict[str, Any]] = []


def _parse_fields(raw: str, headers: List[str]):
    """Field list sent by the client as JSON; defaults to every column of the sheet when omitted."""
    if not raw:
        return create_field_selections(headers)
    try:
        return fields_from_payload(json.loads(raw))
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid field configuration: {e}") from e


def _collect_images(uploads: List[UploadFile], contents: List[bytes], names: List[str], pasted: str) -> EvidenceCollection:
    if len(uploads) != len(names):
        raise ValidationError(
            f"Each uploaded image needs a vulnerability name: got {len(uploads)} images and {len(names)} names"
        )
    collection = EvidenceCollection()
    for upload, content, name in zip(uploads, contents, names):
        collection.add(EvidenceImage.from_upload(upload.filename or "image", content, name))

    if pasted:
        try:
            items = json.loads(pasted)
        except ValueError as e:
            raise ValidationError(f"Invalid pasted images: {e}") from e
        if not isinstance(items, list):
            raise ValidationError("Invalid pasted images: expected a list")
        for index, item in enumerate(items):
            if not isinstance(item, dict) or not item.get('dataUrl') or 'vulnerabilityName' not in item:
                raise ValidationError(f"Pasted image {index} needs a vulnerabilityName and a dataUrl")
            collection.add(EvidenceImage.from_data_url(item['dataUrl'], str(item['vulnerabilityName']), index))
    return collection


def _audit(db: Session, request: Request, metadata: Dict[str, Any]) -> None:
    try:
        db.add(AuditLog(
            action='generate-report',
            metadata_json=json.dumps(metadata),
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get('user-agent'),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Could not write audit log: {e}")


@app.post("/upload/")
async def upload_file(file: UploadFile = File(...)):
    try:
        parsed = parse_workbook(await file.read())
        if not parsed['vulnerabilities']:
            raise ValidationError(
                "No data found in the first sheet. Please ensure your Excel file contains vulnerability data."
            )
        return {
            "filename": file.filename,
            "fields": [f.to_dict() for f in create_field_selections(parsed['headers'])],
            "vulnerabilities": parsed['vulnerabilities'],
            "observations": parsed['observations'],
            "scope": parsed['scope'],
            "sheets": parsed['sheets'],
        }
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Upload failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/preview/")
async def preview(payload: PreviewRequest):
    try:
        fields = fields_from_payload(payload.fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    images = [
        EvidenceImage(id=f"preview-{i}", data=b"", vulnerability_name=image.vulnerabilityName)
        for i, image in enumerate(payload.images)
    ]
    return build_preview(
        payload.vulnerabilities, fields, images,
        observations=payload.observations, scope=payload.scope,
    )


@app.post("/generate-report/")
async def generate_report(
    request: Request,
    file: UploadFile = File(...),
    fields: str = Form(""),
    company_name: str = Form(""),
    assessment_type: str = Form("Web Blackbox"),
    report_type: str = Form(GT),
    poc_images: Optional[List[UploadFile]] = File(None),
    poc_image_names: Optional[List[str]] = Form(None),
    pasted_images: str = Form(""),
    db: Session = Depends(get_db),
):
    if assessment_type not in ASSESSMENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown assessment type: {assessment_type}")
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown report type: {report_type}")

    generator: ReportGenerator = request.app.state.generator
    try:
        parsed = parse_workbook(await file.read())
        field_list = _parse_fields(fields, parsed['headers'])
        uploads = poc_images or []
        contents = [await upload.read() for upload in uploads]
        images = _collect_images(uploads, contents, poc_image_names or [], pasted_images).finalize()
        config = ReportConfig(assessment_type=assessment_type, company_name=company_name, report_type=report_type)

        report = await generator.generate(
            parsed['vulnerabilities'], field_list, images, config,
            observations=parsed['observations'], scope=parsed['scope'],
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ResourceError as e:
        logger.error(f"Template unavailable: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.exception(f"Report generation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _audit(db, request, {
        'workbook': file.filename,
        'company_name': company_name,
        'assessment_type': assessment_type,
        'report_type': report_type,
        'images': len(images),
    })
    return Response(
        content=report.content,
        media_type=DOCX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@app.get("/history/")
async def list_history(request: Request):
    history = request.app.state.generator.history
    return [record.to_dict() for record in history.list()]


@app.delete("/history/{record_id}")
async def delete_history(record_id: str, request: Request):
    history = request.app.state.generator.history
    try:
        return [record.to_dict() for record in history.delete_by_id(record_id)]
    except PersistenceWarning as e:
        logger.warning(f"Could not delete history entry {record_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/templates/")
async def list_templates():
    return {"report_types": REPORT_TYPES, "categories": catalog()}


@app.get("/sample-workbook/")
async def sample_workbook():
    return Response(
        content=build_sample_workbook(),
        media_type=XLSX_MIME,
        headers={"Content-Disposition": 'attachment; filename="vulnerability_assessment_template.xlsx"'},
    )


@app.get("/status/")
async def status(request: Request):
    return {"processing": request.app.state.generator.processing}
