from datetime import date

import pytest

from reportgen.blocks import Heading, ImageBlock, Paragraph, Separator
from reportgen.builder import (
    IMAGE_ERROR_TEXT,
    IMAGE_HEIGHT_PX,
    IMAGE_WIDTH_PX,
    ReportConfig,
    build_report,
    long_date,
    row_summary,
)
from reportgen.colors import DARK_RED, GREEN, RED
from reportgen.errors import ItemError, ValidationError
from reportgen.evidence import EvidenceImage
from reportgen.fields import create_field_selections, toggle_field

TODAY = date(2024, 3, 5)


def _headings(blocks, level=None):
    return [b.text for b in blocks if isinstance(b, Heading) and (level is None or b.level == level)]


def _runs(blocks):
    return [run for b in blocks if isinstance(b, Paragraph) for run in b.runs]


async def _fake_loader(image):
    if image.data == b"broken":
        raise ItemError("Could not read image", image_id=image.id)
    return image.data


async def _build(vulnerabilities, fields, images=(), config=None, observations=(), scope=()):
    config = config or ReportConfig("Web Blackbox", "Acme")
    return await build_report(
        vulnerabilities, list(observations), list(scope), fields, list(images), config,
        image_loader=_fake_loader, today=TODAY,
    )


async def test_title_severity_and_status_runs():
    fields = create_field_selections(["Vulnerability Name", "Severity", "Status"])
    blocks = await _build([{"Vulnerability Name": "XSS", "Severity": "High", "Status": "Open"}], fields)

    assert blocks[0] == Heading(0, "Acme", alignment="center")
    assert "1. XSS" in _headings(blocks, 2)
    runs = _runs(blocks)
    assert any(r.text == "High" and r.color == RED and r.bold for r in runs)
    assert any(r.text == "Open" and r.color == RED for r in runs)


async def test_severity_and_status_colors():
    fields = create_field_selections(["Vulnerability Name", "Severity", "Status"])
    blocks = await _build([{"Vulnerability Name": "SQLi", "Severity": "Critical", "Status": "Closed"}], fields)
    runs = _runs(blocks)
    assert any(r.text == "Critical" and r.color == DARK_RED for r in runs)
    assert any(r.text == "Closed" and r.color == GREEN for r in runs)


async def test_empty_fields_abort_before_building():
    with pytest.raises(ValidationError):
        await _build([{"Vulnerability Name": "XSS"}], [])


@pytest.mark.parametrize("vulnerabilities,headers,company,message", [
    ([], ["Vulnerability Name"], "Acme", "No vulnerability data"),
    ([{"A": 1}], ["A"], "   ", "Company name is required"),
])
async def test_validation_errors(vulnerabilities, headers, company, message):
    with pytest.raises(ValidationError, match=message):
        await _build(vulnerabilities, create_field_selections(headers), config=ReportConfig("API", company))


async def test_no_included_fields():
    fields = toggle_field(create_field_selections(["A"]), "field-0")
    with pytest.raises(ValidationError, match="No fields selected"):
        await _build([{"A": 1}], fields)


async def test_image_not_rendered_without_name_field():
    fields = create_field_selections(["Vulnerability Name", "Severity"])
    fields = toggle_field(fields, "field-0")
    images = [EvidenceImage("1", b"png", "XSS")]
    blocks = await _build([{"Vulnerability Name": "XSS", "Severity": "High"}], fields, images)
    assert not any(isinstance(b, ImageBlock) for b in blocks)
    assert "Proof of Concept" not in _headings(blocks)


async def test_images_rendered_in_order_with_caption():
    fields = create_field_selections(["Vulnerability Name"])
    images = [
        EvidenceImage("1", b"first", "XSS"),
        EvidenceImage("2", b"other", "SQLi"),
        EvidenceImage("3", b"second", "XSS"),
    ]
    blocks = await _build([{"Vulnerability Name": "XSS"}], fields, images)
    rendered = [b for b in blocks if isinstance(b, ImageBlock)]
    assert [b.data for b in rendered] == [b"first", b"second"]
    assert all(b.caption == "Evidence for: XSS" for b in rendered)
    assert all((b.width_px, b.height_px) == (IMAGE_WIDTH_PX, IMAGE_HEIGHT_PX) for b in rendered)
    assert _headings(blocks, 3) == ["Proof of Concept"]


async def test_broken_image_becomes_error_marker():
    fields = create_field_selections(["Vulnerability Name"])
    images = [EvidenceImage("1", b"broken", "XSS"), EvidenceImage("2", b"ok", "XSS")]
    blocks = await _build([{"Vulnerability Name": "XSS"}], fields, images)
    errors = [r for r in _runs(blocks) if r.text == IMAGE_ERROR_TEXT]
    assert len(errors) == 1 and errors[0].color == RED
    assert [b.data for b in blocks if isinstance(b, ImageBlock)] == [b"ok"]


async def test_other_fields_rendered_as_label_value_pairs():
    fields = create_field_selections(["Vulnerability Name", "Description", "Impact"])
    blocks = await _build([{"Vulnerability Name": "XSS", "Description": "Reflected"}], fields)
    texts = [b.text for b in blocks if isinstance(b, Paragraph)]
    assert texts[texts.index("Description") + 1] == "Reflected"
    assert texts[texts.index("Impact") + 1] == "N/A"
    # the name field is only the heading
    assert "Vulnerability Name" not in texts


async def test_blank_severity_renders_nothing():
    fields = create_field_selections(["Vulnerability Name", "Severity"])
    blocks = await _build([{"Vulnerability Name": "XSS"}], fields)
    assert not any(b.text.startswith("Severity:") for b in blocks if isinstance(b, Paragraph))


async def test_separators_between_rows_only():
    fields = create_field_selections(["Vulnerability Name"])
    rows = [{"Vulnerability Name": n} for n in ("A", "B", "C")]
    blocks = await _build(rows, fields)
    assert sum(isinstance(b, Separator) for b in blocks) == 2
    assert "Identified Vulnerabilities (3)" in _headings(blocks, 1)


async def test_scope_and_observation_sections():
    fields = create_field_selections(["Vulnerability Name"])
    blocks = await _build(
        [{"Vulnerability Name": "XSS"}], fields,
        observations=[{"Observation": "Weak Password Policy", "Impact": "Medium"}],
        scope=[{"Asset Name": "Portal"}],
    )
    headings = _headings(blocks, 1)
    assert headings.index("Assessment Scope") < headings.index("Identified Vulnerabilities (1)")
    assert headings.index("Additional Observations") < headings.index("Recommendations")
    texts = [b.text for b in blocks if isinstance(b, Paragraph)]
    assert "1. Observation: Weak Password Policy\nImpact: Medium" in texts


async def test_sections_omitted_when_empty():
    blocks = await _build([{"Vulnerability Name": "XSS"}], create_field_selections(["Vulnerability Name"]))
    headings = _headings(blocks, 1)
    assert "Assessment Scope" not in headings
    assert "Additional Observations" not in headings


async def test_report_type_changes_summary_wording():
    fields = create_field_selections(["Vulnerability Name"])
    gt = await _build([{"Vulnerability Name": "XSS"}], fields)
    certin = await _build([{"Vulnerability Name": "XSS"}], fields, config=ReportConfig("Network", "Acme", "CERT-In"))
    assert any("industry best practices" in b.text for b in gt if isinstance(b, Paragraph))
    assert any("CERT-In guidelines and standards" in b.text for b in certin if isinstance(b, Paragraph))


async def test_footer_and_date():
    blocks = await _build([{"Vulnerability Name": "XSS"}], create_field_selections(["Vulnerability Name"]))
    texts = [b.text for b in blocks if isinstance(b, Paragraph)]
    assert "Date: March 5, 2024" in texts
    assert texts[-2] == "This report was generated on 2024-03-05 for Acme"
    assert texts[-1] == "Report Type: GT | Assessment: Web Blackbox"


def test_long_date_and_row_summary():
    assert long_date(date(2024, 12, 1)) == "December 1, 2024"
    assert row_summary(2, {"A": "x", "B": None, "C": 3}).text == "2. A: x\nC: 3"


async def test_oversized_image_does_not_abort_report(png_bytes, oversized_png):
    fields = create_field_selections(["Vulnerability Name"])
    images = [EvidenceImage("1", oversized_png, "XSS"), EvidenceImage("2", png_bytes, "XSS")]
    blocks = await build_report(
        [{"Vulnerability Name": "XSS"}], [], [], fields, images, ReportConfig("Web Blackbox", "Acme"), today=TODAY,
    )
    assert [r.text for r in _runs(blocks)].count(IMAGE_ERROR_TEXT) == 1
    assert [b.data for b in blocks if isinstance(b, ImageBlock)] == [png_bytes]


async def test_unexpected_loader_error_becomes_error_marker():
    async def loader(image):
        if image.id == "1":
            raise RuntimeError("connection reset")
        return image.data

    fields = create_field_selections(["Vulnerability Name"])
    images = [EvidenceImage("1", b"a", "XSS"), EvidenceImage("2", b"b", "XSS")]
    blocks = await build_report(
        [{"Vulnerability Name": "XSS"}], [], [], fields, images, ReportConfig("Web Blackbox", "Acme"),
        image_loader=loader, today=TODAY,
    )
    assert [r.text for r in _runs(blocks)].count(IMAGE_ERROR_TEXT) == 1
    assert [b.data for b in blocks if isinstance(b, ImageBlock)] == [b"b"]


async def test_same_inputs_build_same_blocks():
    fields = create_field_selections(["Vulnerability Name", "Severity", "Status", "Description"])
    rows = [
        {"Vulnerability Name": "XSS", "Severity": "High", "Status": "Open", "Description": "Reflected"},
        {"Vulnerability Name": "SQLi", "Severity": "Critical", "Status": "Closed"},
    ]
    images = [EvidenceImage("1", b"first", "XSS")]
    scope = [{"Asset Name": "Portal"}]
    first = await _build(rows, fields, images, scope=scope)
    second = await _build(rows, fields, images, scope=scope)
    assert first == second


async def test_long_values_are_not_truncated_in_report():
    long_text = "Detailed reproduction steps. " * 20
    assert len(long_text) > 200
    fields = create_field_selections(["Vulnerability Name", "Description"])
    blocks = await _build([{"Vulnerability Name": "XSS", "Description": long_text}], fields)
    texts = [b.text for b in blocks if isinstance(b, Paragraph)]
    value = texts[texts.index("Description") + 1]
    assert value == long_text
    assert not value.endswith("...")
