from reportgen.colors import DARK_RED, GREEN, RED
from reportgen.evidence import EvidenceImage
from reportgen.fields import create_field_selections, toggle_field
from reportgen.preview import build_preview


def test_preview_rows_and_counts(vulnerabilities, fields):
    images = [EvidenceImage("1", b"", "SQL Injection"), EvidenceImage("2", b"", "SQL Injection")]
    preview = build_preview(vulnerabilities, fields, images)

    assert preview["counts"] == {
        "vulnerabilities": 2, "included_fields": 4, "images": 2, "observations": 0, "scope": 0,
    }
    assert preview["remaining"] == 0
    first = preview["rows"][0]
    assert first["title"] == "1. SQL Injection"
    assert first["evidence_count"] == 2
    by_label = {f["label"]: f for f in first["fields"]}
    assert by_label["Severity"]["color"] == DARK_RED
    assert by_label["Status"]["color"] == RED
    assert by_label["Description"]["role"] is None
    assert preview["rows"][1]["evidence_count"] == 0
    assert {f["label"]: f for f in preview["rows"][1]["fields"]}["Status"]["color"] == GREEN


def test_preview_limits_rows_and_truncates():
    fields = create_field_selections(["Vulnerability Name", "Description"])
    rows = [{"Vulnerability Name": f"V{n}", "Description": "x" * 300} for n in range(5)]
    preview = build_preview(rows, fields, [])
    assert len(preview["rows"]) == 3
    assert preview["remaining"] == 2
    description = preview["rows"][0]["fields"][1]
    assert description["truncated"]
    assert description["value"].endswith("...")


def test_preview_skips_excluded_fields():
    fields = toggle_field(create_field_selections(["Vulnerability Name", "Severity"]), "field-0")
    preview = build_preview([{"Vulnerability Name": "XSS", "Severity": "Low"}], fields, [EvidenceImage("1", b"", "XSS")])
    row = preview["rows"][0]
    assert row["title"] is None
    assert row["evidence_count"] == 0
    assert [f["label"] for f in row["fields"]] == ["Severity"]
