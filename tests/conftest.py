import io
import os
import struct
import tempfile
import zlib

# Point the app at throwaway storage before config/db are imported
_tmp = tempfile.mkdtemp(prefix="reportgen-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'test.db')}"
os.environ["HISTORY_BACKEND"] = "memory"
os.environ["TEMPLATE_SOURCE"] = ""

import pandas as pd
import pytest
from PIL import Image

from db import init_db
from reportgen.builder import ReportConfig
from reportgen.fields import create_field_selections

init_db()

HEADERS = ["Vulnerability Name", "Severity", "Description", "Status"]


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (40, 30), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def vulnerabilities():
    return [
        {"Vulnerability Name": "SQL Injection", "Severity": "Critical", "Description": "Login form", "Status": "Open"},
        {"Vulnerability Name": "XSS", "Severity": "High", "Description": "Profile page", "Status": "Closed"},
    ]


@pytest.fixture
def fields():
    return create_field_selections(HEADERS)


@pytest.fixture
def report_config():
    return ReportConfig(assessment_type="Web Blackbox", company_name="Acme", report_type="GT")


@pytest.fixture
def workbook_bytes():
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame([
            {"Vulnerability Name": "SQL Injection", "Severity": "Critical", "Description": "Login form", "Status": "Open"},
            {"Vulnerability Name": "XSS", "Severity": "High", "Description": None, "Status": "Closed"},
        ]).to_excel(writer, sheet_name="Findings", index=False)
        pd.DataFrame([{"Observation": "Weak Password Policy", "Impact": "Medium"}]).to_excel(
            writer, sheet_name="Observations", index=False)
        pd.DataFrame([{"Asset Name": "Customer Portal", "IP/URL": "https://customer.example.com"}]).to_excel(
            writer, sheet_name="Scope", index=False)
    return buf.getvalue()


@pytest.fixture
def oversized_png():
    """PNG header declaring a 20000x20000 canvas with no pixel data."""
    def chunk(kind, body):
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")
