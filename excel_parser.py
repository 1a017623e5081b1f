"""
Workbook parser for the VAPT Report Generator
Turns an uploaded .xlsx into the row collections the report builder consumes:
the first sheet holds vulnerabilities, optional "Observations" and "Scope" sheets hold the rest
"""

import io
import logging
from typing import Any, BinaryIO, Dict, List, Union

import pandas as pd

from reportgen.errors import ValidationError
from reportgen.normalizer import is_blank

logger = logging.getLogger(__name__)

OBSERVATIONS_SHEET = "Observations"
SCOPE_SHEET = "Scope"

SAMPLE_VULNERABILITIES = [
    {
        'Vulnerability Name': 'Cross-Site Scripting (XSS)',
        'Severity': 'High',
        'CVSS Score': '8.2',
        'Description': 'A persistent XSS vulnerability was found in the user profile page.',
        'Affected Systems': 'Web application front-end',
        'Recommendation': 'Implement proper input validation and output encoding.',
        'Status': 'Open',
    },
    {
        'Vulnerability Name': 'SQL Injection',
        'Severity': 'Critical',
        'CVSS Score': '9.8',
        'Description': 'SQL injection vulnerability in the login form allows authentication bypass.',
        'Affected Systems': 'Authentication service, database',
        'Recommendation': 'Use parameterized queries and input validation.',
        'Status': 'Open',
    },
]

SAMPLE_OBSERVATIONS = [
    {
        'Observation': 'Weak Password Policy',
        'Impact': 'Medium',
        'Details': 'The current password policy does not enforce complexity requirements.',
        'Recommendation': 'Implement a strong password policy requiring minimum length and complexity.',
    },
]

SAMPLE_SCOPE = [
    {
        'Asset Type': 'Web Application',
        'Asset Name': 'Customer Portal',
        'IP/URL': 'https://customer.example.com',
        'Environment': 'Production',
    },
]


def clean_sheet(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop what a spreadsheet program leaves behind around the data:
    fully blank rows and unnamed columns with nothing in them.
    """
    df = df.dropna(how='all')
    empty_unnamed = [
        col for col in df.columns
        if str(col).startswith('Unnamed:') and df[col].isna().all()
    ]
    return df.drop(columns=empty_unnamed)


def sheet_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """One dict per row; blank cells are left out of the dict."""
    rows = []
    for _, row in df.iterrows():
        record = {str(col): value for col, value in row.items() if not is_blank(value)}
        if record:
            rows.append(record)
    return rows


def parse_workbook(source: Union[bytes, str, BinaryIO]) -> Dict[str, Any]:
    """
    Parse every sheet of a workbook.

    Returns a dictionary containing:
    - vulnerabilities: rows of the first sheet
    - observations: rows of the "Observations" sheet, [] when missing
    - scope: rows of the "Scope" sheet, [] when missing
    - headers: column headers of the first sheet, in order
    - sheets: row count per sheet name
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    try:
        workbook = pd.read_excel(source, sheet_name=None, dtype=object, engine='openpyxl')
    except Exception as e:
        # pandas and openpyxl raise a wide range of types for a damaged or non-xlsx file
        logger.error(f"Error reading workbook: {e}")
        raise ValidationError(f"Could not read the Excel file: {e}") from e

    if not workbook:
        raise ValidationError("The Excel file contains no sheets.")

    sheets = {name: clean_sheet(df) for name, df in workbook.items()}
    logger.info(f"Found sheets: {list(sheets)}")

    first_name = next(iter(sheets))
    first = sheets[first_name]
    headers = [str(col) for col in first.columns]

    result = {
        'vulnerabilities': sheet_to_rows(first),
        'observations': sheet_to_rows(sheets[OBSERVATIONS_SHEET]) if OBSERVATIONS_SHEET in sheets else [],
        'scope': sheet_to_rows(sheets[SCOPE_SHEET]) if SCOPE_SHEET in sheets else [],
        'headers': headers,
        'sheets': {name: len(df) for name, df in sheets.items()},
    }

    logger.info(
        f"Workbook parsed: {len(result['vulnerabilities'])} vulnerabilities, "
        f"{len(result['observations'])} observations, {len(result['scope'])} scope entries, "
        f"{len(headers)} columns"
    )
    return result


def build_sample_workbook() -> bytes:
    """Example workbook with the three sheets the parser understands."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        pd.DataFrame(SAMPLE_VULNERABILITIES).to_excel(writer, sheet_name='Vulnerabilities', index=False)
        pd.DataFrame(SAMPLE_OBSERVATIONS).to_excel(writer, sheet_name=OBSERVATIONS_SHEET, index=False)
        pd.DataFrame(SAMPLE_SCOPE).to_excel(writer, sheet_name=SCOPE_SHEET, index=False)
    return output.getvalue()
