# Hex color tokens used for severity and status runs
DARK_RED = "800000"
RED = "FF0000"
ORANGE = "FF8C00"
GREEN = "228B22"
BLACK = "000000"

SEVERITY_COLORS = {
    "critical": DARK_RED,
    "high": RED,
    "medium": ORANGE,
    "low": GREEN,
}


def _key(label) -> str:
    if label is None:
        return ""
    return str(label).strip().lower()


def resolve_severity_color(severity) -> str:
    """Color for a severity label; anything unrecognised is black."""
    return SEVERITY_COLORS.get(_key(severity), BLACK)


def resolve_status_color(status) -> str:
    """Open findings are red, every other status is green."""
    return RED if _key(status) == "open" else GREEN
