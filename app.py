import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from config import validate_config
from db import init_db, test_connection
from reportgen.templates import write_sample_templates
from reportgen.main import app as reports_app

settings = validate_config()

logging.basicConfig(
    level=getattr(logging, settings['log_level'], logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="VAPT Report Generator")


# Health check endpoint for load balancer
@app.get("/health")
async def health_check():
    db_status = "ok" if test_connection() else "error"
    return {"status": "ok", "service": "api", "database": db_status}


@app.get("/")
async def root():
    return RedirectResponse("/reports/templates/")


app.mount("/reports", reports_app)


# Basic path sanitation middleware to mitigate path traversal attempts in requests
@app.middleware("http")
async def block_dangerous_paths(request: Request, call_next):
    path = request.url.path
    forbidden_substrings = ["..", "\\", "%5c", "%2e%2e", "<", ">", "//"]
    if any(sub in path.lower() for sub in forbidden_substrings):
        logger.warning(f"Blocked request path: {path}")
        return HTMLResponse("Forbidden", status_code=403)
    return await call_next(request)


@app.on_event("startup")
def on_startup():
    # Ensure DB is initialized
    init_db()
    logger.info("Database initialized")
    # Local template directory missing on a fresh checkout
    source = settings['template_source']
    if source and not source.startswith(("http://", "https://")) and not os.path.isdir(source):
        written = write_sample_templates(source)
        logger.info(f"Created {len(written)} sample templates under {source}")
