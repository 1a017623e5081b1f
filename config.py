"""
Configuration for the VAPT Report Generator
Values come from the environment, with a .env file loaded first when present
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()

HISTORY_BACKENDS = ("sql", "file", "memory")

# Storage key the report history JSON array is kept under
HISTORY_STORAGE_KEY = "reportHistory"


def load_config() -> Dict[str, Any]:
    """Read the current configuration from the environment"""
    return {
        'database_url': os.getenv('DATABASE_URL', 'sqlite:///./data.db'),
        # Empty string disables templates and reports start from a blank document
        'template_source': os.getenv('TEMPLATE_SOURCE', 'sample_templates'),
        'template_timeout': os.getenv('TEMPLATE_TIMEOUT', '10'),
        'history_backend': os.getenv('HISTORY_BACKEND', 'sql').lower(),
        'history_dir': os.getenv('HISTORY_DIR', 'history'),
        'history_limit': os.getenv('HISTORY_LIMIT', '50'),
        'report_font': os.getenv('REPORT_FONT', 'Times New Roman'),
        'report_font_size': os.getenv('REPORT_FONT_SIZE', '12'),
        'log_level': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'cors_origins': [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()],
    }


def validate_config(config: Dict[str, Any] = None) -> Dict[str, Any]:
    """Check the configuration and convert numeric settings; raises ValueError listing every problem"""
    config = dict(config or load_config())
    problems = []

    if config['history_backend'] not in HISTORY_BACKENDS:
        problems.append(f"HISTORY_BACKEND must be one of {', '.join(HISTORY_BACKENDS)}")

    for key, convert in (('template_timeout', float), ('history_limit', int), ('report_font_size', float)):
        try:
            config[key] = convert(config[key])
        except (TypeError, ValueError):
            problems.append(f"{key.upper()} must be a number, got {config[key]!r}")

    if isinstance(config['history_limit'], int) and config['history_limit'] < 1:
        problems.append("HISTORY_LIMIT must be at least 1")

    if problems:
        raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

    return config
