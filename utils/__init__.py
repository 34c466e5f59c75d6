"""
Utility modules for the electrical inspection reporting system.
"""

from utils.config import config, REPORT_DIR
from utils.logger import setup_logger, set_request_id, get_request_id
from utils.validators import (
    is_blank,
    validate_email,
    validate_time,
    parse_number,
    sanitize_client_name,
    parse_execution_date,
    format_date_for_filename,
    extract_version_from_filename,
    sanitize_filename,
)

__all__ = [
    "config",
    "REPORT_DIR",
    "setup_logger",
    "set_request_id",
    "get_request_id",
    "is_blank",
    "validate_email",
    "validate_time",
    "parse_number",
    "sanitize_client_name",
    "parse_execution_date",
    "format_date_for_filename",
    "extract_version_from_filename",
    "sanitize_filename",
]
