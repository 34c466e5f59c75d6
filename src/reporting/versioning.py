"""
Artifact naming and version discovery.

Names look like `<client>_<YYYYMMDD>_v<N>.pdf`. The next version is read from
the artifact store on every export and never cached.
"""

from datetime import date, datetime
from typing import Optional, Tuple

from src.reporting.storage import ArtifactStore
from utils.logger import setup_logger
from utils.config import config
from utils.validators import (
    extract_version_from_filename,
    format_date_for_filename,
    parse_execution_date,
    sanitize_client_name,
)

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="EXPORT"
)


def build_file_prefix(
    client_name: Optional[str],
    execution_date: Optional[str],
    created_at: Optional[datetime] = None
) -> str:
    """Client and date part of artifact names; falls back to the creation date, then today."""
    parsed = parse_execution_date(execution_date)
    if parsed is None:
        parsed = created_at.date() if created_at else date.today()
    return f"{sanitize_client_name(client_name)}_{format_date_for_filename(parsed)}"


def artifact_names(prefix: str, version: int) -> Tuple[str, str]:
    """(pdf_name, json_name) for a version."""
    return f"{prefix}_v{version}.pdf", f"{prefix}_v{version}.json"


async def get_next_version(store: ArtifactStore, prefix: str) -> int:
    """
    One above the highest `_v<N>` among stored artifacts with this prefix.

    Returns 1 when nothing matches or the store cannot be listed.
    """
    try:
        names = await store.list(prefix)
    except Exception as e:
        logger.warning(f"Version discovery failed for '{prefix}', using v1: {e}")
        return 1

    versions = [
        version for version in (extract_version_from_filename(name) for name in names)
        if version
    ]
    next_version = max(versions) + 1 if versions else 1

    if next_version > config.max_versions_per_report:
        logger.warning(
            f"'{prefix}' reached version {next_version} "
            f"(limit {config.max_versions_per_report})"
        )

    return next_version
