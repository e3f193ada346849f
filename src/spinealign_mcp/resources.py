"""MCP resource implementations for SpineAlign."""

import json
import logging
from datetime import datetime, timezone

from spinealign_mcp.landmarks import LANDMARK_CATALOG, MINIMUM_LANDMARKS, REGION_OVERRIDE_KEY
from spinealign_mcp.spine_constants import NORMATIVE_TABLE, Region

logger = logging.getLogger("spinealign-mcp")


def _iso_timestamp() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_landmark_catalog_resource(region: Region) -> str:
    """Get the ordered landmark catalog for a region as JSON.

    Returns:
        JSON string with region, ordered landmark definitions and counts
    """
    catalog = LANDMARK_CATALOG[region]
    data = {
        "region": region.value,
        "count": len(catalog),
        "minimum_landmarks": MINIMUM_LANDMARKS[region],
        "override_key": REGION_OVERRIDE_KEY[region],
        "landmarks": [
            {"index": idx, "id": d.id, "label": d.label, "short_label": d.short_label}
            for idx, d in enumerate(catalog)
        ],
    }

    logger.info(f"Landmark catalog resource retrieved: {region.value} ({len(catalog)} landmarks)")

    return json.dumps(data, indent=2)


def get_normative_table_resource() -> str:
    """Get the versioned clinical reference table as JSON.

    Returns:
        JSON string with age buckets, targets, corridors and severity thresholds
    """
    data = dict(NORMATIVE_TABLE, retrieved_at=_iso_timestamp())

    logger.info(f"Normative table resource retrieved: v{NORMATIVE_TABLE['version']}")

    return json.dumps(data, indent=2, ensure_ascii=False)
