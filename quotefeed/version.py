# quotefeed/version.py

import os
from datetime import UTC, datetime

SERVICE_NAME = "quotefeed"
SERVICE_VERSION = "0.1.0"

# injected by the image build; falls back to process start
BUILD_TIME = os.getenv("QUOTEFEED_BUILD_TIME") or datetime.now(UTC).isoformat()


def version_payload() -> dict:
    """Used by /version."""
    return {
        "service": f"{SERVICE_NAME}:{SERVICE_VERSION}",
        "service_version": SERVICE_VERSION,
        "build_time": BUILD_TIME,
    }
