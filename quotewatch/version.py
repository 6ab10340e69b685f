# quotewatch/version.py

from datetime import UTC, datetime

SERVICE_NAME = "quotewatch"
SERVICE_VERSION = "0.1.0"
BUILD_TIME = datetime.now(UTC).isoformat()  # process start time


def service_version_payload() -> dict:
    """Used by /version."""
    return {
        "service": f"{SERVICE_NAME}:{SERVICE_VERSION}",
        "build_time": BUILD_TIME,
    }
