from datetime import UTC, datetime


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()
