from datetime import date, datetime, timezone


def utc_now() -> str:
    """UTC timestamp with microseconds, so creation order sorts as text."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def today() -> date:
    return date.today()


def parse_date(value: str | None) -> date | None:
    if value is None or value == "":
        return None
    return date.fromisoformat(value[:10])
