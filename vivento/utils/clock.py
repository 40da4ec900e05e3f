from datetime import datetime, timezone


def utcnow():
    """Naive UTC now, matching what pymongo hands back for stored dates."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
