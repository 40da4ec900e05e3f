from pymongo import MongoClient, ASCENDING, DESCENDING, IndexModel
import certifi
import logging

from vivento import config

logger = logging.getLogger("uvicorn.error")

USERS = "users"
CLUBS = "clubs"
EVENTS = "events"
REGISTRATIONS = "registrations"
PENDING_REGISTRATIONS = "pending_registrations"

_client = None


def get_client():
    global _client
    if _client is None:
        # Atlas (SRV) connections need the certifi bundle; plain local URIs don't use TLS
        if config.MONGO_URI.startswith("mongodb+srv://"):
            _client = MongoClient(config.MONGO_URI, tlsCAFile=certifi.where())
        else:
            _client = MongoClient(config.MONGO_URI)
    return _client


def get_database():
    """FastAPI dependency returning the application database."""
    return get_client()[config.DB_NAME]


def ensure_indexes(db):
    db[USERS].create_index([("email", ASCENDING)], unique=True)

    db[CLUBS].create_indexes([
        IndexModel([("clubNameKey", ASCENDING)], unique=True),
        IndexModel([("organizer", ASCENDING)], unique=True),
        IndexModel([("college", ASCENDING), ("status", ASCENDING)]),
    ])

    # Abandoned sign-ups are purged a day after their OTP expired
    db[PENDING_REGISTRATIONS].create_indexes([
        IndexModel([("email", ASCENDING)], unique=True),
        IndexModel([("purgeAt", ASCENDING)], expireAfterSeconds=0),
    ])

    db[EVENTS].create_indexes([
        IndexModel([("date", ASCENDING), ("category", ASCENDING), ("collegeName", ASCENDING), ("isPublished", ASCENDING)]),
        IndexModel([("organizer", ASCENDING), ("club", ASCENDING)]),
    ])

    db[REGISTRATIONS].create_indexes([
        IndexModel([("event", ASCENDING), ("user", ASCENDING)], unique=True),
        IndexModel([("user", ASCENDING), ("registeredAt", DESCENDING)]),
    ])

    logger.info("Mongo indexes ensured on %s", db.name)


def check_connection():
    try:
        get_client().admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"MongoDB ping failed: {e}")
        return False
