from mongoengine import connect
from dotenv import load_dotenv
import logging
import os
from urllib.parse import urlparse

load_dotenv()

logger = logging.getLogger(__name__)


def init_db(mongo_uri=None, mongo_client_class=None):
    mongo_uri = mongo_uri or os.getenv("MONGODB_URI", "mongodb://localhost:27017/lostnfound_db")

    # Auto-detect DB name from URI
    parsed = urlparse(mongo_uri)
    db_name = (parsed.path or "").lstrip("/") or "lostnfound_db"

    kwargs = {}
    if mongo_client_class is not None:
        kwargs["mongo_client_class"] = mongo_client_class

    try:
        connect(
            db=db_name,
            host=mongo_uri,
            alias="default",
            **kwargs
        )
        logger.info(f"MongoDB connected → {db_name}")
    except Exception as e:
        logger.error(f"MongoDB connection error: {e}")
        raise
    return db_name
