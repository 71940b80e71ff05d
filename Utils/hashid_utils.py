from hashids import Hashids
from bson import ObjectId
import os

# Public item slugs, so raw ObjectIds stay out of shared links
HASHIDS_SALT = os.getenv('HASHIDS_SALT', 'lostfound-items-salt')
HASHIDS_MIN_LENGTH = int(os.getenv('HASHIDS_MIN_LENGTH', 10))

hashids = Hashids(salt=HASHIDS_SALT, min_length=HASHIDS_MIN_LENGTH)


def encode_item_id(item_id) -> str:
    """Encode an item ObjectId (or its hex string) into a short slug."""
    return hashids.encode(int(str(item_id), 16))


def decode_item_slug(slug: str) -> str | None:
    """Resolve a slug, or a raw 24-char ObjectId, back into a hex id."""
    if ObjectId.is_valid(slug):
        return str(slug)
    decoded = hashids.decode(slug or "")
    if not decoded:
        return None
    return format(decoded[0], 'x').zfill(24)
