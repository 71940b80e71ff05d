import logging
from datetime import datetime
from flask import request, jsonify
from mongoengine import ValidationError

from Models.itemModel import Item, ItemStatus, STATUS_TRANSITIONS
from Utils.appError import AppError
from Utils.hashid_utils import decode_item_slug
from Utils.itemCache import item_cache
from Utils.verification import ItemType, verification_fields

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ('item_name', 'description', 'location')


# ----------------------------------------
# Store operations
# ----------------------------------------
def get_item(item_id):
    """Read one item by id. Malformed ids read as missing."""
    try:
        return Item.objects(id=item_id).first()
    except ValidationError:
        return None


def get_item_or_404(slug):
    item_id = decode_item_slug(slug)
    item = get_item(item_id) if item_id else None
    if not item:
        raise AppError("Item not found", 404)
    return item


def list_items():
    """All items, newest first, through the read-through cache."""
    return item_cache.get(lambda: list(Item.objects.order_by('-created_at')))


def advance_item_status(item_id, from_status):
    """Conditionally move an item one step forward.

    Returns True only when the item was still in `from_status`, so two
    concurrent writers can never both win the same transition.
    """
    to_status = STATUS_TRANSITIONS.get(from_status)
    if to_status is None:
        raise ValueError(f"No forward transition from {from_status}")
    updated = Item.objects(id=item_id, status=from_status).update_one(
        set__status=to_status,
        set__updated_at=datetime.utcnow()
    )
    if updated:
        item_cache.invalidate()
        logger.info(f"Item {item_id} status {from_status} -> {to_status}")
    return bool(updated)


def _matches(item, query):
    # extracted_info is not searchable
    haystack = [getattr(item, field) or '' for field in SEARCHABLE_FIELDS]
    return any(query in value.lower() for value in haystack)


# ----------------------------------------
# HTTP views
# ----------------------------------------
def get_items():
    """List items, optionally filtered by ?q= substring and ?type=."""
    items = list_items()
    query = (request.args.get('q') or '').strip().lower()
    item_type = (request.args.get('type') or '').strip()
    if item_type:
        items = [item for item in items if item.item_type == item_type]
    if query:
        items = [item for item in items if _matches(item, query)]
    return jsonify({
        "success": True,
        "results": len(items),
        "data": [item.to_json() for item in items]
    }), 200


def create_item():
    """Report a found item."""
    data = request.get_json() or {}

    required_fields = ['type', 'item_name', 'description', 'found_date', 'location', 'contact_info']
    for field in required_fields:
        if not data.get(field):
            raise AppError(f"{field.replace('_', ' ').title()} is required", 400)

    if data['type'] not in [e.value for e in ItemType]:
        raise AppError("Invalid item type", 400)

    try:
        found_date = datetime.fromisoformat(str(data['found_date']).replace('Z', '+00:00'))
    except ValueError:
        raise AppError("Invalid date format for found_date", 400)

    pickup_locations = data.get('suggested_pickup_locations') or []
    if not isinstance(pickup_locations, list):
        raise AppError("Suggested pickup locations must be a list", 400)

    item = Item(
        item_type=data['type'],
        item_name=data['item_name'],
        description=data['description'],
        found_date=found_date,
        location=data['location'],
        contact_info=data['contact_info'],
        extracted_info=data.get('extracted_info') or {},
        phone_number=data.get('phone_number') or None,
        image_url=data.get('image_url') or None,
        suggested_pickup_locations=pickup_locations,
    )
    try:
        item.save()
    except ValidationError as e:
        raise AppError(f"Invalid item: {e.message}", 400)

    item_cache.invalidate()
    logger.info(f"Found item reported: {item.id} ({item.item_type})")

    return jsonify({
        "success": True,
        "message": "Item reported successfully",
        "data": item.to_json()
    }), 201


def get_item_by_slug(slug):
    item = get_item_or_404(slug)
    return jsonify({"success": True, "data": item.to_json()}), 200


def get_item_status(slug):
    """Lightweight status read for clients polling for transitions."""
    item = get_item_or_404(slug)
    return jsonify({
        "success": True,
        "data": {
            "id": str(item.id),
            "status": item.status,
            "claimable": item.status == ItemStatus.PENDING.value,
            "updated_at": item.updated_at.isoformat() if item.updated_at else None,
        }
    }), 200


def get_verification_fields(slug):
    item = get_item_or_404(slug)
    return jsonify({
        "success": True,
        "data": [field._asdict() for field in verification_fields(item.item_type)]
    }), 200
