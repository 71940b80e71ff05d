from mongoengine import (
    Document, StringField, DateTimeField, DictField, ListField, ValidationError
)
from datetime import datetime
from enum import Enum
import re

from Utils.hashid_utils import encode_item_id
from Utils.verification import ItemType, masked_extracted_info


class ItemStatus(Enum):
    PENDING = "pending"
    PRE_CLAIMED = "pre-claimed"
    CLAIMED = "claimed"


# Allowed forward moves; status never regresses
STATUS_TRANSITIONS = {
    ItemStatus.PENDING.value: ItemStatus.PRE_CLAIMED.value,
    ItemStatus.PRE_CLAIMED.value: ItemStatus.CLAIMED.value,
}

EXTRACTED_INFO_KEYS = ("name", "idNumber", "dateOfBirth", "cardNumber", "phoneNumber")


class Item(Document):
    # Basic Information
    item_type = StringField(db_field='type', choices=[(e.value, e.value) for e in ItemType],
                            default=ItemType.OTHER.value, required=True)
    item_name = StringField(max_length=200, required=True)
    description = StringField(max_length=1000, required=True)
    found_date = DateTimeField(required=True)
    location = StringField(max_length=500, required=True)

    # Pickup details, only disclosed after a successful claim
    contact_info = StringField(max_length=500, required=True)
    suggested_pickup_locations = ListField(StringField(max_length=200))

    # Type-specific identifying data read off the item by the finder
    extracted_info = DictField()

    # Finder's M-Pesa number; tips are only offered when present
    phone_number = StringField(max_length=20)
    image_url = StringField()

    status = StringField(choices=[(e.value, e.value) for e in ItemStatus],
                         default=ItemStatus.PENDING.value, required=True)

    # Timestamps
    created_at = DateTimeField(default=datetime.utcnow)
    updated_at = DateTimeField(default=datetime.utcnow)

    meta = {
        'collection': 'items',
        'indexes': ['status', 'item_type', '-created_at']
    }

    def clean(self):
        """Validate and normalise the item before saving."""
        if self.extracted_info is None:
            self.extracted_info = {}
        if not isinstance(self.extracted_info, dict):
            raise ValidationError("Extracted info must be an object")
        info = {}
        for key, value in self.extracted_info.items():
            if key not in EXTRACTED_INFO_KEYS:
                raise ValidationError(f"Unknown extracted info field: {key}")
            if value not in (None, ''):
                info[key] = str(value)
        # Keep only the last four digits of a card number
        if info.get('cardNumber'):
            digits = re.sub(r'\D', '', info['cardNumber'])
            if len(digits) < 4:
                raise ValidationError("Card number must include its last 4 digits")
            info['cardNumber'] = digits[-4:]
        self.extracted_info = info

    def save(self, *args, **kwargs):
        self.updated_at = datetime.utcnow()
        return super(Item, self).save(*args, **kwargs)

    @property
    def slug(self):
        return encode_item_id(self.id) if self.id else None

    @property
    def accepts_tips(self):
        return bool(self.phone_number)

    def pickup_details(self):
        return {
            'contact_info': self.contact_info,
            'location': self.location,
            'suggested_pickup_locations': list(self.suggested_pickup_locations or []),
        }

    def to_json(self):
        """Public view of the item. Pickup details, finder phone and extracted-info values are withheld."""
        return {
            'id': str(self.id),
            'slug': self.slug,
            'type': self.item_type,
            'item_name': self.item_name,
            'description': self.description,
            'found_date': self.found_date.date().isoformat() if self.found_date else None,
            'location': self.location,
            'extracted_info': masked_extracted_info(self.extracted_info),
            'image_url': self.image_url,
            'accepts_tips': self.accepts_tips,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
