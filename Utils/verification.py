"""Ownership verification for claimed items.

The schema table below is the single source of truth for which fields a
claimant must supply per item type. The claim form asks for exactly these
fields and ``verify_claim`` checks exactly these fields.
"""
from collections import namedtuple
from enum import Enum

from Utils.appError import MissingField, VerificationMismatch


class ItemType(Enum):
    ID_CARD = "id_card"
    CREDIT_CARD = "credit_card"
    PHONE = "phone"
    BIRTH_CERTIFICATE = "birth_certificate"
    OTHER = "other"


VerificationField = namedtuple("VerificationField", ["key", "label", "input_type"])

VERIFICATION_SCHEMA = {
    ItemType.ID_CARD: (
        VerificationField("name", "Full Name on ID", "text"),
        VerificationField("idNumber", "ID Number", "text"),
        VerificationField("dateOfBirth", "Date of Birth", "date"),
    ),
    ItemType.CREDIT_CARD: (
        VerificationField("name", "Name on Card", "text"),
        VerificationField("cardNumber", "Last 4 Digits of Card", "text"),
    ),
    ItemType.PHONE: (
        VerificationField("phoneNumber", "Phone Number", "text"),
        VerificationField("phoneModel", "Phone Model", "text"),
    ),
    ItemType.BIRTH_CERTIFICATE: (
        VerificationField("name", "Full Name on Certificate", "text"),
        VerificationField("dateOfBirth", "Date of Birth", "date"),
    ),
    ItemType.OTHER: (
        VerificationField("description", "Describe the item", "text"),
    ),
}

# Any stored extracted-info value can be compared against a claimant's answer,
# so public views only say which details exist
REDACTED = "hidden"


def coerce_item_type(item_type):
    """Map a raw type value onto ItemType, falling back to OTHER."""
    if isinstance(item_type, ItemType):
        return item_type
    try:
        return ItemType(item_type)
    except ValueError:
        return ItemType.OTHER


def verification_fields(item_type):
    """Return the ordered required fields for an item type."""
    return VERIFICATION_SCHEMA[coerce_item_type(item_type)]


def required_fields(item_type):
    return [field.key for field in verification_fields(item_type)]


def _is_blank(value):
    return value is None or str(value).strip() == ""


def verify_claim(item_type, submitted, extracted_info):
    """Decide whether a claimant's answers prove ownership.

    Every required field must be present. Each submitted value is then
    compared with the stored value for the same key, but only when the
    stored value is non-empty; keys the finder never recorded cannot fail
    the check.

    Raises:
        MissingField: first required field left blank.
        VerificationMismatch: any compared value differs.
    """
    submitted = submitted or {}
    extracted_info = extracted_info or {}

    for field in verification_fields(item_type):
        if _is_blank(submitted.get(field.key)):
            raise MissingField(field.key, field.label)

    for key, value in submitted.items():
        stored = extracted_info.get(key)
        if _is_blank(stored):
            continue
        if str(stored) != str(value):
            raise VerificationMismatch()

    return True


def mask_value(field, value):
    """Public stand-in for a stored answer. The value itself is never shown."""
    if _is_blank(value):
        return None
    return REDACTED


def masked_extracted_info(extracted_info):
    """Which identifying details the finder recorded, without their values."""
    return {
        key: mask_value(key, value)
        for key, value in (extracted_info or {}).items()
        if not _is_blank(value)
    }
