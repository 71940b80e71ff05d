from mongoengine import (
    Document, ReferenceField, DictField, StringField, IntField,
    BooleanField, DateTimeField
)
from datetime import datetime
from enum import Enum


class ClaimStatus(Enum):
    PENDING = "pending"
    PRE_CLAIMED = "pre-claimed"
    CLAIMED = "claimed"
    REJECTED = "rejected"


class TipStatus(Enum):
    NO_TIP_NEEDED = "no-tip-needed"
    OFFERED = "tip-offered"
    INITIATED = "tip-initiated"
    SETTLED = "tip-settled"
    FAILED = "tip-failed"
    SKIPPED = "tip-skipped"


class Claim(Document):
    item = ReferenceField('Item', required=True)
    # Claimant answers, stored as submitted for audit
    verification_info = DictField()
    status = StringField(choices=[(e.value, e.value) for e in ClaimStatus],
                         default=ClaimStatus.PENDING.value, required=True)
    claim_date = DateTimeField(default=datetime.utcnow)
    finalized_at = DateTimeField()

    # Tip tracking
    tip_status = StringField(choices=[(e.value, e.value) for e in TipStatus])
    tip_amount = IntField(min_value=0)
    tip_message = StringField()
    tip_receipt = StringField()
    tip_checkout_request_id = StringField()

    # Claimant feedback
    rating = IntField(min_value=1, max_value=5)
    referral = BooleanField()

    meta = {
        'collection': 'claims',
        'indexes': [('item', 'status', '-claim_date'), 'status']
    }

    def to_json(self):
        """Claim view for the claimant. Verification answers are not echoed back."""
        return {
            'id': str(self.id),
            'item_id': str(self.item.id) if self.item else None,
            'status': self.status,
            'claim_date': self.claim_date.isoformat() if self.claim_date else None,
            'finalized_at': self.finalized_at.isoformat() if self.finalized_at else None,
            'tip_status': self.tip_status,
            'tip_amount': self.tip_amount,
            'tip_message': self.tip_message,
            'rating': self.rating,
            'referral': self.referral,
        }
