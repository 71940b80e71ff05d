import logging
from datetime import datetime, timedelta
from enum import Enum
from flask import request, jsonify
from mongoengine import ValidationError

from Controllers.itemController import advance_item_status, get_item, get_item_or_404
from Models.claimModel import Claim, ClaimStatus, TipStatus
from Models.itemModel import ItemStatus
from Utils.appError import (
    AppError, ClaimNotFound, ClaimNotOpen, ItemNotClaimable, VerificationMismatch
)
from Utils.limiter import limiter, claim_limit
from Utils.verification import verify_claim

logger = logging.getLogger(__name__)

PICKUP_WINDOW_HOURS = 72


class FinalizeOutcome(Enum):
    TIP_PAID = "tip-paid"
    TIP_SKIPPED = "tip-skipped"
    NO_TIP_NEEDED = "no-tip-needed"


OUTCOME_TIP_STATUS = {
    FinalizeOutcome.TIP_PAID: TipStatus.SETTLED.value,
    FinalizeOutcome.TIP_SKIPPED: TipStatus.SKIPPED.value,
    FinalizeOutcome.NO_TIP_NEEDED: TipStatus.NO_TIP_NEEDED.value,
}


# ----------------------------------------
# Claim store helpers
# ----------------------------------------
def get_claim(claim_id):
    try:
        return Claim.objects(id=claim_id).first()
    except ValidationError:
        return None


def get_claim_or_404(claim_id):
    claim = get_claim(claim_id)
    if not claim:
        raise ClaimNotFound(claim_id)
    return claim


def latest_open_claim(item_id):
    """Most recent pre-claimed claim for an item, or None."""
    return Claim.objects(
        item=item_id, status=ClaimStatus.PRE_CLAIMED.value
    ).order_by('-claim_date').first()


def _ensure_open(claim_id):
    """Raise the right error for a claim that failed a conditional update."""
    claim = get_claim(claim_id)
    if not claim:
        raise ClaimNotFound(claim_id)
    raise ClaimNotOpen(claim.status)


# ----------------------------------------
# Lifecycle operations
# ----------------------------------------
def create_claim(item, verification_info):
    """Verify a claimant and open a pre-claimed claim on the item.

    The item's pending -> pre-claimed move is a conditional update against
    the store; a claimant who loses that race gets ItemNotClaimable and
    their claim row is kept as rejected.
    """
    if item.status != ItemStatus.PENDING.value:
        raise ItemNotClaimable()

    if not isinstance(verification_info, dict):
        raise AppError("Verification info must be an object", 400)
    answers = {key: str(value) for key, value in verification_info.items() if value is not None}

    try:
        verify_claim(item.item_type, answers, item.extracted_info)
    except VerificationMismatch:
        logger.warning(f"Verification mismatch on item {item.id}")
        raise

    claim = Claim(item=item, verification_info=answers, status=ClaimStatus.PENDING.value)
    claim.save()

    if not advance_item_status(item.id, ItemStatus.PENDING.value):
        Claim.objects(id=claim.id).update_one(set__status=ClaimStatus.REJECTED.value)
        logger.warning(f"Claim {claim.id} rejected: item {item.id} no longer pending")
        raise ItemNotClaimable()

    tip_status = TipStatus.OFFERED if item.accepts_tips else TipStatus.NO_TIP_NEEDED
    Claim.objects(id=claim.id, status=ClaimStatus.PENDING.value).update_one(
        set__status=ClaimStatus.PRE_CLAIMED.value,
        set__tip_status=tip_status.value
    )
    logger.info(f"Claim {claim.id} pre-claimed item {item.id} ({tip_status.value})")

    if not item.accepts_tips:
        return finalize_claim(claim.id, FinalizeOutcome.NO_TIP_NEEDED)

    claim.reload()
    return claim


def finalize_claim(claim_id, outcome, **fields):
    """Move a pre-claimed claim, and its item, to claimed.

    Extra keyword arguments are stored on the claim in the same update.
    Raises ClaimNotFound / ClaimNotOpen when the claim is missing or no
    longer pre-claimed.
    """
    outcome = FinalizeOutcome(outcome)
    updates = {f"set__{name}": value for name, value in fields.items()}
    try:
        updated = Claim.objects(id=claim_id, status=ClaimStatus.PRE_CLAIMED.value).update_one(
            set__status=ClaimStatus.CLAIMED.value,
            set__tip_status=OUTCOME_TIP_STATUS[outcome],
            set__finalized_at=datetime.utcnow(),
            **updates
        )
    except ValidationError:
        raise ClaimNotFound(claim_id)
    if not updated:
        _ensure_open(claim_id)

    claim = get_claim(claim_id)
    item_id = claim.item.id
    if not advance_item_status(item_id, ItemStatus.PRE_CLAIMED.value):
        logger.error(f"Claim {claim_id} finalized but item {item_id} was not pre-claimed")
    logger.info(f"Claim {claim_id} claimed ({outcome.value})")
    return claim


def skip_tip(claim_id):
    """Claimant declined to tip; no gateway interaction."""
    return finalize_claim(claim_id, FinalizeOutcome.TIP_SKIPPED)


def submit_feedback(claim_id, rating=None, referral=None):
    claim = get_claim_or_404(claim_id)
    if claim.status == ClaimStatus.REJECTED.value:
        raise ClaimNotOpen(claim.status)

    updates = {}
    if rating is not None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise AppError("Rating must be a whole number from 1 to 5", 400)
        updates['set__rating'] = rating
    if referral is not None:
        if not isinstance(referral, bool):
            raise AppError("Referral must be true or false", 400)
        updates['set__referral'] = referral
    if not updates:
        raise AppError("Nothing to update", 400)

    Claim.objects(id=claim.id).update_one(**updates)
    claim.reload()
    return claim


def find_stale_claims(hours=PICKUP_WINDOW_HOURS, now=None):
    """Pre-claimed claims older than the pickup window. Report only."""
    cutoff = (now or datetime.utcnow()) - timedelta(hours=hours)
    return list(Claim.objects(
        status=ClaimStatus.PRE_CLAIMED.value, claim_date__lt=cutoff
    ).order_by('claim_date'))


# ----------------------------------------
# HTTP views
# ----------------------------------------
@limiter.limit(claim_limit)
def submit_claim(slug):
    """Verify ownership and claim an item."""
    item = get_item_or_404(slug)
    data = request.get_json() or {}
    claim = create_claim(item, data.get('verification_info') or {})
    item = get_item(item.id)

    return jsonify({
        "success": True,
        "message": "Item claimed. Visit the pickup location with proper identification.",
        "data": {
            "claim": claim.to_json(),
            "item_status": item.status,
            "tip_offered": claim.tip_status == TipStatus.OFFERED.value,
            "pickup": item.pickup_details(),
            "pickup_window_hours": PICKUP_WINDOW_HOURS,
        }
    }), 201


def get_claim_by_id(claim_id):
    claim = get_claim_or_404(claim_id)
    return jsonify({"success": True, "data": claim.to_json()}), 200


def skip_claim_tip(claim_id):
    get_claim_or_404(claim_id)
    claim = skip_tip(claim_id)
    return jsonify({"success": True, "data": claim.to_json()}), 200


def leave_feedback(claim_id):
    data = request.get_json() or {}
    claim = submit_feedback(claim_id, data.get('rating'), data.get('referral'))
    return jsonify({"success": True, "data": claim.to_json()}), 200
