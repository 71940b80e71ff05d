import logging
import re
from flask import request, jsonify

from Controllers.claimController import (
    FinalizeOutcome, finalize_claim, get_claim_or_404, latest_open_claim
)
from Controllers.itemController import get_item
from Models.claimModel import Claim, ClaimStatus, TipStatus
from Utils.limiter import limiter
from Utils.appError import (
    AppError, ClaimNotOpen, InvalidTipRequest, PaymentInitiationFailed, TipNotApplicable
)
from Utils.mpesa import (
    item_id_from_reference, normalize_phone, stk_push, verify_callback_token
)

logger = logging.getLogger("payments")

MIN_TIP_AMOUNT = 50
MPESA_PHONE_PATTERN = re.compile(r'^254\d{9}$')


def _parse_amount(amount):
    if isinstance(amount, bool):
        raise InvalidTipRequest("Tip amount must be a number")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidTipRequest("Tip amount must be a number")
    if not value.is_integer():
        raise InvalidTipRequest("Tip amount must be a whole number")
    if value < MIN_TIP_AMOUNT:
        raise InvalidTipRequest(f"Minimum tip is KES {MIN_TIP_AMOUNT}")
    return int(value)


def _parse_phone(payer_phone):
    if not payer_phone or not str(payer_phone).strip():
        raise InvalidTipRequest("Please provide your phone number")
    phone = normalize_phone(payer_phone)
    if not MPESA_PHONE_PATTERN.match(phone):
        raise InvalidTipRequest("Enter a valid M-Pesa phone number")
    return phone


# ----------------------------------------
# Outbound: STK push
# ----------------------------------------
def initiate_tip(claim_id, item_id, payer_phone, amount):
    """Ask the payer's phone to authorise a tip.

    Returns the gateway acknowledgement as soon as the push is accepted.
    The funds move later and arrive through `reconcile_callback`.
    """
    claim = get_claim_or_404(claim_id)
    if str(claim.item.id) != str(item_id):
        raise InvalidTipRequest("Claim does not belong to this item")
    if claim.status != ClaimStatus.PRE_CLAIMED.value:
        raise ClaimNotOpen(claim.status)

    item = get_item(item_id)
    if not item or not item.accepts_tips:
        raise TipNotApplicable()

    amount = _parse_amount(amount)
    phone = _parse_phone(payer_phone)

    try:
        ack = stk_push(phone, amount, item.id)
    except PaymentInitiationFailed as e:
        Claim.objects(id=claim.id, status=ClaimStatus.PRE_CLAIMED.value).update_one(
            set__tip_status=TipStatus.FAILED.value
        )
        logger.warning(f"Tip initiation failed for claim {claim.id}: {e.description}")
        raise

    Claim.objects(id=claim.id, status=ClaimStatus.PRE_CLAIMED.value).update_one(
        set__tip_status=TipStatus.INITIATED.value,
        set__tip_checkout_request_id=ack.get('CheckoutRequestID')
    )
    logger.info(f"Tip of {amount} initiated for claim {claim.id} (item {item.id})")
    return ack


# ----------------------------------------
# Inbound: gateway callback
# ----------------------------------------
def parse_stk_callback(payload):
    """Flatten an STK callback body. None if it is not one."""
    body = (payload or {}).get('Body') if isinstance(payload, dict) else None
    callback = body.get('stkCallback') if isinstance(body, dict) else None
    if not isinstance(callback, dict):
        return None

    metadata = {}
    for entry in (callback.get('CallbackMetadata') or {}).get('Item') or []:
        if isinstance(entry, dict) and 'Name' in entry:
            metadata[entry['Name']] = entry.get('Value')

    reference = callback.get('AccountReference') or metadata.get('AccountReference')
    return {
        'result_code': str(callback.get('ResultCode')),
        'result_desc': callback.get('ResultDesc'),
        'checkout_request_id': callback.get('CheckoutRequestID'),
        'amount': metadata.get('Amount'),
        'receipt': metadata.get('MpesaReceiptNumber'),
        'transaction_date': metadata.get('TransactionDate'),
        'phone_number': metadata.get('PhoneNumber'),
        'reference': reference,
        'item_id': item_id_from_reference(reference),
    }


def _parse_paid_amount(amount):
    if isinstance(amount, bool):
        return None
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return None
    if value <= 0 or not value.is_integer():
        return None
    return int(value)


def reconcile_callback(payload, item_id=None):
    """Apply a gateway callback to the open claim for its item.

    Matches the newest pre-claimed claim for the referenced item. When the
    callback carries no AccountReference, `item_id` (taken from the signed
    callback URL) identifies the item instead. A re-delivered callback
    finds no pre-claimed claim and changes nothing. A success callback
    without a usable amount is ignored.
    Failed payments change nothing either; the claimant can retry or skip.
    Returns a short summary of what happened.
    """
    result = parse_stk_callback(payload)
    if result is None:
        logger.warning("Ignoring callback without Body.stkCallback")
        return {"outcome": "ignored"}

    if result['result_code'] != '0':
        logger.warning(
            f"Payment failed for {result['reference'] or result['checkout_request_id']}: "
            f"{result['result_code']} {result['result_desc']}"
        )
        return {"outcome": "failed", "result_code": result['result_code']}

    if result['reference']:
        item_id = result['item_id']
    if not item_id or not get_item(item_id):
        logger.warning(f"Callback reference {result['reference']!r} does not match an item")
        return {"outcome": "unmatched"}

    claim = latest_open_claim(item_id)
    if not claim:
        logger.info(f"No pre-claimed claim for item {item_id}; callback already applied")
        return {"outcome": "no-op"}

    amount = _parse_paid_amount(result['amount'])
    if amount is None:
        logger.warning(f"Ignoring success callback for item {item_id} with amount {result['amount']!r}")
        return {"outcome": "ignored"}
    receipt = result['receipt']
    try:
        finalize_claim(
            claim.id, FinalizeOutcome.TIP_PAID,
            tip_amount=amount,
            tip_receipt=receipt,
            tip_message=f"Paid {amount} via M-Pesa. Receipt: {receipt}",
        )
    except ClaimNotOpen:
        # A concurrent delivery finalized it first
        logger.info(f"Claim {claim.id} already finalized; duplicate callback")
        return {"outcome": "no-op"}

    logger.info(f"Tip {receipt} of {amount} settled claim {claim.id} for item {item_id}")
    return {"outcome": "settled", "claim_id": str(claim.id)}


# ----------------------------------------
# HTTP views
# ----------------------------------------
def send_tip(claim_id):
    data = request.get_json() or {}
    claim = get_claim_or_404(claim_id)
    ack = initiate_tip(claim.id, claim.item.id, data.get('phone_number'), data.get('amount'))
    return jsonify({
        "success": True,
        "message": "Check your phone for the M-Pesa prompt to complete the payment.",
        "data": {
            "ResponseCode": ack.get('ResponseCode'),
            "ResponseDescription": ack.get('ResponseDescription'),
            "CustomerMessage": ack.get('CustomerMessage'),
            "CheckoutRequestID": ack.get('CheckoutRequestID'),
        }
    }), 202


@limiter.exempt
def mpesa_callback():
    """Webhook for STK push results. Guarded by the token in the callback URL."""
    payload = request.get_json(silent=True) or {}
    logger.info(f"Callback data: {payload}")

    token_item_id = verify_callback_token(request.args.get('token'))
    if not token_item_id:
        raise AppError("Invalid callback token", 401)
    parsed = parse_stk_callback(payload)
    if parsed and parsed['item_id'] and parsed['item_id'] != token_item_id:
        raise AppError("Callback reference does not match token", 401)

    result = reconcile_callback(payload, item_id=token_item_id)
    return jsonify({"ResultCode": 0, "ResultDesc": "Accepted", "outcome": result["outcome"]}), 200
