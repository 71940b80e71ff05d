import pytest

import Controllers.tipController as tip_controller
from Controllers.claimController import create_claim, skip_tip
from Controllers.tipController import initiate_tip, parse_stk_callback, reconcile_callback
from Models.claimModel import Claim
from Models.itemModel import Item
from Utils.appError import (
    ClaimNotOpen, InvalidTipRequest, PaymentInitiationFailed, TipNotApplicable
)

ACCEPTED = {
    "MerchantRequestID": "29115-34620561-1",
    "CheckoutRequestID": "ws_CO_191220191020363925",
    "ResponseCode": "0",
    "ResponseDescription": "Success. Request accepted for processing",
    "CustomerMessage": "Success. Request accepted for processing",
}


@pytest.fixture
def gateway(monkeypatch):
    calls = []

    def fake_stk_push(phone_number, amount, item_id, description=None):
        calls.append({"phone": phone_number, "amount": amount, "item_id": str(item_id)})
        return dict(ACCEPTED)

    monkeypatch.setattr(tip_controller, "stk_push", fake_stk_push)
    return calls


@pytest.fixture
def open_claim(make_item, john_smith_answers):
    item = make_item()
    return item, create_claim(item, john_smith_answers)


# ----------------------------
# initiate_tip
# ----------------------------
def test_initiate_tip_returns_gateway_ack(open_claim, gateway) -> None:
    item, claim = open_claim

    ack = initiate_tip(claim.id, item.id, "0722 000 111", 100)

    assert ack["ResponseCode"] == "0"
    assert gateway == [{"phone": "254722000111", "amount": 100, "item_id": str(item.id)}]
    claim.reload()
    assert claim.status == "pre-claimed"
    assert claim.tip_status == "tip-initiated"
    assert claim.tip_checkout_request_id == "ws_CO_191220191020363925"
    assert Item.objects.get(id=item.id).status == "pre-claimed"


@pytest.mark.parametrize("amount", [49, 0, -100, "abc", None, 50.5, True])
def test_initiate_tip_rejects_bad_amounts(open_claim, gateway, amount) -> None:
    item, claim = open_claim
    with pytest.raises(InvalidTipRequest):
        initiate_tip(claim.id, item.id, "0722000111", amount)
    assert gateway == []


def test_minimum_tip_is_accepted(open_claim, gateway) -> None:
    item, claim = open_claim
    initiate_tip(claim.id, item.id, "+254722000111", "50")
    assert gateway[0]["amount"] == 50


@pytest.mark.parametrize("phone", [None, "", "  ", "12345"])
def test_initiate_tip_requires_phone(open_claim, gateway, phone) -> None:
    item, claim = open_claim
    with pytest.raises(InvalidTipRequest):
        initiate_tip(claim.id, item.id, phone, 100)
    assert gateway == []


def test_initiate_tip_needs_finder_phone(make_item, john_smith_answers, gateway) -> None:
    item = make_item(phone_number=None)
    claim = create_claim(item, john_smith_answers)
    with pytest.raises((TipNotApplicable, ClaimNotOpen)):
        initiate_tip(claim.id, item.id, "0722000111", 100)
    assert gateway == []


def test_initiate_tip_after_skip_is_refused(open_claim, gateway) -> None:
    item, claim = open_claim
    skip_tip(claim.id)
    with pytest.raises(ClaimNotOpen):
        initiate_tip(claim.id, item.id, "0722000111", 100)


def test_initiate_tip_checks_claim_item(open_claim, make_item, gateway) -> None:
    _, claim = open_claim
    other = make_item(item_name="Other ID")
    with pytest.raises(InvalidTipRequest):
        initiate_tip(claim.id, other.id, "0722000111", 100)


def test_gateway_rejection_keeps_claim_open(open_claim, monkeypatch) -> None:
    item, claim = open_claim

    def rejecting_stk_push(*args, **kwargs):
        raise PaymentInitiationFailed("Invalid PhoneNumber")

    monkeypatch.setattr(tip_controller, "stk_push", rejecting_stk_push)

    with pytest.raises(PaymentInitiationFailed) as exc:
        initiate_tip(claim.id, item.id, "0722000111", 100)

    assert str(exc.value) == "Invalid PhoneNumber"
    assert exc.value.status_code == 502
    claim.reload()
    assert claim.status == "pre-claimed"
    assert claim.tip_status == "tip-failed"
    assert Item.objects.get(id=item.id).status == "pre-claimed"


def test_tip_can_be_retried_after_failure(open_claim, monkeypatch, gateway) -> None:
    item, claim = open_claim
    Claim.objects(id=claim.id).update_one(set__tip_status="tip-failed")

    initiate_tip(claim.id, item.id, "0722000111", 100)

    assert Claim.objects.get(id=claim.id).tip_status == "tip-initiated"


# ----------------------------
# reconcile_callback
# ----------------------------
def test_parse_stk_callback(stk_callback) -> None:
    parsed = parse_stk_callback(stk_callback("abc123", amount=150))
    assert parsed["result_code"] == "0"
    assert parsed["amount"] == 150
    assert parsed["receipt"] == "NLJ7RT61SV"
    assert parsed["reference"] == "Item-abc123"
    assert parsed["item_id"] == "abc123"
    assert parsed["phone_number"] == 254708374149


def test_successful_callback_claims_item(open_claim, stk_callback) -> None:
    item, claim = open_claim

    result = reconcile_callback(stk_callback(item.id, amount=100))

    assert result == {"outcome": "settled", "claim_id": str(claim.id)}
    claim.reload()
    assert claim.status == "claimed"
    assert claim.tip_amount == 100
    assert claim.tip_status == "tip-settled"
    assert claim.tip_receipt == "NLJ7RT61SV"
    assert claim.tip_message == "Paid 100 via M-Pesa. Receipt: NLJ7RT61SV"
    assert Item.objects.get(id=item.id).status == "claimed"


def test_duplicate_callback_is_a_no_op(open_claim, stk_callback) -> None:
    item, claim = open_claim
    payload = stk_callback(item.id, amount=100)

    reconcile_callback(payload)
    first = Claim.objects.get(id=claim.id)
    result = reconcile_callback(payload)
    second = Claim.objects.get(id=claim.id)

    assert result == {"outcome": "no-op"}
    assert second.finalized_at == first.finalized_at
    assert second.tip_amount == 100
    assert Claim.objects(item=item.id, status="claimed").count() == 1
    assert Item.objects.get(id=item.id).status == "claimed"


def test_failed_payment_changes_nothing(open_claim, stk_callback) -> None:
    item, claim = open_claim

    result = reconcile_callback(stk_callback(item.id, result_code=1032))

    assert result["outcome"] == "failed"
    claim.reload()
    assert claim.status == "pre-claimed"
    assert claim.tip_amount is None
    assert Item.objects.get(id=item.id).status == "pre-claimed"


def test_string_result_code_is_understood(open_claim, stk_callback) -> None:
    item, claim = open_claim
    payload = stk_callback(item.id)
    payload["Body"]["stkCallback"]["ResultCode"] = "0"

    assert reconcile_callback(payload)["outcome"] == "settled"


def test_callback_after_skip_does_not_reopen(open_claim, stk_callback) -> None:
    item, claim = open_claim
    skip_tip(claim.id)

    assert reconcile_callback(stk_callback(item.id))["outcome"] == "no-op"
    claim.reload()
    assert claim.tip_status == "tip-skipped"
    assert claim.tip_amount is None


@pytest.mark.parametrize("payload", [
    {},
    {"Body": {}},
    {"Body": {"stkCallback": "nope"}},
    None,
])
def test_malformed_callbacks_are_ignored(app, payload) -> None:
    assert reconcile_callback(payload) == {"outcome": "ignored"}


def test_unknown_reference_is_unmatched(open_claim, stk_callback) -> None:
    item, claim = open_claim
    payload = stk_callback("I1")
    assert reconcile_callback(payload) == {"outcome": "unmatched"}
    payload["Body"]["stkCallback"]["AccountReference"] = "Order-42"
    assert reconcile_callback(payload) == {"outcome": "unmatched"}
    assert Claim.objects.get(id=claim.id).status == "pre-claimed"


def _drop_metadata(payload, name):
    items = payload["Body"]["stkCallback"]["CallbackMetadata"]["Item"]
    items[:] = [entry for entry in items if entry["Name"] != name]


@pytest.mark.parametrize("amount", [None, "abc", 0, -5])
def test_success_callback_without_usable_amount_is_ignored(open_claim, stk_callback, amount) -> None:
    item, claim = open_claim
    payload = stk_callback(item.id)
    if amount is None:
        _drop_metadata(payload, "Amount")
    else:
        for entry in payload["Body"]["stkCallback"]["CallbackMetadata"]["Item"]:
            if entry["Name"] == "Amount":
                entry["Value"] = amount

    assert reconcile_callback(payload) == {"outcome": "ignored"}
    claim.reload()
    assert claim.status == "pre-claimed"
    assert claim.tip_amount is None
    assert Item.objects.get(id=item.id).status == "pre-claimed"


def test_missing_reference_uses_the_signed_item_id(open_claim, stk_callback) -> None:
    item, claim = open_claim
    payload = stk_callback(item.id, amount=200)
    del payload["Body"]["stkCallback"]["AccountReference"]

    assert reconcile_callback(payload) == {"outcome": "unmatched"}
    assert reconcile_callback(payload, item_id=str(item.id)) == {"outcome": "settled", "claim_id": str(claim.id)}
    assert Claim.objects.get(id=claim.id).tip_amount == 200


def test_echoed_reference_wins_over_signed_item_id(open_claim, make_item, stk_callback) -> None:
    item, claim = open_claim
    other = make_item(item_name="Other ID")

    result = reconcile_callback(stk_callback(item.id), item_id=str(other.id))

    assert result["outcome"] == "settled"
    assert Claim.objects.get(id=claim.id).status == "claimed"
