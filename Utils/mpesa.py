"""Safaricom Daraja (M-Pesa Express / STK push) client."""
import base64
import logging
import re
from datetime import datetime, timedelta, timezone

import httpx
import jwt
from flask import current_app

from Utils.appError import PaymentInitiationFailed

logger = logging.getLogger("payments")

ACCOUNT_REFERENCE_PREFIX = "Item-"
CALLBACK_TOKEN_PURPOSE = "mpesa-callback"
CALLBACK_TOKEN_TTL_HOURS = 24

# Daraja timestamps are East Africa Time (UTC+3, no DST)
EAT = timezone(timedelta(hours=3), "EAT")


def _mpesa_base_url():
    if current_app.config.get('MPESA_ENV', 'sandbox').lower() == 'live':
        return 'https://api.safaricom.co.ke'
    return 'https://sandbox.safaricom.co.ke'


def _timeout():
    return float(current_app.config.get('MPESA_TIMEOUT_SECONDS', 15))


def account_reference(item_id) -> str:
    return f"{ACCOUNT_REFERENCE_PREFIX}{item_id}"


def item_id_from_reference(reference):
    """Strip the known prefix off an AccountReference. None if it is not ours."""
    if not reference or not str(reference).startswith(ACCOUNT_REFERENCE_PREFIX):
        return None
    return str(reference)[len(ACCOUNT_REFERENCE_PREFIX):] or None


def normalize_phone(phone: str) -> str:
    """07XX XXX XXX / +2547XXXXXXXX / 2547XXXXXXXX -> 2547XXXXXXXX"""
    cleaned = re.sub(r'[\s\-()]', '', str(phone or ''))
    return re.sub(r'^(0|\+254)', '254', cleaned)


def generate_timestamp(now=None) -> str:
    now = now or datetime.now(EAT)
    return now.astimezone(EAT).strftime('%Y%m%d%H%M%S')


def generate_password(short_code: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{short_code}{passkey}{timestamp}".encode()).decode()


# ----------------------------
# Callback URL signing
# ----------------------------
def sign_callback_token(item_id) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "item_id": str(item_id),
        "purpose": CALLBACK_TOKEN_PURPOSE,
        "iat": now,
        "exp": now + timedelta(hours=CALLBACK_TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm="HS256")


def verify_callback_token(token):
    """Return the item id the token was issued for, or None if invalid/expired."""
    if not token:
        return None
    try:
        decoded = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None
    if decoded.get("purpose") != CALLBACK_TOKEN_PURPOSE:
        return None
    return decoded.get("item_id")


def callback_url(item_id) -> str:
    base = current_app.config.get('MPESA_CALLBACK_URL')
    if not base:
        raise PaymentInitiationFailed("M-Pesa is not configured")
    separator = '&' if '?' in base else '?'
    return f"{base}{separator}token={sign_callback_token(item_id)}"


# ----------------------------
# Gateway calls
# ----------------------------
def _credentials():
    config = current_app.config
    creds = {
        'consumer_key': config.get('MPESA_CONSUMER_KEY'),
        'consumer_secret': config.get('MPESA_CONSUMER_SECRET'),
        'short_code': config.get('MPESA_BUSINESS_SHORT_CODE'),
        'passkey': config.get('MPESA_PASSKEY'),
    }
    if not all(creds.values()):
        raise PaymentInitiationFailed("M-Pesa is not configured")
    return creds


def _error_description(response, default):
    try:
        body = response.json()
    except ValueError:
        return default
    return body.get('errorMessage') or body.get('ResponseDescription') or default


def get_access_token(client, creds) -> str:
    auth = base64.b64encode(f"{creds['consumer_key']}:{creds['consumer_secret']}".encode()).decode()
    r = client.get(
        f"{_mpesa_base_url()}/oauth/v1/generate",
        params={'grant_type': 'client_credentials'},
        headers={'Authorization': f'Basic {auth}'}
    )
    if r.status_code != 200:
        logger.error(f"M-Pesa OAuth failed with HTTP {r.status_code}")
        raise PaymentInitiationFailed(_error_description(r, "Could not authenticate with M-Pesa"))
    token = r.json().get('access_token')
    if not token:
        raise PaymentInitiationFailed("Could not authenticate with M-Pesa")
    return token


def stk_push(phone_number, amount, item_id, description=None):
    """Send an STK push and return the gateway's synchronous acknowledgement.

    Only ResponseCode "0" counts as accepted. Everything else, including
    timeouts and transport errors, raises PaymentInitiationFailed.
    """
    creds = _credentials()
    timestamp = generate_timestamp()
    phone = normalize_phone(phone_number)
    body = {
        'BusinessShortCode': creds['short_code'],
        'Password': generate_password(creds['short_code'], creds['passkey'], timestamp),
        'Timestamp': timestamp,
        'TransactionType': 'CustomerPayBillOnline',
        'Amount': amount,
        'PartyA': phone,
        'PartyB': creds['short_code'],
        'PhoneNumber': phone,
        'CallBackURL': callback_url(item_id),
        'AccountReference': account_reference(item_id),
        'TransactionDesc': description or f"Tip for found item {item_id}",
    }

    try:
        with httpx.Client(timeout=_timeout()) as c:
            token = get_access_token(c, creds)
            r = c.post(f"{_mpesa_base_url()}/mpesa/stkpush/v1/processrequest", headers={
                'Authorization': f'Bearer {token}',
                'Content-Type': 'application/json'
            }, json=body)
    except httpx.TimeoutException:
        logger.error(f"STK push timed out for item {item_id}")
        raise PaymentInitiationFailed("The payment service took too long to respond. Please try again.")
    except httpx.HTTPError as e:
        logger.error(f"STK push transport error for item {item_id}: {e}")
        raise PaymentInitiationFailed("Could not reach the payment service. Please try again.")

    try:
        result = r.json()
    except ValueError:
        result = {}
    logger.info(f"STK push response for item {item_id}: HTTP {r.status_code} {result}")

    if r.is_success and str(result.get('ResponseCode')) == '0':
        return result
    raise PaymentInitiationFailed(
        result.get('ResponseDescription') or result.get('errorMessage') or "Payment failed"
    )
