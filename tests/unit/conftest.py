from datetime import datetime

import mongomock
import pytest
from mongoengine import disconnect

from app import create_app
from Models.claimModel import Claim
from Models.itemModel import Item

TEST_CONFIG = {
    "TESTING": True,
    "MONGODB_URI": "mongodb://localhost/lostnfound_test",
    "MONGO_CLIENT_CLASS": mongomock.MongoClient,
    "RATELIMIT_ENABLED": False,
    "JWT_SECRET": "test-secret",
    "MPESA_CONSUMER_KEY": "key",
    "MPESA_CONSUMER_SECRET": "secret",
    "MPESA_BUSINESS_SHORT_CODE": "174379",
    "MPESA_PASSKEY": "passkey",
    "MPESA_CALLBACK_URL": "https://example.test/api/v1/payments/mpesa/callback",
}


@pytest.fixture
def test_config():
    return dict(TEST_CONFIG)


@pytest.fixture
def app():
    disconnect(alias="default")
    app = create_app(TEST_CONFIG)
    with app.app_context():
        yield app
    Item.drop_collection()
    Claim.drop_collection()
    disconnect(alias="default")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_item(app):
    def _make_item(**overrides):
        data = {
            "item_type": "id_card",
            "item_name": "National ID Card",
            "description": "Found a national ID card near Central Park",
            "found_date": datetime(2025, 4, 8),
            "location": "Central Park, New York",
            "contact_info": "Lost and Found Office, Central Park",
            "extracted_info": {"name": "John Smith", "idNumber": "ID123456"},
            "phone_number": "0712345678",
            "suggested_pickup_locations": ["Central Park Precinct"],
        }
        data.update(overrides)
        item = Item(**data)
        item.save()
        return item

    return _make_item


@pytest.fixture
def john_smith_answers():
    return {"name": "John Smith", "idNumber": "ID123456", "dateOfBirth": "1990-05-15"}


def build_stk_callback(item_id, amount=100, result_code=0, receipt="NLJ7RT61SV"):
    """A Daraja STK callback body as delivered to the webhook."""
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": "ws_CO_191220191020363925",
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0
        else "Request cancelled by user",
        "AccountReference": f"Item-{item_id}",
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20191219102115},
                {"Name": "PhoneNumber", "Value": 254708374149},
            ]
        }
    return {"Body": {"stkCallback": callback}}


@pytest.fixture
def stk_callback():
    return build_stk_callback
