from flask import Blueprint
from Controllers.itemController import (
    get_items, create_item, get_item_by_slug, get_item_status, get_verification_fields
)
from Controllers.claimController import submit_claim

# ----------------------------
# Item API routes
# ----------------------------
item_routes = Blueprint('item_routes', __name__, url_prefix='/api/v1/items')

item_routes.add_url_rule('', view_func=get_items, methods=['GET'])
item_routes.add_url_rule('', view_func=create_item, methods=['POST'])
item_routes.add_url_rule('/<slug>', view_func=get_item_by_slug, methods=['GET'])
item_routes.add_url_rule('/<slug>/status', view_func=get_item_status, methods=['GET'])
item_routes.add_url_rule('/<slug>/verification-fields', view_func=get_verification_fields, methods=['GET'])

# Claiming starts from the item
item_routes.add_url_rule('/<slug>/claims', view_func=submit_claim, methods=['POST'])
