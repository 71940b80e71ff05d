from flask import Blueprint
from Controllers.claimController import get_claim_by_id, skip_claim_tip, leave_feedback
from Controllers.tipController import send_tip, mpesa_callback

# ----------------------------
# Claim API routes
# ----------------------------
claim_routes = Blueprint('claim_routes', __name__, url_prefix='/api/v1/claims')

claim_routes.add_url_rule('/<claim_id>', view_func=get_claim_by_id, methods=['GET'])
claim_routes.add_url_rule('/<claim_id>/tip', view_func=send_tip, methods=['POST'])
claim_routes.add_url_rule('/<claim_id>/skip-tip', view_func=skip_claim_tip, methods=['POST'])
claim_routes.add_url_rule('/<claim_id>/feedback', view_func=leave_feedback, methods=['POST'])

# ----------------------------
# Payment gateway webhooks
# ----------------------------
payment_routes = Blueprint('payment_routes', __name__, url_prefix='/api/v1/payments')

payment_routes.add_url_rule('/mpesa/callback', view_func=mpesa_callback, methods=['POST'])
