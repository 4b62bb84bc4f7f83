from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from extensions import db
from services.donations import submit_donation, list_donations

donations_bp = Blueprint('donations', __name__)

# ==========================================
#  1. CREATE DONATION
# ==========================================
@donations_bp.route('/api/donations', methods=['POST'])
@jwt_required()
def create_donation():
    data = request.get_json(silent=True) or {}
    donation = submit_donation(db.session, current_user, data)

    return jsonify({
        'message': 'Donation submitted successfully!',
        'donation': donation
    }), 201


# ==========================================
#  2. DONATION HISTORY
# ==========================================
@donations_bp.route('/api/donations', methods=['GET'])
@jwt_required()
def get_donations():
    """
    Donors see their own donations, admins see everything.
    Optional ?status=PENDING|APPROVED|REJECTED filter.
    """
    donations = list_donations(db.session, current_user, request.args.get('status'))
    return jsonify({'donations': donations}), 200
