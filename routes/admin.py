from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from extensions import db
from services.review import list_for_admin, review_donation
from services.directory import (
    get_own_ngo, update_own_ngo, list_all_ngos, update_any_ngo, delete_ngo, list_users
)

admin_bp = Blueprint('admin', __name__)

# ==========================================
#  1. DONATION REVIEW
# ==========================================
@admin_bp.route('/api/admin/donations', methods=['GET'])
@jwt_required()
def get_admin_donations():
    """
    Donations in this admin's scope, the pending pool and dashboard stats.
    Admins without an NGO see every donation.
    """
    return jsonify(list_for_admin(db.session, current_user)), 200


@admin_bp.route('/api/admin/donations', methods=['PATCH'])
@jwt_required()
def update_donation_status():
    """ Approve or reject a pending donation. """
    data = request.get_json(silent=True) or {}
    action = data.get('action')

    donation = review_donation(
        db.session,
        current_user,
        data.get('donationId'),
        action,
        data.get('adminNotes'),
    )

    return jsonify({
        'message': f'Donation {action}d successfully.',
        'donation': donation
    }), 200


# ==========================================
#  2. MY NGO
# ==========================================
@admin_bp.route('/api/admin/ngo', methods=['GET'])
@jwt_required()
def get_my_ngo():
    return jsonify({'ngo': get_own_ngo(db.session, current_user)}), 200


@admin_bp.route('/api/admin/ngo', methods=['PATCH'])
@jwt_required()
def update_my_ngo():
    data = request.get_json(silent=True) or {}
    ngo = update_own_ngo(db.session, current_user, data)
    return jsonify({'message': 'NGO updated successfully', 'ngo': ngo}), 200


# ==========================================
#  3. ALL NGOS
# ==========================================
@admin_bp.route('/api/admin/ngos', methods=['GET'])
@jwt_required()
def get_all_ngos():
    return jsonify({'ngos': list_all_ngos(db.session, current_user)}), 200


@admin_bp.route('/api/admin/ngos', methods=['PATCH'])
@jwt_required()
def update_ngo():
    """ Body: {ngoId, action: 'update', ...fields} """
    data = request.get_json(silent=True) or {}
    ngo = update_any_ngo(db.session, current_user, data)
    return jsonify({'message': 'NGO updated successfully', 'ngo': ngo}), 200


@admin_bp.route('/api/admin/ngos', methods=['DELETE'])
@jwt_required()
def remove_ngo():
    """
    Usage: DELETE /api/admin/ngos?id=3
    Blocked while the NGO has donations. Also deletes the NGO's admin account.
    """
    delete_ngo(db.session, current_user, request.args.get('id'))
    return jsonify({'message': 'NGO deleted successfully'}), 200


# ==========================================
#  4. USERS
# ==========================================
@admin_bp.route('/api/admin/users', methods=['GET'])
@jwt_required()
def get_users():
    return jsonify({'success': True, 'users': list_users(db.session, current_user)}), 200
