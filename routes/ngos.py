from flask import Blueprint, jsonify
from extensions import db
from services.directory import list_public_ngos

ngos_bp = Blueprint('ngos', __name__)


@ngos_bp.route('/api/ngos', methods=['GET'])
def get_ngos():
    """ Public NGO directory with coordinates for the map. """
    return jsonify({'ngos': list_public_ngos(db.session)}), 200
