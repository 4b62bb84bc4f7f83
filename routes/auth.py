from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from models import db, User, NGO, Role
from errors import ValidationError, InternalError
from security import issue_token
from utils import parse_float

auth_bp = Blueprint('auth', __name__)


def _require(data, fields, label=''):
    for field in fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f'Missing required field: {label}{field}')


def _coordinates(data, label=''):
    try:
        return (parse_float(data.get('latitude'), f'{label}latitude'),
                parse_float(data.get('longitude'), f'{label}longitude'))
    except ValueError as e:
        raise ValidationError(str(e))


def _email_taken(email):
    return User.query.filter(db.func.lower(User.email) == email.lower()).first() is not None


def _save(*objects):
    try:
        db.session.add_all(objects)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Registration failed")
        raise InternalError()


# ==========================================
#  1. DONOR REGISTRATION
# ==========================================
@auth_bp.route('/api/register', methods=['POST'])
def register_user():
    data = request.get_json(silent=True) or {}
    _require(data, ['name', 'email', 'password'])

    email = data['email'].strip()
    if _email_taken(email):
        raise ValidationError('Email already exists')

    latitude, longitude = _coordinates(data)

    new_user = User(
        name=data['name'].strip(),
        email=email,
        role=Role.USER,
        latitude=latitude,
        longitude=longitude,
        city=data.get('city'),
        country=data.get('country')
    )
    new_user.set_password(data['password'])
    _save(new_user)

    current_app.logger.info("Registered user %s", new_user.id)
    return jsonify({'message': 'Registration successful!', 'user_id': new_user.id}), 201


# ==========================================
#  2. NGO REGISTRATION (Admin + NGO)
# ==========================================
@auth_bp.route('/api/register-ngo', methods=['POST'])
def register_ngo():
    """
    Creates the NGO and the ADMIN account that manages it in one go.
    Body: {name, email, password, ngo: {name, email, ...}}
    """
    data = request.get_json(silent=True) or {}
    _require(data, ['name', 'email', 'password'])

    ngo_data = data.get('ngo')
    if not isinstance(ngo_data, dict):
        raise ValidationError('Missing required field: ngo')
    _require(ngo_data, ['name', 'email'], label='ngo.')

    email = data['email'].strip()
    if _email_taken(email):
        raise ValidationError('Email already exists')

    latitude, longitude = _coordinates(ngo_data, label='ngo.')

    admin = User(name=data['name'].strip(), email=email, role=Role.ADMIN)
    admin.set_password(data['password'])

    ngo = NGO(
        name=ngo_data['name'].strip(),
        email=ngo_data['email'].strip(),
        description=ngo_data.get('description'),
        address=ngo_data.get('address'),
        phone=ngo_data.get('phone'),
        website=ngo_data.get('website'),
        city=ngo_data.get('city'),
        latitude=latitude,
        longitude=longitude,
        admin=admin
    )
    _save(admin, ngo)

    current_app.logger.info("Registered NGO %s with admin %s", ngo.id, admin.id)
    return jsonify({
        'message': 'NGO registered successfully!',
        'ngo_id': ngo.id,
        'admin_id': admin.id
    }), 201


# ==========================================
#  3. LOGIN
# ==========================================
@auth_bp.route('/api/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}

    # 1. Validate Input
    if not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Missing email or password'}), 400

    user = User.query.filter(db.func.lower(User.email) == str(data['email']).strip().lower()).first()

    # 2. Check Password
    if user and user.check_password(data['password']):
        return jsonify({
            'message': 'Login successful!',
            'access_token': issue_token(user),
            'user': {
                'id': user.id,
                'name': user.name,
                'email': user.email,
                'role': user.role.value,
                'ngo_id': user.ngo.id if user.ngo else None
            }
        }), 200

    return jsonify({'error': 'Invalid email or password'}), 401
