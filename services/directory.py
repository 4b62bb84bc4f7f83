"""NGO and user directory operations."""
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from models import Donation, NGO, Role, User
from errors import InternalError, NotFound, ValidationError
from security import require_role
from services.review import owned_ngo
from utils import iso, ngo_to_dict, parse_float, parse_id, user_summary

TEXT_FIELDS = ('name', 'email', 'description', 'address', 'phone', 'website', 'city')
KEEP_IF_BLANK = ('name', 'email', 'city')


def _coordinate(data, field):
    try:
        return parse_float(data.get(field), field)
    except ValueError as e:
        raise ValidationError(str(e))


def _commit(session, what):
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Error %s", what)
        raise InternalError()


# ==========================================
#  1. PUBLIC DIRECTORY (map discovery)
# ==========================================
def list_public_ngos(session):
    ngos = session.query(NGO).order_by(NGO.created_at.desc(), NGO.id.desc()).all()
    return [ngo_to_dict(n) for n in ngos]


# ==========================================
#  2. OWN NGO (scoped to admin_id)
# ==========================================
def _own_ngo_or_404(session, principal):
    require_role(principal, Role.ADMIN)
    ngo = owned_ngo(session, principal.id)
    if ngo is None:
        raise NotFound('NGO not found')
    return ngo


def get_own_ngo(session, principal):
    ngo = _own_ngo_or_404(session, principal)
    return {**ngo_to_dict(ngo), 'admin': user_summary(ngo.admin)}


def update_own_ngo(session, principal, data):
    ngo = _own_ngo_or_404(session, principal)
    data = data or {}

    for field in TEXT_FIELDS:
        if field in data:
            value = data[field]
            if field in KEEP_IF_BLANK and not value:
                continue
            setattr(ngo, field, value)

    # Empty coordinates leave the stored ones untouched
    for field in ('latitude', 'longitude'):
        if data.get(field):
            setattr(ngo, field, _coordinate(data, field))

    _commit(session, f"updating NGO {ngo.id}")
    current_app.logger.info("NGO %s updated by its admin %s", ngo.id, principal.id)
    return ngo_to_dict(ngo)


# ==========================================
#  3. ADMIN-WIDE NGO MANAGEMENT
# ==========================================
def list_all_ngos(session, principal):
    require_role(principal, Role.ADMIN)

    counts = dict(
        session.query(Donation.ngo_id, func.count(Donation.id))
        .filter(Donation.ngo_id.isnot(None))
        .group_by(Donation.ngo_id)
        .all()
    )
    ngos = session.query(NGO).order_by(NGO.created_at.desc(), NGO.id.desc()).all()

    return [{
        **ngo_to_dict(n),
        'admin': user_summary(n.admin),
        '_count': {'donations': counts.get(n.id, 0)},
    } for n in ngos]


def _get_ngo(session, ngo_id):
    if not ngo_id:
        raise ValidationError('NGO ID is required')
    ngo_id = parse_id(ngo_id)
    if ngo_id is None:
        raise NotFound('NGO not found')
    ngo = session.get(NGO, ngo_id)
    if ngo is None:
        raise NotFound('NGO not found')
    return ngo


def update_any_ngo(session, principal, data):
    require_role(principal, Role.ADMIN)
    data = dict(data or {})
    ngo = _get_ngo(session, data.pop('ngoId', None))

    if data.pop('action', None) != 'update':
        raise ValidationError('Invalid action')

    for field in TEXT_FIELDS:
        if field not in data:
            continue
        if field in KEEP_IF_BLANK and not data[field]:
            continue
        setattr(ngo, field, data[field])

    for field in ('latitude', 'longitude'):
        if field in data:
            setattr(ngo, field, _coordinate(data, field))

    _commit(session, f"updating NGO {ngo.id}")
    current_app.logger.info("NGO %s updated by admin %s", ngo.id, principal.id)
    return ngo_to_dict(ngo)


def delete_ngo(session, principal, ngo_id):
    """Deletes an NGO with no donations. Its admin account goes with it."""
    require_role(principal, Role.ADMIN)
    ngo = _get_ngo(session, ngo_id)

    donation_count = session.query(Donation).filter(Donation.ngo_id == ngo.id).count()
    if donation_count > 0:
        raise ValidationError('Cannot delete NGO with existing donations. Please transfer or remove donations first.')

    admin_id = ngo.admin_id
    session.delete(ngo)
    _commit(session, f"deleting NGO {ngo_id}")
    current_app.logger.warning(
        "NGO %s deleted by admin %s (admin account %s removed with it)",
        ngo_id, principal.id, admin_id,
    )


# ==========================================
#  4. USER DIRECTORY
# ==========================================
def list_users(session, principal):
    require_role(principal, Role.ADMIN, 'Unauthorized. Admin access required.')
    users = session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    results = []
    for u in users:
        item = {
            'id': u.id,
            'name': u.name,
            'email': u.email,
            'role': u.role.value,
            'createdAt': iso(u.created_at),
        }
        if u.latitude is not None and u.longitude is not None:
            item['location'] = {
                'lat': u.latitude,
                'lng': u.longitude,
                'city': u.city,
                'country': u.country,
            }
        results.append(item)
    return results
