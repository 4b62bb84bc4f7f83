"""
Donation review: the admin-side state machine.

A donation starts PENDING and is decided exactly once, to APPROVED or
REJECTED. Which donations an admin may see and decide depends on whether
they own an NGO:

* NGO admin  -> donations of their NGO, plus the shared pool (ngo_id NULL).
* Super admin (no NGO) -> every donation in the system.

Deciding a pool donation as an NGO admin claims it for that NGO.
"""
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from models import Donation, DonationStatus, NGO, PickupStatus, Role, utcnow
from errors import Forbidden, InternalError, NotFound, ValidationError
from security import require_role
from services.notifications import notify_donor
from utils import donation_to_dict, iso, parse_id

ACTIONS = {
    'approve': DonationStatus.APPROVED,
    'reject': DonationStatus.REJECTED,
}
ACTIVE_PICKUP_STATUSES = (PickupStatus.SCHEDULED, PickupStatus.IN_PROGRESS)
ALREADY_DECIDED = 'Only pending donations can be approved or rejected.'


def owned_ngo(session, admin_id):
    """The NGO administered by ``admin_id``, or None for a super admin."""
    return session.query(NGO).filter_by(admin_id=admin_id).one_or_none()


def can_manage(donation, admin_ngo):
    if admin_ngo is None:
        return True
    return donation.ngo_id is None or donation.ngo_id == admin_ngo.id


def compute_stats(donations, pool_donations):
    combined = list(donations) + list(pool_donations)
    pickups = [d for d in combined if d.needs_pickup]
    return {
        'totalDonations': len(donations),
        'pendingDonations': sum(1 for d in donations if d.status is DonationStatus.PENDING),
        'approvedDonations': sum(1 for d in donations if d.status is DonationStatus.APPROVED),
        'rejectedDonations': sum(1 for d in donations if d.status is DonationStatus.REJECTED),
        'poolDonations': len(pool_donations),
        'pickupRequests': len(pickups),
        'pendingPickups': sum(1 for d in pickups if d.pickup_status in ACTIVE_PICKUP_STATUSES),
    }


# ==========================================
#  1. ADMIN LISTING
# ==========================================
def list_for_admin(session, principal):
    require_role(principal, Role.ADMIN)
    admin_ngo = owned_ngo(session, principal.id)

    newest_first = (Donation.created_at.desc(), Donation.id.desc())

    query = session.query(Donation)
    if admin_ngo is not None:
        query = query.filter(Donation.ngo_id == admin_ngo.id)
    donations = query.order_by(*newest_first).all()

    pool_donations = session.query(Donation).filter(
        Donation.ngo_id.is_(None),
        Donation.status == DonationStatus.PENDING,
    ).order_by(*newest_first).all()

    return {
        'donations': [donation_to_dict(d) for d in donations],
        'poolDonations': [donation_to_dict(d, include_ngo=False) for d in pool_donations],
        'stats': compute_stats(donations, pool_donations),
    }


# ==========================================
#  2. APPROVE / REJECT
# ==========================================
def _load_donation(session, donation_id):
    donation_id = parse_id(donation_id)
    if donation_id is None:
        return None
    return session.get(Donation, donation_id)


def review_donation(session, principal, donation_id, action, admin_notes=None):
    # Checks run in a fixed order; the first failure wins.
    require_role(principal, Role.ADMIN)

    if not donation_id or not action:
        raise ValidationError('Donation ID and action are required.')
    if action not in ACTIONS:
        raise ValidationError('Action must be either "approve" or "reject".')
    if admin_notes is not None and not isinstance(admin_notes, str):
        raise ValidationError('Admin notes must be text.')

    donation = _load_donation(session, donation_id)
    if donation is None:
        raise NotFound('Donation not found.')

    admin_ngo = owned_ngo(session, principal.id)
    if not can_manage(donation, admin_ngo):
        raise Forbidden('You can only manage donations for your NGO or from the general pool.')

    if donation.status is not DonationStatus.PENDING:
        raise ValidationError(ALREADY_DECIDED)

    new_status = ACTIONS[action]
    if donation.ngo_id is not None:
        target_ngo_id = donation.ngo_id
    else:
        target_ngo_id = admin_ngo.id if admin_ngo is not None else None

    # Compare-and-swap on status: a concurrent reviewer that got there first
    # leaves zero matching rows.
    try:
        updated = session.query(Donation).filter(
            Donation.id == donation.id,
            Donation.status == DonationStatus.PENDING,
        ).update({
            Donation.status: new_status,
            Donation.admin_notes: admin_notes or None,
            Donation.ngo_id: target_ngo_id,
            Donation.updated_at: utcnow(),
        }, synchronize_session=False)

        if updated == 0:
            session.rollback()
            raise ValidationError(ALREADY_DECIDED)

        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Error updating status of donation %s", donation_id)
        raise InternalError()

    session.refresh(donation)

    current_app.logger.info(
        "Donation %s %sd by admin %s %s",
        donation.id, action, principal.id,
        f"(NGO: {admin_ngo.name})" if admin_ngo is not None else "(Super Admin)",
    )

    try:
        notify_donor(donation, donation.status, donation.admin_notes)
    except Exception:
        # Don't fail the request if the notification fails
        current_app.logger.exception("Failed to send donor notification for donation %s", donation.id)

    return {
        'id': donation.id,
        'status': donation.status.value,
        'updatedAt': iso(donation.updated_at),
        'adminNotes': donation.admin_notes,
        'ngoId': donation.ngo_id,
    }
