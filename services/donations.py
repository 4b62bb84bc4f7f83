"""
Donor-facing donation operations: submitting a donation and reading the
donation history.
"""
import math
from datetime import datetime
from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from models import Donation, DonationStatus, DonationType, NGO, PickupStatus, Role
from errors import ValidationError, InternalError, Unauthenticated
from security import require_role, is_admin
from services.notifications import notify_admin
from utils import INT_MAX, donation_to_dict, format_amount, iso, parse_id

MONEY_ITEM_NAME = "Money Donation"


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _positive_amount(value):
    """Returns the amount as a finite positive float, or None."""
    if not _is_number(value):
        return None
    try:
        amount = float(value)
    except OverflowError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def _positive_quantity(value):
    # 3.0 is accepted as 3, 2.5 is not
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not _is_number(value) or not isinstance(value, int):
        return None
    if value <= 0 or value > INT_MAX:
        return None
    return value


def _parse_pickup_at(pickup_date, pickup_time):
    if not isinstance(pickup_date, str) or not isinstance(pickup_time, str):
        raise ValidationError('Invalid pickup date or time.')
    stamp = f"{pickup_date.strip()} {pickup_time.strip()}"
    for fmt in ('%Y-%m-%d %H:%M', '%Y-%m-%d %H:%M:%S'):
        try:
            return datetime.strptime(stamp, fmt)
        except ValueError:
            continue
    raise ValidationError('Invalid pickup date or time.')


def normalize_ngo_id(raw):
    """None, blank and the literal 'null' all mean the shared pool."""
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == '' or raw == 'null':
            return None
    ngo_id = parse_id(raw)
    if ngo_id is None:
        raise ValidationError('Selected NGO not found.')
    return ngo_id


def _resolve_target_ngo(session, raw):
    ngo_id = normalize_ngo_id(raw)
    if ngo_id is None:
        return None
    if session.get(NGO, ngo_id) is None:
        raise ValidationError('Selected NGO not found.')
    return ngo_id


# ==========================================
#  1. SUBMIT DONATION
# ==========================================
def submit_donation(session, principal, payload):
    require_role(principal, Role.USER, 'Only users can submit donations.')
    data = payload or {}

    raw_type = data.get('donationType')
    if raw_type not in (DonationType.MONEY.value, DonationType.ITEMS.value):
        raise ValidationError('Donation type must be either "MONEY" or "ITEMS".')
    donation_type = DonationType(raw_type)

    fields = {}

    if donation_type is DonationType.MONEY:
        amount = _positive_amount(data.get('amount'))
        if amount is None:
            raise ValidationError('Valid amount is required for money donations.')
        fields.update(
            amount=amount,
            item_name=MONEY_ITEM_NAME,
            quantity=1,
            description=f"Money donation of ₹{format_amount(amount)}",
            needs_pickup=False,
        )

    else:
        item_name = data.get('itemName')
        if not item_name:
            raise ValidationError('Item name is required for item donations.')
        if not isinstance(item_name, str) or not item_name.strip():
            raise ValidationError('Item name must be a valid string.')
        item_name = item_name.strip()

        quantity = data.get('quantity')
        if quantity is not None:
            quantity = _positive_quantity(quantity)
            if quantity is None:
                raise ValidationError('Quantity must be a positive integer.')

        description = data.get('description')
        if description is not None:
            if not isinstance(description, str):
                raise ValidationError('Description must be text.')
            if not description.strip():
                raise ValidationError('Description cannot be empty if provided.')

        fields.update(
            item_name=item_name,
            quantity=quantity or 1,
            description=description.strip() if description else item_name,
            needs_pickup=bool(data.get('needsPickup')),
        )

        if fields['needs_pickup']:
            pickup_date = data.get('pickupDate')
            pickup_time = data.get('pickupTime')
            pickup_address = data.get('pickupAddress')
            if not pickup_date or not pickup_time or not pickup_address:
                raise ValidationError('Pickup date, time, and address are required when pickup service is requested.')
            if not isinstance(pickup_address, str) or not pickup_address.strip():
                raise ValidationError('Pickup address must be a valid string.')

            pickup_at = _parse_pickup_at(pickup_date, pickup_time)
            if pickup_at < datetime.now():
                raise ValidationError('Pickup date and time cannot be in the past.')

            notes = data.get('pickupNotes')
            fields.update(
                pickup_date=pickup_at.date(),
                pickup_time=pickup_at.strftime('%H:%M'),
                pickup_address=pickup_address.strip(),
                pickup_notes=notes.strip() if isinstance(notes, str) and notes.strip() else None,
                pickup_status=PickupStatus.SCHEDULED,
            )

    ngo_id = _resolve_target_ngo(session, data.get('ngoId'))

    donation = Donation(
        user_id=principal.id,
        donation_type=donation_type,
        status=DonationStatus.PENDING,
        ngo_id=ngo_id,
        **fields
    )

    try:
        session.add(donation)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception("Error creating donation for user %s", principal.id)
        raise InternalError('An unexpected error occurred. Please try again.')

    current_app.logger.info(
        "Donation %s (%s) submitted by user %s to %s",
        donation.id, donation_type.value, principal.id,
        f"NGO {ngo_id}" if ngo_id else "the pool",
    )

    try:
        notify_admin(donation)
    except Exception:
        # Don't fail the request if the notification fails
        current_app.logger.exception("Failed to send admin notification for donation %s", donation.id)

    return {
        'id': donation.id,
        'itemName': donation.item_name,
        'quantity': donation.quantity,
        'status': donation.status.value,
        'createdAt': iso(donation.created_at),
    }


# ==========================================
#  2. DONATION HISTORY
# ==========================================
_STATUS_ORDER = case(
    *[(Donation.status == status, index) for index, status in enumerate(DonationStatus)],
    else_=len(DonationStatus),
)


def list_donations(session, principal, status=None):
    """Own donations for a USER, everything for an ADMIN."""
    if principal is None:
        raise Unauthenticated()
    query = session.query(Donation)

    if not is_admin(principal):
        query = query.filter(Donation.user_id == principal.id)

    if status in DonationStatus.__members__:
        query = query.filter(Donation.status == DonationStatus[status])

    donations = query.order_by(_STATUS_ORDER, Donation.created_at.desc(), Donation.id.desc()).all()
    return [donation_to_dict(d, user_with_id=False) for d in donations]
