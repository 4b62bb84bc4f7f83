"""
Notification sender: donor/admin emails plus realtime dashboard events.

Every entry point is fire-and-forget from the caller's point of view. When
MAIL_ASYNC is set the email goes out on a background task; failures are
logged here and never reach the request that triggered them.
"""
from flask import current_app
from flask_mail import Message
from extensions import mail, socketio
from models import DonationType, DonationStatus
from utils import format_amount


def _send(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
            app.logger.info("Email '%s' sent to %s", msg.subject, ", ".join(msg.recipients))
        except Exception:
            app.logger.exception("Failed to send email '%s' to %s", msg.subject, ", ".join(msg.recipients))


def _dispatch(msg):
    app = current_app._get_current_object()
    if app.config.get('MAIL_ASYNC', True):
        socketio.start_background_task(_send, app, msg)
    else:
        _send(app, msg)


def _emit(event, payload):
    try:
        socketio.emit(event, payload)
    except Exception:
        current_app.logger.exception("Failed to emit '%s' event", event)


def _item_label(donation):
    if donation.donation_type is DonationType.MONEY:
        return f"Money Donation (₹{format_amount(donation.amount)})"
    return donation.item_name


# ==========================================
#  ADMIN: NEW DONATION
# ==========================================
def notify_admin(donation):
    recipient = current_app.config.get('ADMIN_NOTIFICATION_EMAIL')
    donor = donation.user

    _emit('new_donation', {
        'id': donation.id,
        'itemName': donation.item_name,
        'quantity': donation.quantity,
        'ngoId': donation.ngo_id,
    })

    if not recipient:
        current_app.logger.warning("ADMIN_NOTIFICATION_EMAIL not set; skipping admin email for donation %s", donation.id)
        return

    msg = Message(f"New donation received: {donation.item_name}", recipients=[recipient])
    msg.body = f"""A new donation has been submitted.

Donor: {donor.name or 'Unknown'} <{donor.email}>
Item: {donation.item_name}
Quantity: {donation.quantity}
Description: {donation.description}
Donation ID: {donation.id}

Log in to the admin dashboard to review it.
"""
    _dispatch(msg)


# ==========================================
#  DONOR: DECISION
# ==========================================
def notify_donor(donation, status, notes=None):
    donor = donation.user

    _emit('donation_reviewed', {
        'id': donation.id,
        'status': status.value,
        'userId': donation.user_id,
    })

    verdict = "approved" if status is DonationStatus.APPROVED else "rejected"
    msg = Message(f"Your donation has been {verdict}", recipients=[donor.email])
    body = f"""Hello {donor.name or 'Donor'},

Your donation has been {verdict}.

Item: {_item_label(donation)}
Quantity: {donation.quantity}
Donation ID: {donation.id}
"""
    if notes:
        body += f"\nNotes from the NGO: {notes}\n"
    body += "\nThank you for your generosity!\n"
    msg.body = body
    _dispatch(msg)
