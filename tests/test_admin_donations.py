import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from models import Donation, DonationStatus, DonationType, PickupStatus
from extensions import db
from errors import ValidationError
from services import review
from services.review import review_donation, owned_ngo, compute_stats

# ==========================================
#  HELPERS
# ==========================================

def fresh(donation_id):
    db.session.expire_all()
    return db.session.get(Donation, donation_id)


def patch_review(client, headers, donation_id, action, notes=None):
    payload = {"donationId": donation_id, "action": action}
    if notes is not None:
        payload["adminNotes"] = notes
    return client.patch('/api/admin/donations', json=payload, headers=headers)

# ==========================================
#  1. LISTING & SCOPE
# ==========================================

def test_ngo_admin_sees_own_and_pool(client, login, donor, ngo, other_ngo, make_donation):
    mine = make_donation(donor, item_name="Mine", ngo_id=ngo.id)
    make_donation(donor, item_name="Theirs", ngo_id=other_ngo.id)
    pool = make_donation(donor, item_name="Pool")
    make_donation(donor, item_name="Decided pool", status=DonationStatus.REJECTED)

    response = client.get('/api/admin/donations', headers=login(ngo.admin))

    assert response.status_code == 200
    body = response.get_json()
    assert [d['id'] for d in body['donations']] == [mine.id]
    assert [d['id'] for d in body['poolDonations']] == [pool.id]
    assert body['donations'][0]['ngo'] == {'id': ngo.id, 'name': ngo.name}
    assert body['donations'][0]['user']['email'] == donor.email


def test_super_admin_sees_everything(client, login, donor, super_admin, ngo, make_donation):
    make_donation(donor, item_name="Assigned", ngo_id=ngo.id)
    make_donation(donor, item_name="Pool")

    body = client.get('/api/admin/donations', headers=login(super_admin)).get_json()

    assert len(body['donations']) == 2
    # Pool is still reported separately
    assert [d['itemName'] for d in body['poolDonations']] == ["Pool"]


def test_listing_newest_first(client, login, donor, super_admin, make_donation):
    base = datetime(2025, 3, 1, 9, 0)
    make_donation(donor, item_name="First", created_at=base)
    make_donation(donor, item_name="Second", created_at=base + timedelta(minutes=5))

    body = client.get('/api/admin/donations', headers=login(super_admin)).get_json()
    assert [d['itemName'] for d in body['donations']] == ["Second", "First"]


def test_listing_stats(client, login, donor, ngo, make_donation):
    make_donation(donor, ngo_id=ngo.id)
    make_donation(donor, ngo_id=ngo.id, status=DonationStatus.APPROVED,
                  needs_pickup=True, pickup_status=PickupStatus.COMPLETED)
    make_donation(donor, ngo_id=ngo.id, status=DonationStatus.REJECTED)
    make_donation(donor, needs_pickup=True, pickup_status=PickupStatus.SCHEDULED)  # pool

    stats = client.get('/api/admin/donations', headers=login(ngo.admin)).get_json()['stats']

    assert stats == {
        'totalDonations': 3,
        'pendingDonations': 1,
        'approvedDonations': 1,
        'rejectedDonations': 1,
        'poolDonations': 1,
        'pickupRequests': 2,
        'pendingPickups': 1,
    }
    assert stats['totalDonations'] == stats['pendingDonations'] + stats['approvedDonations'] + stats['rejectedDonations']
    assert stats['pickupRequests'] >= stats['pendingPickups']


def test_compute_stats_empty():
    stats = compute_stats([], [])
    assert stats['totalDonations'] == 0
    assert stats['pickupRequests'] == 0


def test_listing_requires_admin(client, donor_headers):
    assert client.get('/api/admin/donations', headers=donor_headers).status_code == 403


def test_listing_requires_login(client):
    assert client.get('/api/admin/donations').status_code == 401


def test_owned_ngo(app, ngo, super_admin):
    assert owned_ngo(db.session, ngo.admin_id).id == ngo.id
    assert owned_ngo(db.session, super_admin.id) is None

# ==========================================
#  2. APPROVE / REJECT
# ==========================================

def test_approve_own_ngo_donation(client, login, donor, ngo, make_donation, outbox):
    donation = make_donation(donor, ngo_id=ngo.id)

    response = patch_review(client, login(ngo.admin), donation.id, "approve", "Thanks!")

    assert response.status_code == 200
    body = response.get_json()
    assert body['message'] == "Donation approved successfully."
    assert body['donation']['status'] == "APPROVED"
    assert body['donation']['adminNotes'] == "Thanks!"
    assert body['donation']['ngoId'] == ngo.id

    assert fresh(donation.id).status == DonationStatus.APPROVED

    # Donor is told
    assert len(outbox) == 1
    assert outbox[0].recipients == [donor.email]
    assert "approved" in outbox[0].subject
    assert "Thanks!" in outbox[0].body


def test_reject_money_donation_mail_mentions_amount(client, login, donor, ngo, make_donation, outbox):
    donation = make_donation(donor, ngo_id=ngo.id, donation_type=DonationType.MONEY,
                             item_name="Money Donation", quantity=1, amount=250.0)

    response = patch_review(client, login(ngo.admin), donation.id, "reject")

    assert response.status_code == 200
    assert fresh(donation.id).status == DonationStatus.REJECTED
    assert fresh(donation.id).admin_notes is None
    assert "Money Donation (₹250)" in outbox[0].body


def test_pool_donation_claimed_by_ngo_admin(client, login, donor, ngo, make_donation):
    donation = make_donation(donor)

    response = patch_review(client, login(ngo.admin), donation.id, "approve")

    assert response.status_code == 200
    assert response.get_json()['donation']['ngoId'] == ngo.id
    assert fresh(donation.id).ngo_id == ngo.id


def test_pool_donation_stays_unassigned_for_super_admin(client, login, donor, super_admin, make_donation):
    donation = make_donation(donor)

    response = patch_review(client, login(super_admin), donation.id, "approve")

    assert response.status_code == 200
    assert response.get_json()['donation']['ngoId'] is None
    assert fresh(donation.id).ngo_id is None


def test_super_admin_can_review_any_ngo_donation(client, login, donor, super_admin, other_ngo, make_donation):
    donation = make_donation(donor, ngo_id=other_ngo.id)

    response = patch_review(client, login(super_admin), donation.id, "reject", "Out of scope")

    assert response.status_code == 200
    updated = fresh(donation.id)
    assert updated.status == DonationStatus.REJECTED
    assert updated.ngo_id == other_ngo.id


def test_ngo_admin_cannot_review_other_ngo(client, login, donor, ngo, other_ngo, make_donation):
    donation = make_donation(donor, ngo_id=other_ngo.id)

    response = patch_review(client, login(ngo.admin), donation.id, "approve")

    assert response.status_code == 403
    assert "your NGO" in response.get_json()['error']
    unchanged = fresh(donation.id)
    assert unchanged.status == DonationStatus.PENDING
    assert unchanged.ngo_id == other_ngo.id


def test_second_review_is_rejected(client, login, donor, ngo, make_donation):
    """Terminal states: a decided donation can't be decided again."""
    donation = make_donation(donor, ngo_id=ngo.id)
    headers = login(ngo.admin)

    assert patch_review(client, headers, donation.id, "approve").status_code == 200
    response = patch_review(client, headers, donation.id, "reject")

    assert response.status_code == 400
    assert "Only pending donations" in response.get_json()['error']
    assert fresh(donation.id).status == DonationStatus.APPROVED

# ==========================================
#  3. PRECONDITION ORDER
# ==========================================

def test_donor_cannot_review(client, donor_headers, donor, make_donation):
    donation = make_donation(donor)
    assert patch_review(client, donor_headers, donation.id, "approve").status_code == 403


def test_role_checked_before_action(client, donor_headers):
    # Bad action AND wrong role: the role wins
    assert patch_review(client, donor_headers, 1, "explode").status_code == 403


@pytest.mark.parametrize("payload", [{"action": "approve"}, {"donationId": 1}])
def test_missing_fields(client, login, super_admin, payload):
    response = client.patch('/api/admin/donations', json=payload, headers=login(super_admin))
    assert response.status_code == 400
    assert "required" in response.get_json()['error']


def test_invalid_action_before_lookup(client, login, super_admin):
    # Unknown donation AND bad action: the action wins
    response = patch_review(client, login(super_admin), 424242, "archive")
    assert response.status_code == 400


def test_unknown_donation(client, login, super_admin):
    response = patch_review(client, login(super_admin), 424242, "approve")
    assert response.status_code == 404


@pytest.mark.parametrize("donation_id", [True, 10 ** 20])
def test_non_id_donation_reference_is_not_found(client, login, donor, super_admin, make_donation, donation_id):
    """true must not be read as donation 1."""
    donation = make_donation(donor)
    assert donation.id == 1

    response = patch_review(client, login(super_admin), donation_id, "approve")

    assert response.status_code == 404
    assert fresh(donation.id).status == DonationStatus.PENDING


def test_ownership_checked_before_status(client, login, donor, ngo, other_ngo, make_donation):
    donation = make_donation(donor, ngo_id=other_ngo.id, status=DonationStatus.APPROVED)
    assert patch_review(client, login(ngo.admin), donation.id, "reject").status_code == 403

# ==========================================
#  4. RACES & FAILURES
# ==========================================

def test_concurrent_decision_loses_cleanly(app, donor, super_admin, make_donation):
    """
    Another reviewer rejects the donation after we read it as PENDING.
    The conditional update matches no row and we get 'already decided'.
    """
    donation = make_donation(donor)
    donation_id = donation.id

    # The competing reviewer wins
    review_donation(db.session, super_admin, donation_id, "reject", "first")

    stale = Donation(id=donation_id, status=DonationStatus.PENDING, ngo_id=None)
    with patch.object(review, '_load_donation', return_value=stale):
        with pytest.raises(ValidationError) as excinfo:
            review_donation(db.session, super_admin, donation_id, "approve", "second")

    assert "Only pending donations" in excinfo.value.message
    final = fresh(donation_id)
    assert final.status == DonationStatus.REJECTED
    assert final.admin_notes == "first"


def test_exactly_one_of_two_reviews_succeeds(app, donor, ngo, super_admin, make_donation):
    donation = make_donation(donor)
    outcomes = []

    for admin, action in [(ngo.admin, "approve"), (super_admin, "reject")]:
        try:
            review_donation(db.session, admin, donation.id, action)
            outcomes.append(action)
        except ValidationError:
            outcomes.append("conflict")

    assert outcomes == ["approve", "conflict"]
    final = fresh(donation.id)
    assert final.status == DonationStatus.APPROVED
    assert final.ngo_id == ngo.id


def test_email_failure_does_not_fail_review(client, login, donor, ngo, make_donation):
    donation = make_donation(donor, ngo_id=ngo.id)

    with patch('extensions.mail.send', side_effect=OSError("smtp down")):
        response = patch_review(client, login(ngo.admin), donation.id, "approve")

    assert response.status_code == 200
    assert fresh(donation.id).status == DonationStatus.APPROVED
