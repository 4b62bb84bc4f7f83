import math

# Upper bound of an INTEGER column
INT_MAX = 2147483647


def iso(value):
    return value.isoformat() if value else None


def enum_value(value):
    return value.value if value is not None else None


def parse_id(value):
    """Integer or numeric-string id, or None when it cannot name a row."""
    if isinstance(value, bool):
        return None
    try:
        value = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not 0 < value <= INT_MAX:
        return None
    return value


def format_amount(amount):
    """1500.5 -> '1500.5', 200.0 -> '200'."""
    if float(amount).is_integer():
        return str(int(amount))
    return ('%f' % amount).rstrip('0').rstrip('.')


def parse_float(value, field):
    """Parses a coordinate sent as a number or numeric string."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError(f'{field} must be a number')
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValueError(f'{field} must be a number')
    if not math.isfinite(parsed):
        raise ValueError(f'{field} must be a number')
    return parsed


# ==========================================
#  SERIALIZERS
# ==========================================
def user_summary(user, with_id=True):
    if user is None:
        return None
    data = {'name': user.name, 'email': user.email}
    if with_id:
        data = {'id': user.id, **data}
    return data


def ngo_summary(ngo):
    if ngo is None:
        return None
    return {'id': ngo.id, 'name': ngo.name}


def donation_to_dict(d, user_with_id=True, include_ngo=True):
    data = {
        'id': d.id,
        'donationType': enum_value(d.donation_type),
        'itemName': d.item_name,
        'quantity': d.quantity,
        'description': d.description,
        'amount': d.amount,
        'status': enum_value(d.status),
        'adminNotes': d.admin_notes,
        'ngoId': d.ngo_id,
        'createdAt': iso(d.created_at),
        'updatedAt': iso(d.updated_at),
        # Pickup service
        'needsPickup': d.needs_pickup,
        'pickupDate': iso(d.pickup_date),
        'pickupTime': d.pickup_time,
        'pickupAddress': d.pickup_address,
        'pickupNotes': d.pickup_notes,
        'pickupStatus': enum_value(d.pickup_status),
        'user': user_summary(d.user, with_id=user_with_id),
    }
    if include_ngo:
        data['ngo'] = ngo_summary(d.ngo)
    return data


def ngo_to_dict(ngo):
    return {
        'id': ngo.id,
        'name': ngo.name,
        'email': ngo.email,
        'description': ngo.description,
        'address': ngo.address,
        'phone': ngo.phone,
        'website': ngo.website,
        'latitude': ngo.latitude,
        'longitude': ngo.longitude,
        'city': ngo.city,
        'createdAt': iso(ngo.created_at),
    }
