import enum
from datetime import datetime, timezone
from werkzeug.security import generate_password_hash, check_password_hash
from extensions import db


def utcnow():
    return datetime.now(timezone.utc)


# ==========================================
#  ENUMS
# ==========================================
class Role(enum.Enum):
    USER = 'USER'
    ADMIN = 'ADMIN'


class DonationType(enum.Enum):
    MONEY = 'MONEY'
    ITEMS = 'ITEMS'


class DonationStatus(enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class PickupStatus(enum.Enum):
    SCHEDULED = 'SCHEDULED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


# ==========================================
#  1. USER MODEL
# ==========================================
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=True)
    email = db.Column(db.Text, unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)

    # Fixed at signup
    role = db.Column(db.Enum(Role), nullable=False, default=Role.USER)

    # --- OPTIONAL LOCATION ---
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    city = db.Column(db.Text, nullable=True)
    country = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    donations = db.relationship('Donation', backref='user', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


# ==========================================
#  2. NGO MODEL
# ==========================================
class NGO(db.Model):
    __tablename__ = 'ngos'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False)
    email = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.Text, nullable=True)
    website = db.Column(db.Text, nullable=True)

    # --- MAP DISCOVERY ---
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    city = db.Column(db.Text, nullable=True)

    # One admin per NGO, one NGO per admin
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    # Deleting the NGO deletes its admin account too
    admin = db.relationship(
        'User',
        backref=db.backref('ngo', uselist=False),
        cascade='save-update, merge, delete',
    )
    donations = db.relationship('Donation', backref='ngo', lazy=True)


# ==========================================
#  3. DONATION MODEL
# ==========================================
class Donation(db.Model):
    __tablename__ = 'donations'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    donation_type = db.Column(db.Enum(DonationType), nullable=False)
    item_name = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Float, nullable=True)  # MONEY only

    status = db.Column(db.Enum(DonationStatus), nullable=False, default=DonationStatus.PENDING, index=True)
    admin_notes = db.Column(db.Text, nullable=True)

    # NULL means the donation sits in the shared pool
    ngo_id = db.Column(db.Integer, db.ForeignKey('ngos.id'), nullable=True, index=True)

    # --- PICKUP SERVICE (ITEMS only) ---
    needs_pickup = db.Column(db.Boolean, nullable=False, default=False)
    pickup_date = db.Column(db.Date, nullable=True)
    pickup_time = db.Column(db.String(5), nullable=True)
    pickup_address = db.Column(db.Text, nullable=True)
    pickup_notes = db.Column(db.Text, nullable=True)
    pickup_status = db.Column(db.Enum(PickupStatus), nullable=True)

    # --- TIMESTAMPS ---
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
