"""Database models for the contacts book."""
from datetime import datetime, timezone

import bcrypt
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ROLE_NAMES = ('Admin', 'User', 'ReadOnly')

user_roles = db.Table(
    'user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
)


class Contact(db.Model):
    __tablename__ = 'contacts'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)

    # Children go away with their contact
    emails = db.relationship('Email', backref='contact', lazy=True,
                             cascade='all, delete-orphan', order_by='Email.id')
    phones = db.relationship('Phone', backref='contact', lazy=True,
                             cascade='all, delete-orphan', order_by='Phone.id')
    addresses = db.relationship('Address', backref='contact', lazy=True,
                                cascade='all, delete-orphan', order_by='Address.id')

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'emails': [e.to_dict() for e in self.emails],
            'phones': [p.to_dict() for p in self.phones],
            'addresses': [a.to_dict() for a in self.addresses],
        }


class Email(db.Model):
    __tablename__ = 'emails'
    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    email_address = db.Column(db.String(100), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'email_address': self.email_address}


class Phone(db.Model):
    __tablename__ = 'phones'
    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    phone_number = db.Column(db.String(20), nullable=False)
    phone_type = db.Column(db.String(50))  # Home, Work, Mobile...

    def to_dict(self):
        return {'id': self.id, 'phone_number': self.phone_number, 'phone_type': self.phone_type}


class Address(db.Model):
    __tablename__ = 'addresses'
    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    street_address = db.Column(db.String(100), nullable=False)
    city = db.Column(db.String(50))
    state = db.Column(db.String(50))
    zip_code = db.Column(db.String(20))
    country = db.Column(db.String(50))
    address_type = db.Column(db.String(50))  # Home, Work...

    def to_dict(self):
        return {
            'id': self.id,
            'street_address': self.street_address,
            'city': self.city,
            'state': self.state,
            'zip_code': self.zip_code,
            'country': self.country,
            'address_type': self.address_type,
        }


class Role(db.Model):
    __tablename__ = 'roles'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)


class User(db.Model):
    """Application user. The email doubles as the login name."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(50))
    last_name = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    roles = db.relationship('Role', secondary=user_roles, lazy='selectin', order_by='Role.name')

    def set_password(self, password):
        """Hash and set password."""
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """Verify password against hash."""
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    @property
    def role_names(self):
        return [r.name for r in self.roles]

    def to_dict(self):
        """Convert user to dictionary (without sensitive data)."""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'roles': self.role_names,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
