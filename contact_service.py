"""
contact_service.py
------------------
Contact CRUD, search, and the edit-time reconciliation of a contact's
emails, phones and addresses against submitted parallel arrays.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from models import db, Contact, Email, Phone, Address

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = 'Unknown'

# column -> max length, mirrors models.py
_LIMITS = {
    'first_name': 50,
    'last_name': 50,
    'email_addresses': 100,
    'phone_numbers': 20,
    'phone_types': 50,
    'street_addresses': 100,
    'cities': 50,
    'states': 50,
    'zip_codes': 20,
    'countries': 50,
    'address_types': 50,
}

_ID_KEYS = ('email_ids', 'phone_ids', 'address_ids')
_LIST_KEYS = ('email_addresses', 'phone_numbers', 'phone_types',
              'street_addresses', 'cities', 'states', 'zip_codes',
              'countries', 'address_types')


class ContactValidationError(ValueError):
    """Raised when a submission fails field validation."""

    def __init__(self, errors):
        super().__init__('Invalid contact submission')
        self.errors = errors


class ContactNotFoundError(LookupError):
    """Raised when the targeted contact does not exist."""

    def __init__(self, contact_id):
        super().__init__(f'Contact {contact_id} not found')
        self.contact_id = contact_id


def _parse_id(raw) -> int:
    """Blank or malformed ids mean "new row"."""
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return 0


def _at(values, i, default):
    return values[i] if i < len(values) else default


def _is_blank(value) -> bool:
    return value is None or not str(value).strip()


@dataclass
class ContactSubmission:
    """
    A submitted contact form.

    Child rows arrive as parallel arrays: index ``i`` of ``email_ids`` and
    ``email_addresses`` describe the same email, and likewise for phones and
    addresses. An id of 0 marks a row that does not exist yet.
    """
    first_name: str = ''
    last_name: str = ''
    id: Optional[int] = None
    email_ids: List[int] = field(default_factory=list)
    email_addresses: List[str] = field(default_factory=list)
    phone_ids: List[int] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    phone_types: List[str] = field(default_factory=list)
    address_ids: List[int] = field(default_factory=list)
    street_addresses: List[str] = field(default_factory=list)
    cities: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    zip_codes: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    address_types: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data) -> 'ContactSubmission':
        if not isinstance(data, dict):
            data = {}

        def as_list(key):
            value = data.get(key) or []
            if not isinstance(value, (list, tuple)):
                value = [value]
            return list(value)

        kwargs = {
            'first_name': str(data.get('first_name') or ''),
            'last_name': str(data.get('last_name') or ''),
            'id': _parse_id(data['id']) if data.get('id') not in (None, '') else None,
        }
        for key in _ID_KEYS:
            kwargs[key] = [_parse_id(v) for v in as_list(key)]
        for key in _LIST_KEYS:
            kwargs[key] = ['' if v is None else str(v) for v in as_list(key)]
        return cls(**kwargs)

    @classmethod
    def from_form(cls, form) -> 'ContactSubmission':
        """Build from a werkzeug MultiDict with repeated keys."""
        raw_id = form.get('id', '')
        kwargs = {
            'first_name': form.get('first_name', ''),
            'last_name': form.get('last_name', ''),
            'id': _parse_id(raw_id) if raw_id.strip() else None,
        }
        for key in _ID_KEYS:
            kwargs[key] = [_parse_id(v) for v in form.getlist(key)]
        for key in _LIST_KEYS:
            kwargs[key] = form.getlist(key)
        return cls(**kwargs)

    # --- per-collection entries: (row_id, column values), blank values skipped ---

    def email_entries(self) -> Iterator[Tuple[int, dict]]:
        for i, value in enumerate(self.email_addresses):
            if _is_blank(value):
                continue
            yield _at(self.email_ids, i, 0), {'email_address': value.strip()}

    def phone_entries(self) -> Iterator[Tuple[int, dict]]:
        for i, value in enumerate(self.phone_numbers):
            if _is_blank(value):
                continue
            yield _at(self.phone_ids, i, 0), {
                'phone_number': value.strip(),
                'phone_type': _at(self.phone_types, i, UNKNOWN_TYPE),
            }

    def address_entries(self) -> Iterator[Tuple[int, dict]]:
        for i, value in enumerate(self.street_addresses):
            if _is_blank(value):
                continue
            yield _at(self.address_ids, i, 0), {
                'street_address': value.strip(),
                'city': _at(self.cities, i, ''),
                'state': _at(self.states, i, ''),
                'zip_code': _at(self.zip_codes, i, ''),
                'country': _at(self.countries, i, ''),
                'address_type': _at(self.address_types, i, UNKNOWN_TYPE),
            }


def validate(submission: ContactSubmission) -> None:
    """Raise ContactValidationError listing every bad field."""
    errors = {}
    for name in ('first_name', 'last_name'):
        value = getattr(submission, name)
        if _is_blank(value):
            errors[name] = 'This field is required.'
        elif len(value.strip()) > _LIMITS[name]:
            errors[name] = f'Must be at most {_LIMITS[name]} characters.'

    # Only rows that will be written are checked
    groups = (
        ('email_addresses', ('email_addresses',)),
        ('phone_numbers', ('phone_numbers', 'phone_types')),
        ('street_addresses', ('street_addresses', 'cities', 'states',
                              'zip_codes', 'countries', 'address_types')),
    )
    for driver, keys in groups:
        for i, value in enumerate(getattr(submission, driver)):
            if _is_blank(value):
                continue
            for key in keys:
                item = _at(getattr(submission, key), i, '')
                item = item.strip() if key == driver else item
                if len(item) > _LIMITS[key]:
                    errors[f'{key}[{i}]'] = f'Must be at most {_LIMITS[key]} characters.'
            if driver == 'email_addresses' and '@' not in value:
                errors[f'email_addresses[{i}]'] = 'Invalid email address.'

    if errors:
        raise ContactValidationError(errors)


def _with_children(query):
    return query.options(
        selectinload(Contact.emails),
        selectinload(Contact.phones),
        selectinload(Contact.addresses),
    )


def get_contact(contact_id: int) -> Optional[Contact]:
    return _with_children(Contact.query).filter(Contact.id == contact_id).first()


def contact_exists(contact_id: int) -> bool:
    return Contact.query.filter_by(id=contact_id).first() is not None


def search_contacts(search_string: Optional[str] = None) -> List[Contact]:
    """
    List contacts, optionally filtered by a case-insensitive substring.

    The term is matched against first and last name, email addresses,
    phone numbers, and street, city and state of addresses.
    """
    query = _with_children(Contact.query)
    if search_string:
        def match(column):
            return column.icontains(search_string, autoescape=True)

        query = query.filter(or_(
            match(Contact.first_name),
            match(Contact.last_name),
            Contact.emails.any(match(Email.email_address)),
            Contact.phones.any(match(Phone.phone_number)),
            Contact.addresses.any(or_(
                match(Address.street_address),
                match(Address.city),
                match(Address.state),
            )),
        ))
    return query.order_by(Contact.id).all()


def create_contact(submission: ContactSubmission) -> Contact:
    validate(submission)
    contact = Contact(first_name=submission.first_name.strip(),
                      last_name=submission.last_name.strip())
    for _, fields in submission.email_entries():
        contact.emails.append(Email(**fields))
    for _, fields in submission.phone_entries():
        contact.phones.append(Phone(**fields))
    for _, fields in submission.address_entries():
        contact.addresses.append(Address(**fields))

    db.session.add(contact)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info('Created contact %s with %d emails, %d phones, %d addresses',
                contact.id, len(contact.emails), len(contact.phones), len(contact.addresses))
    return contact


def _reconcile(rows: list, model, submitted_ids: List[int],
               entries: Callable[[], Iterator[Tuple[int, dict]]]) -> Tuple[int, int, int]:
    """
    Apply a submission to one child collection.

    Rows whose id was not submitted are removed; entries carrying the id of
    an existing row overwrite it; entries without a positive id are
    inserted. Returns (deleted, updated, inserted).
    """
    keep = set(submitted_ids)
    existing = {row.id: row for row in rows}
    deleted = updated = inserted = 0

    for row in list(rows):
        if row.id not in keep:
            rows.remove(row)
            deleted += 1

    for row_id, fields in entries():
        if row_id > 0:
            row = existing.get(row_id)
            # ids belonging to other contacts are ignored
            if row is None:
                continue
            for name, value in fields.items():
                setattr(row, name, value)
            updated += 1
        else:
            rows.append(model(**fields))
            inserted += 1
    return deleted, updated, inserted


def update_contact(contact_id: int, submission: ContactSubmission) -> Contact:
    """Overwrite a contact and reconcile its child collections in one commit."""
    if submission.id is not None and submission.id != contact_id:
        raise ContactNotFoundError(contact_id)

    contact = get_contact(contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)

    validate(submission)
    contact.first_name = submission.first_name.strip()
    contact.last_name = submission.last_name.strip()

    stats = {
        'emails': _reconcile(contact.emails, Email, submission.email_ids, submission.email_entries),
        'phones': _reconcile(contact.phones, Phone, submission.phone_ids, submission.phone_entries),
        'addresses': _reconcile(contact.addresses, Address, submission.address_ids,
                                submission.address_entries),
    }

    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        if not contact_exists(contact_id):
            raise ContactNotFoundError(contact_id)
        raise
    except Exception:
        db.session.rollback()
        raise

    logger.info('Updated contact %s (deleted/updated/inserted) %s', contact_id, stats)
    return contact


def delete_contact(contact_id: int) -> None:
    contact = db.session.get(Contact, contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)
    db.session.delete(contact)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info('Deleted contact %s', contact_id)
