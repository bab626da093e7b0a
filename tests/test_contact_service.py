import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.datastructures import MultiDict

import contact_service
from contact_service import (
    ContactSubmission, ContactNotFoundError, ContactValidationError,
    create_contact, update_contact, delete_contact, get_contact, search_contacts,
)
from models import db, Contact, Email, Phone, Address


# =============================================================================
# Submission parsing
# =============================================================================

def test_from_form_reads_repeated_keys():
    form = MultiDict([
        ("first_name", "Grace"), ("last_name", "Hopper"), ("id", "7"),
        ("email_ids", "3"), ("email_ids", ""),
        ("email_addresses", "grace@navy.mil"), ("email_addresses", "gh@example.com"),
        ("phone_ids", "abc"), ("phone_numbers", "555-0101"),
    ])
    sub = ContactSubmission.from_form(form)
    assert sub.id == 7
    assert sub.email_ids == [3, 0]
    assert sub.email_addresses == ["grace@navy.mil", "gh@example.com"]
    assert sub.phone_ids == [0]
    assert sub.phone_types == []


def test_from_json_coerces_values():
    sub = ContactSubmission.from_json({
        "first_name": "Grace", "last_name": "Hopper",
        "phone_ids": ["5", None], "phone_numbers": [5550101, None],
        "email_addresses": "single@example.com",
    })
    assert sub.id is None
    assert sub.phone_ids == [5, 0]
    assert sub.phone_numbers == ["5550101", ""]
    assert sub.email_addresses == ["single@example.com"]


# =============================================================================
# Create
# =============================================================================

def test_create_skips_blank_values_and_fills_defaults():
    contact = create_contact(ContactSubmission(
        first_name=" Alan ", last_name="Turing",
        email_addresses=["alan@example.com", "   ", ""],
        phone_numbers=["555-0102", "555-0103"], phone_types=["Work"],
        street_addresses=["", "Bletchley Park"], cities=["ignored", "Milton Keynes"],
    ))

    assert contact.first_name == "Alan"
    assert [e.email_address for e in contact.emails] == ["alan@example.com"]
    assert [(p.phone_number, p.phone_type) for p in contact.phones] == [
        ("555-0102", "Work"), ("555-0103", "Unknown"),
    ]
    (address,) = contact.addresses
    assert address.street_address == "Bletchley Park"
    assert address.city == "Milton Keynes"
    assert address.state == ""
    assert address.address_type == "Unknown"


@pytest.mark.parametrize("first, last, field", [
    ("", "Turing", "first_name"),
    ("Alan", "   ", "last_name"),
    ("A" * 51, "Turing", "first_name"),
])
def test_create_rejects_bad_names(first, last, field):
    with pytest.raises(ContactValidationError) as exc:
        create_contact(ContactSubmission(first_name=first, last_name=last))
    assert field in exc.value.errors
    assert Contact.query.count() == 0


def test_create_rejects_bad_children():
    with pytest.raises(ContactValidationError) as exc:
        create_contact(ContactSubmission(
            first_name="Alan", last_name="Turing",
            email_addresses=["not-an-email"],
            phone_numbers=["1" * 21],
            street_addresses=["Somewhere"], zip_codes=["9" * 21],
        ))
    assert set(exc.value.errors) == {"email_addresses[0]", "phone_numbers[0]", "zip_codes[0]"}


def test_blank_rows_are_not_validated():
    contact = create_contact(ContactSubmission(
        first_name="Alan", last_name="Turing",
        email_addresses=[""], phone_numbers=[" "], phone_types=["x" * 80],
    ))
    assert contact.emails == []
    assert contact.phones == []


# =============================================================================
# Edit reconciliation
# =============================================================================

@pytest.fixture
def turing(contact_factory):
    return contact_factory(
        "Alan", "Turing",
        email_addresses=["one@example.com", "two@example.com", "three@example.com"],
        phone_numbers=["555-0001"], phone_types=["Home"],
        street_addresses=["1 First St", "2 Second St"], cities=["A", "B"],
    )


def test_update_deletes_updates_and_inserts(turing):
    e1, e2, e3 = [e.id for e in turing.emails]
    sub = ContactSubmission(
        first_name="Alan M.", last_name="Turing",
        email_ids=[e1, e3, 0],
        email_addresses=["first@example.com", "three@example.com", "new@example.com"],
    )
    contact = update_contact(turing.id, sub)

    assert contact.first_name == "Alan M."
    emails = {e.id: e.email_address for e in Email.query.filter_by(contact_id=turing.id)}
    assert e2 not in emails
    assert emails[e1] == "first@example.com"
    assert emails[e3] == "three@example.com"
    assert sorted(emails.values()) == ["first@example.com", "new@example.com", "three@example.com"]


def test_update_with_empty_arrays_clears_children(turing):
    update_contact(turing.id, ContactSubmission(first_name="Alan", last_name="Turing"))
    assert Email.query.count() == 0
    assert Phone.query.count() == 0
    assert Address.query.count() == 0
    assert Contact.query.count() == 1


def test_submitted_id_with_blank_value_keeps_row_unchanged(turing):
    e1, e2, e3 = [e.id for e in turing.emails]
    update_contact(turing.id, ContactSubmission(
        first_name="Alan", last_name="Turing",
        email_ids=[e1, e2], email_addresses=["", "changed@example.com"],
    ))
    emails = {e.id: e.email_address for e in Email.query.all()}
    assert emails == {e1: "one@example.com", e2: "changed@example.com"}


def test_update_rewrites_phone_and_address_fields(turing):
    (phone,) = turing.phones
    a1, a2 = [a.id for a in turing.addresses]
    update_contact(turing.id, ContactSubmission(
        first_name="Alan", last_name="Turing",
        phone_ids=[phone.id], phone_numbers=["555-9999"],
        address_ids=[a2], street_addresses=["2 Second Street"], cities=["Bee"],
        states=["CA"], zip_codes=["90210"], countries=["US"], address_types=["Work"],
    ))
    phone = db.session.get(Phone, phone.id)
    assert phone.phone_number == "555-9999"
    assert phone.phone_type == "Unknown"

    assert db.session.get(Address, a1) is None
    address = db.session.get(Address, a2)
    assert (address.street_address, address.city, address.state, address.zip_code,
            address.country, address.address_type) == (
        "2 Second Street", "Bee", "CA", "90210", "US", "Work")


def test_update_ignores_ids_of_other_contacts(turing, contact_factory):
    other = contact_factory("Grace", "Hopper", email_addresses=["grace@example.com"])
    foreign_id = other.emails[0].id

    update_contact(turing.id, ContactSubmission(
        first_name="Alan", last_name="Turing",
        email_ids=[foreign_id], email_addresses=["hijack@example.com"],
    ))

    assert db.session.get(Email, foreign_id).email_address == "grace@example.com"
    assert Email.query.filter_by(contact_id=turing.id).count() == 0


def test_update_missing_contact_raises():
    with pytest.raises(ContactNotFoundError):
        update_contact(999, ContactSubmission(first_name="No", last_name="One"))


def test_update_with_mismatched_id_raises(turing):
    with pytest.raises(ContactNotFoundError):
        update_contact(turing.id, ContactSubmission(id=turing.id + 1, first_name="A", last_name="B"))
    assert get_contact(turing.id).first_name == "Alan"


def test_update_validation_error_leaves_contact_untouched(turing):
    with pytest.raises(ContactValidationError):
        update_contact(turing.id, ContactSubmission(first_name="", last_name="Turing"))
    db.session.expire_all()
    assert Email.query.count() == 3


def test_stale_update_of_vanished_contact_is_not_found(turing, monkeypatch):
    def stale_commit(self):
        raise StaleDataError("row changed")

    monkeypatch.setattr(Session, "commit", stale_commit)
    monkeypatch.setattr(contact_service, "contact_exists", lambda contact_id: False)

    with pytest.raises(ContactNotFoundError):
        update_contact(turing.id, ContactSubmission(first_name="A", last_name="B"))


def test_stale_update_of_existing_contact_propagates(turing, monkeypatch):
    def stale_commit(self):
        raise StaleDataError("row changed")

    monkeypatch.setattr(Session, "commit", stale_commit)

    with pytest.raises(StaleDataError):
        update_contact(turing.id, ContactSubmission(first_name="A", last_name="B"))


# =============================================================================
# Delete / search
# =============================================================================

def test_delete_contact(turing):
    delete_contact(turing.id)
    assert Contact.query.count() == 0
    assert Email.query.count() == 0
    with pytest.raises(ContactNotFoundError):
        delete_contact(turing.id)


@pytest.fixture
def directory(contact_factory):
    return [
        contact_factory("Alan", "Turing", email_addresses=["alan@bletchley.uk"],
                        phone_numbers=["555-0100"]),
        contact_factory("Grace", "Hopper", email_addresses=["grace@navy.mil", "gh@navy.mil"],
                        street_addresses=["Arlington Ridge"], cities=["Arlington"], states=["Virginia"]),
        contact_factory("Edsger", "Dijkstra", phone_numbers=["020-100%"],
                        street_addresses=["Plantage Muidergracht"], cities=["Amsterdam"]),
    ]


@pytest.mark.parametrize("term, expected", [
    (None, ["Turing", "Hopper", "Dijkstra"]),
    ("", ["Turing", "Hopper", "Dijkstra"]),
    ("grace", ["Hopper"]),
    ("TURING", ["Turing"]),
    ("navy", ["Hopper"]),
    ("0100", ["Turing"]),
    ("virginia", ["Hopper"]),
    ("amster", ["Dijkstra"]),
    ("muider", ["Dijkstra"]),
    ("%", ["Dijkstra"]),
    ("nobody", []),
])
def test_search_contacts(directory, term, expected):
    assert [c.last_name for c in search_contacts(term)] == expected


def test_search_does_not_match_zip_or_country(contact_factory):
    contact_factory("Ada", "Lovelace", street_addresses=["St James's Square"],
                    zip_codes=["SW1Y"], countries=["England"])
    assert search_contacts("England") == []
    assert search_contacts("SW1Y") == []
