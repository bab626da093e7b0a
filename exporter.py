"""
exporter.py
-----------
CSV and Excel exports of contacts. Each contact becomes one row, its
emails, phones and addresses flattened into pipe-separated cells.
"""

import csv
import io
import logging

import pandas as pd

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['Id', 'FirstName', 'LastName', 'Emails', 'Phones', 'Addresses']
SHEET_NAME = 'Contacts'

CSV_MIMETYPE = 'text/csv'
CSV_FILENAME = 'contacts.csv'
EXCEL_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
EXCEL_FILENAME = 'contacts.xlsx'


def format_phone(phone):
    return f'{phone.phone_type or ""}: {phone.phone_number}'


def format_address(address):
    parts = [address.address_type, address.street_address, address.city,
             address.state, address.zip_code, address.country]
    kind, street, city, state, zip_code, country = ['' if p is None else p for p in parts]
    return f'{kind}: {street}, {city}, {state} {zip_code}, {country}'.strip(' ,')


def contact_row(contact):
    return {
        'Id': contact.id,
        'FirstName': contact.first_name,
        'LastName': contact.last_name,
        'Emails': '|'.join(e.email_address for e in contact.emails),
        'Phones': '|'.join(format_phone(p) for p in contact.phones),
        'Addresses': '|'.join(format_address(a) for a in contact.addresses),
    }


def contacts_frame(contacts):
    """Build the export table; the header is kept even with no contacts."""
    return pd.DataFrame([contact_row(c) for c in contacts], columns=EXPORT_COLUMNS)


def export_csv(contacts) -> io.BytesIO:
    """Plain header line, then rows with every text field quoted."""
    df = contacts_frame(contacts)
    header = ','.join(EXPORT_COLUMNS) + '\n'
    body = df.to_csv(index=False, header=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n') if len(df) else ''
    buffer = io.BytesIO((header + body).encode('utf-8'))
    logger.info('Exported %d contacts as CSV', len(df))
    return buffer


def export_excel(contacts) -> io.BytesIO:
    df = contacts_frame(contacts)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    buffer.seek(0)
    logger.info('Exported %d contacts as Excel', len(df))
    return buffer
