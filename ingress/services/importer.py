# services/importer.py
"""
Roster import from spreadsheets.
Reads .xlsx/.xls/.csv files, matches the name/enrollment/email columns by a
list of common header spellings and inserts the participants in one batch.
"""

import logging

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from ingress.extensions import db
from ingress.models.event import Event
from ingress.services.roster_store import RosterStore
from ingress.utils.data_processing import clean_cell, clean_email, normalize_header

logger = logging.getLogger('importer')

HEADER_ALIASES = {
    'name': [
        'name', 'full name', 'student name', 'student full name',
        'participant name', 'candidate name',
    ],
    'enrollment': [
        'enrollment', 'enrollment no', 'enrollment number', 'roll no',
        'roll number', 'reg no', 'registration number',
    ],
    'email': [
        'email', 'student email', 'email id', 'contact email',
    ],
}


def read_spreadsheet(file_path):
    """Load a roster file into a DataFrame, trying common CSV encodings."""
    lowered = str(file_path).lower()
    if lowered.endswith('.xlsx') or lowered.endswith('.xls'):
        return pd.read_excel(file_path)

    for encoding in ('utf-8', 'utf-8-sig', 'latin-1'):
        try:
            return pd.read_csv(file_path, encoding=encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError("Unable to read file with any supported encoding")


def map_columns(columns):
    """
    Match spreadsheet headers to participant fields.

    The first alias (in alias order) present among the normalized headers wins.

    Returns:
        dict: field -> original column name, or None when absent
    """
    normalized = {}
    for column in columns:
        normalized.setdefault(normalize_header(column), column)

    mapping = {}
    for field, aliases in HEADER_ALIASES.items():
        mapping[field] = next((normalized[alias] for alias in aliases if alias in normalized), None)
    return mapping


def extract_rows(df):
    """
    Turn DataFrame rows into participant dicts.

    Returns:
        tuple: (rows, skipped_count)
    """
    mapping = map_columns(df.columns)
    rows = []
    skipped = 0

    for _, record in df.iterrows():
        name = clean_cell(record[mapping['name']]) if mapping['name'] is not None else ''
        enrollment = clean_cell(record[mapping['enrollment']]) if mapping['enrollment'] is not None else ''
        email = clean_email(record[mapping['email']]) if mapping['email'] is not None else ''

        if not name or not enrollment:
            skipped += 1
            continue

        rows.append({'name': name, 'enrollment': enrollment, 'email': email})

    return rows, skipped


def import_roster(event_id, file_path):
    """
    Import participants for an event from a spreadsheet.

    Args:
        event_id: Event receiving the participants
        file_path: Path to .xlsx, .xls or .csv file

    Returns:
        dict: Import result with counts
    """
    event = db.session.get(Event, event_id)
    if not event:
        return {
            'success': False,
            'error': 'Event not found',
            'participants_added': 0,
            'skipped': 0
        }

    try:
        df = read_spreadsheet(file_path)
    except Exception as e:
        logger.warning(f"Could not read roster file {file_path}: {str(e)}")
        return {
            'success': False,
            'error': f"Error reading file: {str(e)}",
            'participants_added': 0,
            'skipped': 0
        }

    rows, skipped = extract_rows(df)

    if not rows:
        return {
            'success': False,
            'error': 'No valid participants found. Please check your column headers (Name, Enrollment, Email).',
            'participants_added': 0,
            'skipped': skipped
        }

    try:
        RosterStore().bulk_insert(event_id, rows)
    except SQLAlchemyError as e:
        logger.error(f"Database error importing roster for event {event_id}: {str(e)}")
        return {
            'success': False,
            'error': str(e),
            'participants_added': 0,
            'skipped': skipped
        }

    logger.info(f"Imported {len(rows)} participants into event {event_id} (skipped {skipped})")
    return {
        'success': True,
        'participants_added': len(rows),
        'skipped': skipped
    }
