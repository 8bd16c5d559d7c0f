import re

import pandas as pd


def is_blank(value):
    """True for None, NaN and whitespace-only cells."""
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return isinstance(value, str) and not value.strip()


def clean_cell(value):
    """
    Turn a spreadsheet cell into trimmed text.
    Whole-number floats lose their trailing '.0' (enrollment 21001.0 -> '21001').
    """
    if is_blank(value):
        return ""

    if isinstance(value, float) and value.is_integer():
        value = int(value)

    return clean_text_field(value)


def clean_email(email):
    """
    Clean and normalize email addresses
    - Convert to lowercase
    - Remove leading/trailing whitespace
    """
    if is_blank(email):
        return ""

    return str(email).strip().lower()


def normalize_header(header):
    """Lower-case a column header and collapse whitespace."""
    return clean_text_field(header).lower()


def clean_text_field(text):
    """
    General text field cleaning
    - Remove leading/trailing whitespace
    - Replace multiple spaces with single space
    """
    if text is None:
        return ""

    return re.sub(r'\s+', ' ', str(text).strip())


def safe_filename(text, fallback='Event'):
    """Replace anything that is not a letter or digit with '_'."""
    cleaned = re.sub(r'[^a-z0-9]', '_', str(text or ''), flags=re.IGNORECASE).strip()
    return cleaned or fallback
