# services/export_service.py
from io import BytesIO

import pandas as pd

from ingress.extensions import db
from ingress.models.event import Event
from ingress.services.roster_store import RosterStore
from ingress.utils.data_processing import safe_filename


def export_checked_in(event_id):
    """
    Export checked-in participants of an event to an Excel file with columns:
    - Sr No.
    - Name
    - Enrollment
    - Email
    - Checked In At

    Returns:
        tuple: (excel_data, filename), or None if the event is unknown or
        nobody has checked in yet
    """
    event = db.session.get(Event, event_id)
    if not event:
        return None

    participants = RosterStore().list_participants(event_id, checked_in=True)
    if not participants:
        return None

    data = []
    for index, participant in enumerate(participants, start=1):
        data.append({
            'Sr No.': index,
            'Name': participant.name,
            'Enrollment': participant.enrollment,
            'Email': participant.email,
            'Checked In At': (
                participant.checked_in_at.strftime('%Y-%m-%d %H:%M:%S')
                if participant.checked_in_at else 'N/A'
            )
        })

    df = pd.DataFrame(data)

    output = BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df.to_excel(writer, sheet_name='Attendance', index=False)

        worksheet = writer.sheets['Attendance']

        # Set column widths to accommodate the content
        for i, col in enumerate(df.columns):
            max_len = max(df[col].astype(str).apply(len).max(), len(col)) + 2
            worksheet.set_column(i, i, max_len)

    filename = f"{safe_filename(event.name)}_Attendance.xlsx"

    output.seek(0)
    return output.getvalue(), filename
