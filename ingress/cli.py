# cli.py
"""
Flask CLI commands for the check-in system.
Covers operator accounts, event setup, roster import, exports and a
terminal scanner for handheld barcode readers that type into stdin.
"""

import os

import click
from flask import current_app
from flask.cli import with_appcontext

from ingress.models.user import RolePreset


@click.command("create-user")
@click.option("--email", prompt=True, help="Operator email address")
@click.option("--name", prompt=True, help="Operator display name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Operator password")
@click.option("--role", default=RolePreset.ADMIN_SCANNER, show_default=True,
              type=click.Choice([RolePreset.ADMIN, RolePreset.SCANNER, RolePreset.ADMIN_SCANNER]),
              help="Capability preset")
@with_appcontext
def create_user(email, name, password, role):
    """Create an operator account."""
    from ingress.services.auth_service import AuthService

    try:
        user = AuthService.create_user(email=email, name=name, password=password, role=role)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"✅ User '{user.email}' created successfully!")
    click.echo(f"   Name: {user.name}")
    click.echo(f"   Capabilities: {', '.join(sorted(user.get_capabilities()))}")


@click.command("create-event")
@click.option("--name", prompt=True, help="Event name")
@click.option("--date", prompt="Date (YYYY-MM-DD)", help="Event date")
@click.option("--venue", prompt=True, help="Event venue")
@click.option("--inactive", is_flag=True, help="Create the event as completed")
@with_appcontext
def create_event(name, date, venue, inactive):
    """Create an event."""
    from ingress.services.event_service import EventService

    result = EventService.create_event(name=name, date=date, venue=venue, is_active=not inactive)
    if not result['success']:
        raise click.ClickException(result['message'])

    event = result['event']
    click.echo(f"✅ Event '{event['name']}' created ({event['status']})")
    click.echo(f"   ID: {event['id']}")


@click.command("list-events")
@with_appcontext
def list_events():
    """List events with check-in progress."""
    from ingress.services.event_service import EventService

    events = EventService.list_events()
    if not events:
        click.echo("No events found.")
        return

    click.echo(f"{'ID':<38} {'Status':<10} {'Date':<11} {'Checked in':<12} Name")
    click.echo("-" * 100)
    for event in events:
        stats = EventService.get_stats(event.id)
        progress = f"{stats['checked_in']}/{stats['total']}"
        click.echo(f"{event.id:<38} {event.status_label:<10} {event.date:<11} {progress:<12} {event.name}")


@click.command("toggle-event")
@click.argument("event_id")
@click.option("--active/--completed", default=None, help="Set the status instead of flipping it")
@with_appcontext
def toggle_event(event_id, active):
    """Mark an event live or completed."""
    from ingress.services.event_service import EventService

    if active is None:
        result = EventService.toggle_active(event_id)
    else:
        result = EventService.set_active(event_id, active)

    if not result['success']:
        raise click.ClickException(result['message'])
    click.echo(result['message'])


@click.command("import-roster")
@click.argument("event_id")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_roster_command(event_id, file_path):
    """Import participants from a CSV or Excel roster."""
    from ingress.services.importer import import_roster

    if not current_app.config['ALLOWED_EXTENSIONS'] & {file_path.rsplit('.', 1)[-1].lower()}:
        raise click.ClickException("Supported file types: .xlsx, .xls, .csv")

    result = import_roster(event_id, file_path)
    if not result['success']:
        raise click.ClickException(result['error'])

    click.echo(f"✅ Imported {result['participants_added']} participants.")
    if result['skipped']:
        click.echo(f"   Skipped {result['skipped']} invalid rows")


@click.command("export-qr-zip")
@click.argument("event_id")
@click.option("--output-dir", default=".", type=click.Path(file_okay=False), help="Where to write the archive")
@with_appcontext
def export_qr_zip(event_id, output_dir):
    """Write a ZIP of every participant's QR code."""
    from ingress.services.qr_code_service import QRCodeService

    result = QRCodeService.build_event_archive(event_id)
    if not result['success']:
        raise click.ClickException(result['message'])

    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, result['filename'])
    with open(path, 'wb') as f:
        f.write(result['archive'])
    click.echo(f"✅ Wrote {result['count']} QR codes to {path}")


@click.command("export-attendance")
@click.argument("event_id")
@click.option("--output-dir", default=".", type=click.Path(file_okay=False), help="Where to write the spreadsheet")
@with_appcontext
def export_attendance(event_id, output_dir):
    """Write checked-in participants to an Excel file."""
    from ingress.services.event_service import EventService
    from ingress.services.export_service import export_checked_in

    if not EventService.get_event(event_id):
        raise click.ClickException("Event not found")

    exported = export_checked_in(event_id)
    if exported is None:
        raise click.ClickException("No participants have checked in yet.")

    excel_data, filename = exported
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    with open(path, 'wb') as f:
        f.write(excel_data)
    click.echo(f"✅ Attendance written to {path}")


@click.command("scan")
@click.option("--event", "event_id", default=None, help="Bind to this active event and remember the choice")
@click.option("--preference-file", default=None, type=click.Path(dir_okay=False),
              help="Where the chosen event is remembered (defaults to SCANNER_PREFERENCE_FILE)")
@with_appcontext
def scan(event_id, preference_file):
    """
    Terminal scanner. Each line on stdin is one decoded QR payload.
    After a result is shown, press Enter to resume scanning.

    Example usage:
        flask scan
        flask scan --event 6f1c...
    """
    from ingress.exceptions import EventNotActive
    from ingress.services.event_selector import EventSelector, FilePreferenceStore
    from ingress.services.event_service import EventService
    from ingress.services.redemption_service import RedemptionService
    from ingress.services.scan_debouncer import ScanDebouncer
    from ingress.services.scan_session import ScanSession, ScanState

    store = FilePreferenceStore(preference_file or current_app.config['SCANNER_PREFERENCE_FILE'])
    session = ScanSession(
        redemption_service=RedemptionService.from_config(),
        selector=EventSelector(store),
        debouncer=ScanDebouncer(current_app.config['SCAN_DEBOUNCE_WINDOW_MS'])
    )

    event = session.start(EventService.list_active_events())
    if event is None:
        raise click.ClickException("There are no events currently marked as active.")

    if event_id:
        try:
            event = session.switch_event(event_id)
        except EventNotActive as e:
            raise click.ClickException(e.message)

    click.echo(f"📷 Scanning for: {event.name} ({event.date}, {event.venue})")
    click.echo("   Ctrl-D to stop.")

    stdin = click.get_text_stream('stdin')
    for line in stdin:
        text = line.rstrip('\r\n')

        if session.state == ScanState.PAUSED:
            # Any line while paused is the operator's acknowledgement
            session.acknowledge()
            click.echo("Ready.")
            continue

        if not text:
            continue

        result = session.handle_decoded(text)
        if result is None:
            continue

        participant = result.participant or {}
        if result.granted:
            click.secho(f"✅ ACCESS GRANTED  {participant.get('name')} ({participant.get('enrollment')})", fg='green')
        else:
            who = f"  {participant.get('name')} ({participant.get('enrollment')})" if participant else ''
            click.secho(f"❌ {result.message}{who}", fg='red')
        click.echo("   Press Enter to scan next.")


def register_cli_commands(app):
    """
    Register all CLI commands with the Flask application.

    Args:
        app: Flask application instance
    """
    app.cli.add_command(create_user)
    app.cli.add_command(create_event)
    app.cli.add_command(list_events)
    app.cli.add_command(toggle_event)
    app.cli.add_command(import_roster_command)
    app.cli.add_command(export_qr_zip)
    app.cli.add_command(export_attendance)
    app.cli.add_command(scan)


# # Create an operator who can manage events and scan
# flask create-user --email admin@example.com --name Admin --role admin_scanner
#
# # Set up an event and load its roster
# flask create-event --name "Tech Fest" --date 2026-03-14 --venue "Main Hall"
# flask import-roster <event_id> roster.xlsx
# flask export-qr-zip <event_id> --output-dir out/
#
# # At the door
# flask scan
