# utils/email_service.py
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger('email_service')


def build_message(recipient, subject, text_body, html_body=None):
    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = current_app.config['MAIL_DEFAULT_SENDER']
    msg['To'] = recipient

    msg.attach(MIMEText(text_body, 'plain'))
    if html_body:
        msg.attach(MIMEText(html_body, 'html'))
    return msg


def send_email(recipient, subject, text_body, html_body=None):
    """
    Send a single message over SMTP using the MAIL_* settings.

    Delivery is synchronous; the caller decides what a failure means.

    Raises:
        smtplib.SMTPException: If the server rejects the message
        OSError: If the server cannot be reached
    """
    config = current_app.config
    msg = build_message(recipient, subject, text_body, html_body)

    if config.get('MAIL_SUPPRESS_SEND'):
        logger.info(f"Mail suppressed: '{subject}' to {recipient}")
        return msg

    server_class = smtplib.SMTP_SSL if config.get('MAIL_USE_SSL') else smtplib.SMTP
    with server_class(config['MAIL_SERVER'], config['MAIL_PORT'], timeout=config['MAIL_TIMEOUT']) as server:
        if config.get('MAIL_USE_TLS') and not config.get('MAIL_USE_SSL'):
            server.starttls()
        if config.get('MAIL_USERNAME'):
            server.login(config['MAIL_USERNAME'], config['MAIL_PASSWORD'])
        server.send_message(msg)

    logger.info(f"Sent '{subject}' to {recipient}")
    return msg
