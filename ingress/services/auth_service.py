# services/auth_service.py
"""
Authentication service for operator login, logout, accounts and passwords.
"""

import hmac
import logging
import secrets
import smtplib
from datetime import datetime, timedelta

from flask import session, current_app
from flask_login import login_user, logout_user, current_user
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from ingress.models.user import User, RolePreset
from ingress.extensions import db
from ingress.utils.email_service import send_email

MIN_PASSWORD_LENGTH = 6
RESET_REQUESTED_MESSAGE = "If the email exists, a reset link has been sent."


class AuthService:
    """Service class for authentication and operator accounts."""

    @staticmethod
    def authenticate_user(email, password, remember_me=False):
        """
        Authenticate operator with email and password.

        Args:
            email: Email address
            password: User password
            remember_me: Whether to remember login session

        Returns:
            tuple: (success: bool, user: User|None, message: str)
        """
        logger = logging.getLogger('auth_service')

        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            return False, None, "Email and password are required"

        try:
            user = db.session.execute(
                select(User).where(func.lower(User.email) == email.strip().lower())
            ).scalar_one_or_none()

            if not user or not user.is_active:
                logger.warning(f"Login attempt with unknown or inactive account: {email}")
                return False, None, "Invalid email or password"

            if not user.check_password(password):
                logger.warning(f"Failed login attempt for user: {user.email}")
                return False, None, "Invalid email or password"

            if not user.get_capabilities():
                logger.warning(f"Login refused for user without capabilities: {user.email}")
                return False, None, "Your account does not have a valid role assigned."

            user.record_login()
            db.session.commit()

            login_user(user, remember=remember_me)

            logger.info(f"Successful login for user: {user.email}")
            return True, user, "Login successful"

        except SQLAlchemyError as e:
            logger.error(f"Authentication error: {str(e)}", exc_info=True)
            db.session.rollback()
            return False, None, "An error occurred during login. Please try again."

    @staticmethod
    def logout_user_session():
        """Logout current user and clear session."""
        logger = logging.getLogger('auth_service')

        if current_user.is_authenticated:
            email = current_user.email
            logout_user()
            session.clear()
            logger.info(f"User logged out: {email}")

        return True

    @staticmethod
    def create_user(email, name, password, role=RolePreset.SCANNER, capabilities=None):
        """
        Create an operator account.

        Args:
            email: Login email
            name: Display name
            password: Initial password
            role: Role preset used when capabilities is not given
            capabilities: Explicit capability set

        Returns:
            User: The created user

        Raises:
            ValueError: On invalid input or duplicate email
        """
        logger = logging.getLogger('auth_service')

        if not isinstance(email, str) or '@' not in email:
            raise ValueError("A valid email address is required")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Name is required")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        if capabilities is None:
            capabilities = RolePreset.capabilities_for(role)

        user = User(email=email.strip().lower(), name=name.strip())
        user.set_password(password)
        user.set_capabilities(capabilities)

        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValueError(f"A user with email {email} already exists")

        logger.info(f"Created user {user.email} with capabilities {sorted(user.get_capabilities())}")
        return user

    @staticmethod
    def validate_new_password(new_password, confirm_password):
        """Return an error message for an unacceptable new password, else None."""
        if new_password != confirm_password:
            return "New passwords do not match"
        if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
            return f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"
        return None

    @staticmethod
    def change_password(user, current_password, new_password, confirm_password):
        """
        Change a signed-in operator's password.

        Args:
            user: User object
            current_password: Current password for verification
            new_password: New password
            confirm_password: New password typed a second time

        Returns:
            tuple: (success: bool, message: str)
        """
        logger = logging.getLogger('auth_service')

        error = AuthService.validate_new_password(new_password, confirm_password)
        if error:
            return False, error

        if not isinstance(current_password, str) or not user.check_password(current_password):
            logger.warning(f"Failed password change attempt for user: {user.email}")
            return False, "Incorrect current password"

        try:
            user.set_password(new_password)
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Password change error: {str(e)}", exc_info=True)
            db.session.rollback()
            return False, "Failed to update password. Please try again."

        logger.info(f"Password changed for user: {user.email}")
        return True, "Password updated successfully"

    @staticmethod
    def initiate_password_reset(email):
        """
        Start a password reset by mailing a single-use link.

        The reply is the same whether or not the account exists.

        Args:
            email: Account email address

        Returns:
            tuple: (success: bool, message: str)
        """
        logger = logging.getLogger('auth_service')

        if not isinstance(email, str) or '@' not in email:
            return False, "Invalid email address."

        try:
            user = db.session.execute(
                select(User).where(func.lower(User.email) == email.strip().lower())
            ).scalar_one_or_none()

            if not user or not user.is_active:
                logger.warning(f"Password reset requested for unknown or inactive account: {email}")
                return True, RESET_REQUESTED_MESSAGE

            hours = current_app.config['PASSWORD_RESET_HOURS']
            user.password_reset_token = secrets.token_urlsafe(32)
            user.password_reset_expires = datetime.now() + timedelta(hours=hours)
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Password reset initiation error: {str(e)}", exc_info=True)
            db.session.rollback()
            return False, "An error occurred. Please try again later."

        site_name = current_app.config['SITE_NAME']
        reset_url = (f"{current_app.config['BASE_URL'].rstrip('/')}"
                     f"/auth/reset-password/{user.id}/{user.password_reset_token}")
        body = (
            f"Hello {user.name},\n\n"
            f"A password reset was requested for your {site_name} account.\n"
            f"Open this link within {hours} hours to choose a new password:\n\n"
            f"{reset_url}\n\n"
            f"If you did not ask for this, you can ignore this message.\n"
        )

        try:
            send_email(user.email, f"Password Reset Request - {site_name}", body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Password reset email to {user.email} failed: {str(e)}")
            return False, "Failed to send reset email. Please try again."

        logger.info(f"Password reset email sent to user: {user.email}")
        return True, RESET_REQUESTED_MESSAGE

    @staticmethod
    def verify_reset_token(user_id, token):
        """
        Check a password reset link.

        Returns:
            tuple: (valid: bool, user: User|None, message: str)
        """
        logger = logging.getLogger('auth_service')

        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            logger.warning(f"Reset token verification for unknown user: {user_id}")
            return False, None, "Invalid reset link"

        if (not token or not user.password_reset_token
                or not hmac.compare_digest(user.password_reset_token, token)):
            logger.warning(f"Invalid reset token for user: {user.email}")
            return False, None, "Invalid or expired reset link"

        if not user.password_reset_expires or datetime.now() > user.password_reset_expires:
            logger.warning(f"Expired reset token for user: {user.email}")
            return False, None, "Reset link has expired. Please request a new one."

        return True, user, "Reset link is valid"

    @staticmethod
    def complete_password_reset(user_id, token, new_password, confirm_password):
        """
        Set a new password from a reset link. The link stops working afterwards.

        Returns:
            tuple: (success: bool, message: str)
        """
        logger = logging.getLogger('auth_service')

        valid, user, message = AuthService.verify_reset_token(user_id, token)
        if not valid:
            return False, message

        error = AuthService.validate_new_password(new_password, confirm_password)
        if error:
            return False, error

        try:
            user.set_password(new_password)
            user.password_reset_token = None
            user.password_reset_expires = None
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Password reset completion error: {str(e)}", exc_info=True)
            db.session.rollback()
            return False, "An error occurred while resetting password. Please try again."

        logger.info(f"Password reset completed for user: {user.email}")
        return True, "Password has been reset successfully. You can now login with your new password."
