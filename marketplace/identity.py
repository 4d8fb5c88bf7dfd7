"""
Identity and session bookkeeping.

Users authenticate by comparing password digests; the "current user" is a
single process-wide pointer kept in the entity store. Signup is a two-step
flow: a 6-digit code is issued for the candidate email, and the account is
only created once that code is submitted back.
"""

import enum
import logging
import secrets

from django.contrib.auth.hashers import check_password, make_password
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.crypto import constant_time_compare

from .validators import (
    marketplace_setting,
    validate_campus_email,
    validate_not_blank,
    validate_password_length,
)

logger = logging.getLogger(__name__)


SESSION_KEY = 'current-session-user-id'
VERIFICATION_KEY_PREFIX = 'verification-code:'

PROFILE_FIELDS = {'name', 'bio', 'avatar_url'}


class AuthFailure(enum.Enum):
    """Why a credential check failed."""

    NOT_FOUND = 'not_found'
    WRONG_PASSWORD = 'wrong_password'


class VerificationFailure(enum.Enum):
    """Why a signup code was not accepted."""

    NOT_FOUND = 'not_found'
    MISMATCH = 'mismatch'


def digest(password):
    """
    Return the one-way digest stored for a password.

    Uses the configured Django password hasher with the installation-wide
    salt from settings.MARKETPLACE['PASSWORD_DIGEST_SALT'], so the same
    password always yields the same digest.

    Args:
        password: Raw password string

    Returns:
        str: Encoded digest (algorithm$...$hash)
    """
    return make_password(password, salt=marketplace_setting('PASSWORD_DIGEST_SALT'))


def normalize_email(email):
    return (email or '').strip().lower()


def verification_key(email):
    return f'{VERIFICATION_KEY_PREFIX}{normalize_email(email)}'


def generate_verification_code():
    """Return a random 6-digit numeric code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


class IdentityService:
    """
    Users, credential checks, the current-user pointer and signup codes.

    Args:
        store: EntityStore used for all reads and writes
        code_generator: Callable returning a new verification code
    """

    def __init__(self, store, code_generator=generate_verification_code):
        self.store = store
        self.code_generator = code_generator

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, profile):
        """
        Create a user from a profile dict.

        The profile carries either a raw 'password' (digested here) or a
        ready 'password_digest'. Email uniqueness is checked by the store's
        validation.

        Returns:
            User: The new user

        Raises:
            ValidationError: If the profile is invalid or the email is taken
        """
        profile = dict(profile)
        password = profile.pop('password', None)
        password_digest = profile.pop('password_digest', None)

        if password is not None:
            password_digest = digest(password)
        if not password_digest:
            raise ValidationError({'password': 'A password is required.'})

        profile['password'] = password_digest
        if 'email' in profile:
            profile['email'] = normalize_email(profile['email'])

        user = self.store.create('users', profile)
        logger.info(f"User created: {user.email} (ID: {user.id})")
        return user

    def get_user(self, user_id):
        return self.store.get('users', user_id)

    def get_user_by_email(self, email):
        matches = self.store.find('users', email=normalize_email(email))
        return matches[0] if matches else None

    def list_users(self):
        return self.store.read_all('users')

    def update_profile(self, user_id, patch):
        """
        Update editable profile fields (name, bio, avatar_url).

        Returns:
            User or None if the user does not exist

        Raises:
            ValidationError: If other fields are supplied or values are invalid
        """
        disallowed = sorted(set(patch) - PROFILE_FIELDS)
        if disallowed:
            raise ValidationError({k: 'This field cannot be changed here.' for k in disallowed})

        patch = dict(patch)
        if 'name' in patch and patch['name'] is not None:
            patch['name'] = patch['name'].strip()

        return self.store.update('users', user_id, patch)

    def verify_identity(self, user_id, id_image):
        """
        Record an uploaded student ID and mark the user ID-verified.

        Verification is mocked: any valid image is accepted.

        Returns:
            User or None if the user does not exist
        """
        user = self.store.update('users', user_id, {'id_image': id_image, 'id_verified': True})
        if user is not None:
            logger.info(f"ID verification recorded for {user.email} (ID: {user.id})")
        return user

    def verify_credentials(self, email, password):
        """
        Check an email/password pair.

        Returns:
            User on success, otherwise AuthFailure.NOT_FOUND or
            AuthFailure.WRONG_PASSWORD
        """
        user = self.get_user_by_email(email)
        if user is None:
            logger.warning(f"Credential check for unknown email: {normalize_email(email)}")
            return AuthFailure.NOT_FOUND

        if password is None or not check_password(password, user.password):
            logger.warning(f"Wrong password for {user.email} (ID: {user.id})")
            return AuthFailure.WRONG_PASSWORD

        return user

    # ------------------------------------------------------------------
    # Session pointer
    # ------------------------------------------------------------------

    def set_current_user(self, user_id):
        self.store.set_value(SESSION_KEY, str(user_id))

    def get_current_user_id(self):
        return self.store.get_value(SESSION_KEY)

    def clear_current_user(self):
        self.store.clear_value(SESSION_KEY)

    def get_current_user(self):
        """
        Resolve the session pointer.

        Returns:
            User, or None when no user is set or the pointer is dangling
        """
        user_id = self.get_current_user_id()
        if user_id is None:
            return None
        return self.get_user(user_id)

    def login(self, email, password):
        """
        Verify credentials and point the session at the user.

        Returns:
            User on success, otherwise an AuthFailure member
        """
        result = self.verify_credentials(email, password)
        if isinstance(result, AuthFailure):
            return result

        self.set_current_user(result.id)
        logger.info(f"User logged in: {result.email} (ID: {result.id})")
        return result

    def logout(self):
        user_id = self.get_current_user_id()
        self.clear_current_user()
        if user_id is not None:
            logger.info(f"User logged out (ID: {user_id})")

    # ------------------------------------------------------------------
    # Signup verification
    # ------------------------------------------------------------------

    def validate_signup(self, name, email, password):
        """
        Validate the signup form.

        Ensures:
        - Name is not blank
        - Email is in the campus domain and not already registered
        - Password meets the minimum length

        Raises:
            ValidationError: With a dict of field errors
        """
        errors = {}
        checks = [
            ('name', name, [validate_not_blank]),
            ('email', email, [validate_campus_email]),
            ('password', password, [validate_password_length]),
        ]
        for field, value, validators in checks:
            for validator in validators:
                try:
                    validator(value)
                except ValidationError as e:
                    errors.setdefault(field, []).extend(e.messages)

        if 'email' not in errors and self.get_user_by_email(email) is not None:
            errors['email'] = ['An account with this email already exists.']

        if errors:
            raise ValidationError(errors)

    def start_signup(self, name, email, password):
        """
        Validate the signup form and issue a verification code.

        Any previous code for the email is overwritten. Delivery is mocked:
        the code is returned so the caller can present it.

        Returns:
            str: The 6-digit code

        Raises:
            ValidationError: If the form is invalid
        """
        self.validate_signup(name, email, password)

        code = self.code_generator()
        self.store.set_value(verification_key(email), code)
        logger.info(f"Verification code issued for {normalize_email(email)}")
        return code

    def pending_code(self, email):
        return self.store.get_value(verification_key(email))

    def complete_signup(self, email, code, name, password):
        """
        Check a submitted code and create the account on a match.

        On match the code is cleared and the user is created in one database
        transaction, then the session points at the new user. On mismatch the
        stored code is left in place so the user can retry.

        Returns:
            User on success, otherwise VerificationFailure.NOT_FOUND or
            VerificationFailure.MISMATCH

        Raises:
            ValidationError: If the signup form is no longer valid
        """
        key = verification_key(email)
        stored = self.store.get_value(key)

        if stored is None:
            logger.warning(f"No pending verification code for {normalize_email(email)}")
            return VerificationFailure.NOT_FOUND

        if not constant_time_compare(str(code or '').strip(), stored):
            logger.warning(f"Invalid verification code submitted for {normalize_email(email)}")
            return VerificationFailure.MISMATCH

        self.validate_signup(name, email, password)

        with transaction.atomic():
            self.store.clear_value(key)
            user = self.create_user({
                'name': name.strip(),
                'email': email,
                'password': password,
                'edu_verified': True,
                'id_verified': False,
            })

        self.set_current_user(user.id)
        logger.info(f"Signup completed for {user.email} (ID: {user.id})")
        return user
