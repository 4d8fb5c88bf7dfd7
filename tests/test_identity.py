"""
Identity & session tests: users, password digests, credential checks, the
current-user pointer and the two-step signup verification flow.
"""

import uuid
from io import BytesIO

import pytest
from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from marketplace.backends import EmailBackend
from marketplace.identity import (
    SESSION_KEY,
    AuthFailure,
    IdentityService,
    VerificationFailure,
    digest,
    generate_verification_code,
    verification_key,
)
from marketplace.models import User


def make_image_file(name='student_id.png', image_format='PNG', content_type='image/png'):
    buffer = BytesIO()
    Image.new('RGB', (40, 25), color='orange').save(buffer, format=image_format)
    return SimpleUploadedFile(name, buffer.getvalue(), content_type=content_type)


class TestDigest:
    """Test the password digest."""

    def test_digest_is_deterministic(self):
        assert digest('hookem') == digest('hookem')

    def test_different_passwords_give_different_digests(self):
        assert digest('hookem') != digest('hookem!')

    def test_digest_never_contains_plaintext(self):
        assert 'hookem' not in digest('hookem')


@pytest.mark.django_db
class TestUsers:
    """Test user creation and lookup."""

    def test_create_user_with_digest(self, identity):
        user = identity.create_user({
            'name': 'Bevo',
            'email': 'bevo@utexas.edu',
            'password_digest': digest('hookem'),
            'edu_verified': True,
        })

        assert isinstance(user.id, uuid.UUID)
        assert user.created_at is not None
        assert user.edu_verified is True
        assert user.id_verified is False
        assert identity.get_user_by_email('bevo@utexas.edu') == user

    def test_create_user_with_raw_password_stores_digest(self, identity):
        user = identity.create_user({
            'name': 'Bevo',
            'email': 'bevo@utexas.edu',
            'password': 'hookem',
        })

        assert user.password == digest('hookem')
        assert user.password != 'hookem'

    def test_create_user_requires_password(self, identity):
        with pytest.raises(ValidationError) as exc_info:
            identity.create_user({'name': 'Bevo', 'email': 'bevo@utexas.edu'})

        assert 'password' in exc_info.value.message_dict

    def test_email_must_be_unique_case_insensitive(self, identity, make_user):
        make_user('Bevo', 'bevo@utexas.edu')

        with pytest.raises(ValidationError) as exc_info:
            make_user('Bevo Again', 'BEVO@utexas.edu')

        assert exc_info.value.message_dict['email'] == ['An account with this email already exists.']
        assert len(identity.list_users()) == 1

    def test_lookup_by_email_ignores_case(self, identity, make_user):
        user = make_user('Bevo', 'bevo@utexas.edu')
        assert identity.get_user_by_email('  Bevo@UTexas.edu ') == user

    def test_unknown_user_is_none(self, identity):
        assert identity.get_user(uuid.uuid4()) is None
        assert identity.get_user_by_email('nobody@utexas.edu') is None

    def test_update_profile(self, identity, provider):
        updated = identity.update_profile(provider.id, {'name': '  Sarah C.  ', 'bio': 'CS junior'})

        assert updated.name == 'Sarah C.'
        assert updated.bio == 'CS junior'
        assert updated.email == provider.email

    def test_update_profile_rejects_other_fields(self, identity, provider):
        with pytest.raises(ValidationError) as exc_info:
            identity.update_profile(provider.id, {'email': 'new@utexas.edu', 'id_verified': True})

        assert set(exc_info.value.message_dict) == {'email', 'id_verified'}

    def test_update_profile_missing_user(self, identity):
        assert identity.update_profile(uuid.uuid4(), {'bio': 'hi'}) is None

    def test_verify_identity_marks_user(self, identity, provider):
        user = identity.verify_identity(provider.id, make_image_file())

        assert user.id_verified is True
        assert user.id_image.name.startswith(f'id_images/{provider.id}/')

    def test_verify_identity_rejects_bad_format(self, identity, provider):
        gif = make_image_file(name='student_id.gif', image_format='GIF', content_type='image/gif')

        with pytest.raises(ValidationError):
            identity.verify_identity(provider.id, gif)

        assert User.objects.get(pk=provider.id).id_verified is False


@pytest.mark.django_db
class TestCredentials:
    """Test credential checks and the session pointer."""

    def test_verify_credentials_success(self, identity, provider):
        assert identity.verify_credentials('sarah.chen@utexas.edu', 'hookem123') == provider

    def test_verify_credentials_unknown_email(self, identity, provider):
        assert identity.verify_credentials('ghost@utexas.edu', 'hookem123') is AuthFailure.NOT_FOUND

    def test_verify_credentials_wrong_password(self, identity, provider):
        assert identity.verify_credentials('sarah.chen@utexas.edu', 'wrong') is AuthFailure.WRONG_PASSWORD

    def test_session_pointer_lifecycle(self, identity, store, provider):
        assert identity.get_current_user() is None

        identity.set_current_user(provider.id)
        assert identity.get_current_user_id() == str(provider.id)
        assert store.get_value(SESSION_KEY) == str(provider.id)
        assert identity.get_current_user() == provider

        identity.clear_current_user()
        assert identity.get_current_user() is None

    def test_dangling_pointer_resolves_to_no_user(self, identity):
        identity.set_current_user(uuid.uuid4())
        assert identity.get_current_user() is None

    def test_login_sets_pointer_and_logout_clears_it(self, identity, provider):
        assert identity.login('sarah.chen@utexas.edu', 'hookem123') == provider
        assert identity.get_current_user() == provider

        identity.logout()
        assert identity.get_current_user_id() is None

    def test_failed_login_leaves_pointer_alone(self, identity, provider, bidder):
        identity.set_current_user(bidder.id)

        assert identity.login('sarah.chen@utexas.edu', 'wrong') is AuthFailure.WRONG_PASSWORD
        assert identity.get_current_user() == bidder


@pytest.mark.django_db
class TestEmailBackend:
    """Test the Django authentication backend."""

    def test_authenticate_with_username_argument(self, provider):
        assert EmailBackend().authenticate(None, username='sarah.chen@utexas.edu', password='hookem123') == provider

    def test_authenticate_with_email_keyword(self, provider):
        assert authenticate(email='sarah.chen@utexas.edu', password='hookem123') == provider

    def test_authenticate_failure_returns_none(self, provider):
        assert EmailBackend().authenticate(None, username='sarah.chen@utexas.edu', password='nope') is None
        assert EmailBackend().authenticate(None, username='ghost@utexas.edu', password='hookem123') is None

    def test_inactive_user_cannot_authenticate(self, identity, make_user):
        make_user('Inactive', 'inactive@utexas.edu', is_active=False)
        assert EmailBackend().authenticate(None, username='inactive@utexas.edu', password='hookem123') is None


@pytest.mark.django_db
class TestSignupVerification:
    """Test the form -> verify signup flow."""

    def test_signup_scenario(self, identity, store):
        code = identity.start_signup('Jane', 'jane@utexas.edu', 'secret123')
        assert code == '482913'
        assert store.get_value(verification_key('jane@utexas.edu')) == '482913'

        result = identity.complete_signup('jane@utexas.edu', '000000', 'Jane', 'secret123')
        assert result is VerificationFailure.MISMATCH
        assert identity.pending_code('jane@utexas.edu') == '482913'
        assert identity.list_users() == []

        user = identity.complete_signup('jane@utexas.edu', '482913', 'Jane', 'secret123')
        assert isinstance(user, User)
        assert user.email == 'jane@utexas.edu'
        assert user.edu_verified is True
        assert identity.pending_code('jane@utexas.edu') is None
        assert identity.get_current_user() == user

        again = identity.complete_signup('jane@utexas.edu', '482913', 'Jane', 'secret123')
        assert again is VerificationFailure.NOT_FOUND
        assert len(identity.list_users()) == 1

    def test_new_code_overwrites_previous(self, store):
        codes = iter(['111111', '222222'])
        identity = IdentityService(store, code_generator=lambda: next(codes))

        identity.start_signup('Jane', 'jane@utexas.edu', 'secret123')
        identity.start_signup('Jane', 'jane@utexas.edu', 'secret123')

        assert identity.pending_code('jane@utexas.edu') == '222222'
        assert identity.complete_signup('jane@utexas.edu', '111111', 'Jane', 'secret123') is VerificationFailure.MISMATCH
        assert isinstance(identity.complete_signup('jane@utexas.edu', '222222', 'Jane', 'secret123'), User)

    def test_verify_without_signup_is_not_found(self, identity):
        result = identity.complete_signup('jane@utexas.edu', '482913', 'Jane', 'secret123')
        assert result is VerificationFailure.NOT_FOUND

    def test_codes_are_per_email(self, identity):
        identity.start_signup('Jane', 'jane@utexas.edu', 'secret123')
        assert identity.pending_code('john@utexas.edu') is None

    def test_signup_email_case_is_normalized(self, identity):
        identity.start_signup('Jane', 'Jane@UTexas.edu', 'secret123')
        user = identity.complete_signup('jane@utexas.edu', '482913', 'Jane', 'secret123')
        assert user.email == 'jane@utexas.edu'

    def test_non_campus_email_rejected(self, identity):
        with pytest.raises(ValidationError) as exc_info:
            identity.start_signup('Jane', 'jane@gmail.com', 'secret123')

        assert exc_info.value.message_dict['email'] == ['Please use your @utexas.edu email.']
        assert identity.pending_code('jane@gmail.com') is None

    def test_short_password_rejected(self, identity):
        with pytest.raises(ValidationError) as exc_info:
            identity.start_signup('Jane', 'jane@utexas.edu', '12345')

        assert 'password' in exc_info.value.message_dict

    def test_blank_name_rejected(self, identity):
        with pytest.raises(ValidationError) as exc_info:
            identity.start_signup('   ', 'jane@utexas.edu', 'secret123')

        assert 'name' in exc_info.value.message_dict

    def test_registered_email_rejected(self, identity, provider):
        with pytest.raises(ValidationError) as exc_info:
            identity.start_signup('Sarah', 'sarah.chen@utexas.edu', 'secret123')

        assert exc_info.value.message_dict['email'] == ['An account with this email already exists.']

    def test_generated_codes_are_six_digits(self):
        for _ in range(200):
            code = generate_verification_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999
