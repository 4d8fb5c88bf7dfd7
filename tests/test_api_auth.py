"""
API tests for signup, login, logout and the current user's profile.
"""

from io import BytesIO

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from PIL import Image
from rest_framework import status

from marketplace.identity import IdentityService
from marketplace.models import User
from marketplace.store import EntityStore


def signup_data(**overrides):
    data = {
        'name': 'Jane Doe',
        'email': 'jane@utexas.edu',
        'password': 'secret123',
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestSignup:
    """Test the two-step signup endpoints."""

    def test_signup_then_verify(self, api_client):
        response = api_client.post(reverse('signup'), signup_data(), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['email'] == 'jane@utexas.edu'
        code = response.data['verification_code']
        assert len(code) == 6 and code.isdigit()
        assert not User.objects.filter(email='jane@utexas.edu').exists()

        response = api_client.post(
            reverse('signup_verify'), {**signup_data(), 'code': code}, format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['email'] == 'jane@utexas.edu'
        assert response.data['edu_verified'] is True
        assert 'password' not in response.data

        profile = api_client.get(reverse('user_profile'))
        assert profile.status_code == status.HTTP_200_OK
        assert profile.data['email'] == 'jane@utexas.edu'

    def test_wrong_code_is_retryable(self, api_client):
        code = api_client.post(reverse('signup'), signup_data(), format='json').data['verification_code']
        wrong = '000000' if code != '000000' else '111111'

        response = api_client.post(reverse('signup_verify'), {**signup_data(), 'code': wrong}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = api_client.post(reverse('signup_verify'), {**signup_data(), 'code': code}, format='json')
        assert response.status_code == status.HTTP_201_CREATED

    def test_code_is_single_use(self, api_client):
        code = api_client.post(reverse('signup'), signup_data(), format='json').data['verification_code']
        api_client.post(reverse('signup_verify'), {**signup_data(), 'code': code}, format='json')

        response = api_client.post(reverse('signup_verify'), {**signup_data(), 'code': code}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert User.objects.filter(email='jane@utexas.edu').count() == 1

    def test_non_campus_email(self, api_client):
        response = api_client.post(reverse('signup'), signup_data(email='jane@gmail.com'), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['email'] == ['Please use your @utexas.edu email.']

    def test_short_password(self, api_client):
        response = api_client.post(reverse('signup'), signup_data(password='123'), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'password' in response.data

    def test_existing_email(self, api_client, provider):
        response = api_client.post(
            reverse('signup'), signup_data(email='sarah.chen@utexas.edu'), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data

    def test_missing_fields(self, api_client):
        response = api_client.post(reverse('signup'), {'email': 'jane@utexas.edu'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'name' in response.data
        assert 'password' in response.data


@pytest.mark.django_db
class TestLoginLogout:
    """Test login, logout and authentication of later requests."""

    def test_login_success(self, api_client, provider):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'sarah.chen@utexas.edu', 'password': 'hookem123'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['id'] == str(provider.id)
        assert IdentityService(EntityStore()).get_current_user_id() == str(provider.id)

    def test_login_unknown_email(self, api_client, provider):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'ghost@utexas.edu', 'password': 'hookem123'},
            format='json'
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['detail'] == 'No account found with this email.'

    def test_login_wrong_password(self, api_client, provider):
        response = api_client.post(
            reverse('user_login'),
            {'email': 'sarah.chen@utexas.edu', 'password': 'wrong-password'},
            format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['detail'] == 'Incorrect password.'

    def test_login_is_rate_limited(self, api_client, provider):
        payload = {'email': 'sarah.chen@utexas.edu', 'password': 'wrong-password'}
        for _ in range(10):
            api_client.post(reverse('user_login'), payload, format='json')

        response = api_client.post(reverse('user_login'), payload, format='json')

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS

    def test_logout_clears_session(self, api_client, provider, login_as):
        login_as(provider)
        assert api_client.get(reverse('user_profile')).status_code == status.HTTP_200_OK

        response = api_client.post(reverse('user_logout'))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert api_client.get(reverse('user_profile')).status_code == status.HTTP_401_UNAUTHORIZED

    def test_profile_requires_login(self, api_client):
        response = api_client.get(reverse('user_profile'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestProfile:
    """Test profile updates and ID verification."""

    def test_update_profile(self, api_client, provider, login_as):
        login_as(provider)

        response = api_client.patch(
            reverse('user_profile'),
            {'bio': 'Happy to help with moves!', 'avatar_url': 'https://example.com/sarah.png'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['bio'] == 'Happy to help with moves!'
        assert User.objects.get(pk=provider.id).avatar_url == 'https://example.com/sarah.png'

    def test_update_profile_ignores_email(self, api_client, provider, login_as):
        login_as(provider)

        response = api_client.patch(
            reverse('user_profile'),
            {'name': 'Sarah C.', 'email': 'hacker@utexas.edu'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'sarah.chen@utexas.edu'
        assert response.data['name'] == 'Sarah C.'

    def test_empty_update_rejected(self, api_client, provider, login_as):
        login_as(provider)
        response = api_client.patch(reverse('user_profile'), {}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_verify_id_with_image(self, api_client, provider, login_as):
        login_as(provider)
        buffer = BytesIO()
        Image.new('RGB', (60, 40), color='white').save(buffer, format='JPEG')
        upload = SimpleUploadedFile('student_id.jpg', buffer.getvalue(), content_type='image/jpeg')

        response = api_client.post(reverse('verify_id'), {'id_image': upload}, format='multipart')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['id_verified'] is True

    def test_verify_id_rejects_non_image(self, api_client, provider, login_as):
        login_as(provider)
        upload = SimpleUploadedFile('student_id.png', b'not really an image', content_type='image/png')

        response = api_client.post(reverse('verify_id'), {'id_image': upload}, format='multipart')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert User.objects.get(pk=provider.id).id_verified is False
