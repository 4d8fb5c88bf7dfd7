"""
API tests for conversations and messages.
"""

import uuid

import pytest
from django.urls import reverse
from rest_framework import status

from marketplace.models import Conversation, Message


@pytest.mark.django_db
class TestServiceConversation:
    """Test opening a thread with a service's provider."""

    def test_open_conversation_once(self, api_client, service, provider, bidder, login_as):
        login_as(bidder)
        url = reverse('service_conversation', kwargs={'pk': service.id})

        first = api_client.post(url)
        second = api_client.post(url)

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_200_OK
        assert first.data['id'] == second.data['id']
        assert first.data['other_participant']['id'] == str(provider.id)
        assert sorted(first.data['participants']) == sorted([str(bidder.id), str(provider.id)])
        assert Conversation.objects.count() == 1

    def test_provider_cannot_message_self(self, api_client, service, provider, login_as):
        login_as(provider)

        response = api_client.post(reverse('service_conversation', kwargs={'pk': service.id}))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Conversation.objects.count() == 0

    def test_missing_service(self, api_client, bidder, login_as):
        login_as(bidder)
        response = api_client.post(reverse('service_conversation', kwargs={'pk': uuid.uuid4()}))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_requires_login(self, api_client, service):
        response = api_client.post(reverse('service_conversation', kwargs={'pk': service.id}))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestConversationList:
    """Test the inbox."""

    def test_lists_threads_with_last_message(self, api_client, directory, make_service, provider, bidder, login_as):
        first_service = make_service(title='Calculus II Tutoring')
        second_service = make_service(title='Apartment Deep Clean')
        first, _ = directory.get_or_create_conversation(bidder.id, provider.id, first_service.id)
        second, _ = directory.get_or_create_conversation(bidder.id, provider.id, second_service.id)
        directory.post_message(first.id, bidder.id, 'Are you free Tuesday?')
        directory.post_message(first.id, provider.id, 'Tuesday works.')
        login_as(provider)

        response = api_client.get(reverse('conversation_list'))

        assert response.status_code == status.HTTP_200_OK
        assert [c['id'] for c in response.data] == [str(second.id), str(first.id)]
        assert response.data[0]['last_message'] is None
        assert response.data[1]['last_message']['text'] == 'Tuesday works.'
        assert response.data[1]['service_title'] == 'Calculus II Tutoring'
        assert response.data[1]['other_participant']['name'] == 'Marcus Johnson'

    def test_only_own_threads(self, api_client, directory, service, provider, bidder, buyer, login_as):
        directory.get_or_create_conversation(bidder.id, provider.id, service.id)
        login_as(buyer)

        response = api_client.get(reverse('conversation_list'))

        assert response.data == []


@pytest.mark.django_db
class TestConversationMessages:
    """Test reading and posting messages."""

    @pytest.fixture
    def conversation(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)
        return conversation

    def test_post_and_read_messages(self, api_client, conversation, provider, bidder, login_as):
        url = reverse('conversation_messages', kwargs={'pk': conversation.id})

        login_as(bidder)
        assert api_client.post(url, {'text': 'Is Saturday OK?'}, format='json').status_code == status.HTTP_201_CREATED

        login_as(provider)
        response = api_client.post(url, {'text': '  Saturday works.  '}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['text'] == 'Saturday works.'

        response = api_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert [m['text'] for m in response.data['messages']] == ['Is Saturday OK?', 'Saturday works.']
        assert response.data['conversation']['other_participant']['id'] == str(bidder.id)

    @pytest.mark.parametrize('payload', [{'text': ''}, {'text': '   '}, {}])
    def test_blank_message_rejected(self, api_client, conversation, bidder, login_as, payload):
        login_as(bidder)

        response = api_client.post(
            reverse('conversation_messages', kwargs={'pk': conversation.id}), payload, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Message.objects.count() == 0

    def test_non_participant_forbidden(self, api_client, conversation, buyer, login_as):
        login_as(buyer)
        url = reverse('conversation_messages', kwargs={'pk': conversation.id})

        assert api_client.get(url).status_code == status.HTTP_403_FORBIDDEN
        assert api_client.post(url, {'text': 'Hi!'}, format='json').status_code == status.HTTP_403_FORBIDDEN
        assert Message.objects.count() == 0

    def test_missing_conversation(self, api_client, bidder, login_as):
        login_as(bidder)
        response = api_client.get(reverse('conversation_messages', kwargs={'pk': uuid.uuid4()}))
        assert response.status_code == status.HTTP_404_NOT_FOUND
