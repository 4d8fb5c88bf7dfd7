"""
Conversation directory tests: one thread per member pair per service, and
ordered message history.
"""

import uuid

import pytest
from django.core.exceptions import ValidationError

from marketplace.models import Conversation, Message


@pytest.mark.django_db
class TestConversationDirectory:
    """Test thread deduplication."""

    def test_get_or_create_is_idempotent(self, directory, service, provider, bidder):
        first, created = directory.get_or_create_conversation(bidder.id, provider.id, service.id)
        second, created_again = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert len(directory.conversations_for_user(bidder.id)) == 1

    def test_find_ignores_participant_order(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        assert directory.find_conversation(bidder.id, provider.id, service.id).id == conversation.id
        assert directory.find_conversation(provider.id, bidder.id, service.id).id == conversation.id

        reversed_call, created = directory.get_or_create_conversation(provider.id, bidder.id, service.id)
        assert created is False
        assert reversed_call.id == conversation.id
        assert Conversation.objects.count() == 1

    def test_threads_are_per_service(self, directory, make_service, provider, bidder):
        first = make_service(title='First')
        second = make_service(title='Second')

        a, _ = directory.get_or_create_conversation(bidder.id, provider.id, first.id)
        b, _ = directory.get_or_create_conversation(bidder.id, provider.id, second.id)

        assert a.id != b.id
        assert directory.conversations_for_user(provider.id) == [b, a]

    def test_find_returns_none_when_absent(self, directory, service, provider, bidder):
        assert directory.find_conversation(bidder.id, provider.id, service.id) is None

    def test_duplicate_create_is_rejected(self, directory, service, provider, bidder):
        directory.create_conversation(bidder.id, provider.id, service.id)

        with pytest.raises(ValidationError):
            directory.create_conversation(provider.id, bidder.id, service.id)

    def test_concurrent_create_returns_existing_thread(self, directory, service, provider, bidder, monkeypatch):
        existing = directory.create_conversation(provider.id, bidder.id, service.id)
        find = directory.find_conversation
        lookups = []

        def find_after_other_insert(*args):
            lookups.append(args)
            return None if len(lookups) == 1 else find(*args)

        monkeypatch.setattr(directory, 'find_conversation', find_after_other_insert)
        monkeypatch.setattr(Conversation, 'validate_constraints', lambda self, exclude=None: None)

        conversation, created = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        assert created is False
        assert conversation.id == existing.id
        assert len(lookups) == 2
        assert Conversation.objects.count() == 1

    def test_conversation_needs_two_members(self, directory, service, provider):
        with pytest.raises(ValidationError) as exc_info:
            directory.create_conversation(provider.id, provider.id, service.id)

        assert 'recipient' in exc_info.value.message_dict

    def test_other_participant(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        assert conversation.other_participant(bidder.id) == provider
        assert conversation.other_participant(provider.id) == bidder
        assert conversation.participants == [bidder.id, provider.id]


@pytest.mark.django_db
class TestMessages:
    """Test posting and listing messages."""

    def test_messages_listed_oldest_first(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        first = directory.post_message(conversation.id, bidder.id, 'Is Saturday morning OK?')
        second = directory.post_message(conversation.id, provider.id, 'Yes, 10am works.')
        third = directory.post_message(conversation.id, bidder.id, 'See you then!')

        assert directory.list_messages(conversation.id) == [first, second, third]
        assert directory.list_messages(conversation.id) == [first, second, third]
        assert directory.last_message(conversation.id) == third

    def test_message_text_is_trimmed(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        message = directory.post_message(conversation.id, bidder.id, '   hello   ')
        assert message.text == 'hello'

    def test_blank_message_rejected(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        with pytest.raises(ValidationError) as exc_info:
            directory.post_message(conversation.id, bidder.id, '   ')

        assert 'text' in exc_info.value.message_dict
        assert Message.objects.count() == 0

    def test_non_participant_cannot_post(self, directory, service, provider, bidder, buyer):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)

        with pytest.raises(ValidationError) as exc_info:
            directory.post_message(conversation.id, buyer.id, 'Hi!')

        assert 'sender' in exc_info.value.message_dict

    def test_post_to_missing_conversation(self, directory, bidder):
        assert directory.post_message(uuid.uuid4(), bidder.id, 'Hello?') is None

    def test_last_message_of_empty_thread(self, directory, service, provider, bidder):
        conversation, _ = directory.get_or_create_conversation(bidder.id, provider.id, service.id)
        assert directory.last_message(conversation.id) is None
