"""
Conversation directory: one thread per member pair per service.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Q

logger = logging.getLogger(__name__)


class ConversationDirectory:
    """
    Deduplicated message threads and their ordered messages.

    Args:
        store: EntityStore used for all reads and writes
    """

    def __init__(self, store):
        self.store = store

    def find_conversation(self, user_a, user_b, service_id):
        """
        Find the thread between two users about a service.

        Participant order does not matter.

        Returns:
            Conversation or None
        """
        matches = self.store.find(
            'conversations',
            (Q(initiator_id=user_a) & Q(recipient_id=user_b))
            | (Q(initiator_id=user_b) & Q(recipient_id=user_a)),
            service_id=service_id,
        )
        return matches[0] if matches else None

    def create_conversation(self, user_a, user_b, service_id):
        """
        Create a thread; user_a is recorded as the initiator.

        Raises:
            ValidationError: If the participants are the same user, do not
                exist, or already share a thread for the service
        """
        conversation = self.store.create('conversations', {
            'initiator_id': user_a,
            'recipient_id': user_b,
            'service_id': service_id,
        })
        logger.info(
            f"Conversation created: {conversation.id}, "
            f"Participants: {user_a}, {user_b}, Service ID: {service_id}"
        )
        return conversation

    def get_or_create_conversation(self, user_a, user_b, service_id):
        """
        Return the existing thread or create it.

        A concurrent create that wins the insert is picked up and returned.

        Returns:
            tuple: (conversation, created)
        """
        conversation = self.find_conversation(user_a, user_b, service_id)
        if conversation is not None:
            return conversation, False

        try:
            with transaction.atomic():
                return self.create_conversation(user_a, user_b, service_id), True
        except IntegrityError:
            conversation = self.find_conversation(user_a, user_b, service_id)
            if conversation is None:
                raise
            logger.info(f"Conversation {conversation.id} created concurrently, reusing it")
            return conversation, False

    def get_conversation(self, conversation_id):
        return self.store.get('conversations', conversation_id)

    def conversations_for_user(self, user_id):
        """Threads the user takes part in, newest first."""
        return self.store.find(
            'conversations',
            Q(initiator_id=user_id) | Q(recipient_id=user_id),
            order_by=('-created_at',),
        )

    def post_message(self, conversation_id, sender_id, text):
        """
        Append a message to a thread.

        Returns:
            Message, or None if the conversation does not exist

        Raises:
            ValidationError: If text is blank or the sender is not a participant
        """
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return None

        message = self.store.create('messages', {
            'conversation_id': conversation.id,
            'sender_id': sender_id,
            'text': text,
        })
        logger.info(f"Message posted: {message.id} in Conversation ID {conversation.id} by {sender_id}")
        return message

    def list_messages(self, conversation_id):
        """Full message history, oldest first."""
        return self.store.find('messages', conversation_id=conversation_id, order_by=('created_at',))

    def last_message(self, conversation_id):
        messages = self.store.find('messages', conversation_id=conversation_id, order_by=('-created_at',))
        return messages[0] if messages else None
