"""
Serializers for the DormDash marketplace API.

Request serializers check the shape of incoming data; business rules live in
the core services (IdentityService, LifecycleEngine, ConversationDirectory)
and surface as Django ValidationErrors that the views turn into 400s.
"""

from rest_framework import serializers

from .models import Bid, Conversation, Message, Service, Transaction, User
from .validators import (
    validate_card_cvv,
    validate_card_expiry,
    validate_card_number,
    validate_id_image,
    validate_not_blank,
)


# ============================================================================
# Users & authentication
# ============================================================================

class PublicUserSerializer(serializers.ModelSerializer):
    """
    Member details shown to other members (no email).
    """

    class Meta:
        model = User
        fields = ['id', 'name', 'avatar_url', 'edu_verified', 'id_verified', 'bio', 'created_at']
        read_only_fields = fields


class UserProfileSerializer(serializers.ModelSerializer):
    """
    The current user's own profile.
    """

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'avatar_url', 'edu_verified',
            'id_verified', 'bio', 'created_at'
        ]
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    """
    Signup form: name, campus email and password.

    Domain rules (campus email, minimum length, uniqueness) are checked by
    IdentityService.start_signup.
    """
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        style={'input_type': 'password'}
    )


class SignupVerifySerializer(SignupSerializer):
    """
    Second signup step: the form data again plus the emailed code.
    """
    code = serializers.CharField(max_length=12)


class LoginSerializer(serializers.Serializer):
    """
    Serializer for user login with email and password.
    """
    email = serializers.EmailField(
        required=True,
        help_text='User email address'
    )
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'},
        help_text='User password'
    )


class ProfileUpdateSerializer(serializers.Serializer):
    """
    Editable profile fields. All optional; at least one must be supplied.
    """
    name = serializers.CharField(max_length=150, required=False)
    bio = serializers.CharField(required=False, allow_blank=True)
    avatar_url = serializers.URLField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide at least one of: name, bio, avatar_url.')
        return attrs


class IdVerificationSerializer(serializers.Serializer):
    """
    Student ID upload for the mocked identity check.
    """
    id_image = serializers.ImageField(validators=[validate_id_image])


# ============================================================================
# Services & bids
# ============================================================================

class ServiceCreateSerializer(serializers.Serializer):
    """
    Fields a member supplies when listing a service.
    """
    title = serializers.CharField(max_length=200, validators=[validate_not_blank])
    description = serializers.CharField(validators=[validate_not_blank])
    category = serializers.ChoiceField(choices=Service.CATEGORY_CHOICES)
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    location = serializers.CharField(max_length=300, validators=[validate_not_blank])
    date_time = serializers.DateTimeField()
    image_url = serializers.URLField(required=False, allow_blank=True)


class BidSerializer(serializers.ModelSerializer):
    bidder = PublicUserSerializer(read_only=True)

    class Meta:
        model = Bid
        fields = ['id', 'service', 'bidder', 'amount', 'message', 'status', 'created_at']
        read_only_fields = fields


class BidCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    message = serializers.CharField(required=False, allow_blank=True, default='')


class ServiceSerializer(serializers.ModelSerializer):
    """
    Service listing with its provider.
    """
    provider = PublicUserSerializer(read_only=True)

    class Meta:
        model = Service
        fields = [
            'id', 'provider', 'title', 'description', 'category', 'price',
            'location', 'date_time', 'status', 'image_url', 'created_at'
        ]
        read_only_fields = fields


class ServiceDetailSerializer(ServiceSerializer):
    """
    Service listing plus its bids (newest first).

    The bids are passed in through context['bids'] so they come from the
    lifecycle engine rather than the reverse relation.
    """
    bids = serializers.SerializerMethodField()

    class Meta(ServiceSerializer.Meta):
        fields = ServiceSerializer.Meta.fields + ['bids']
        read_only_fields = fields

    def get_bids(self, obj):
        return BidSerializer(self.context.get('bids', []), many=True).data


# ============================================================================
# Checkout & transactions
# ============================================================================

class CheckoutSerializer(serializers.Serializer):
    """
    Mocked card details for the buy-now step. Nothing is charged.
    """
    card_name = serializers.CharField(validators=[validate_not_blank])
    card_number = serializers.CharField(validators=[validate_card_number])
    expiry = serializers.CharField(validators=[validate_card_expiry])
    cvv = serializers.CharField(validators=[validate_card_cvv])


class TransactionSerializer(serializers.ModelSerializer):
    service_title = serializers.CharField(source='service.title', read_only=True)

    class Meta:
        model = Transaction
        fields = ['id', 'service', 'service_title', 'buyer', 'seller', 'amount', 'status', 'created_at']
        read_only_fields = fields


# ============================================================================
# Conversations & messages
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'text', 'created_at']
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    text = serializers.CharField()


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with the other participant and the latest message.

    context['user_id'] selects which participant counts as "other";
    context['last_messages'] maps conversation id -> Message.
    """
    participants = serializers.SerializerMethodField()
    other_participant = serializers.SerializerMethodField()
    service_title = serializers.CharField(source='service.title', read_only=True)
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'service', 'service_title', 'participants',
            'other_participant', 'last_message', 'created_at'
        ]
        read_only_fields = fields

    def get_participants(self, obj):
        return [str(user_id) for user_id in obj.participants]

    def get_other_participant(self, obj):
        user_id = self.context.get('user_id')
        if user_id is None:
            return None
        return PublicUserSerializer(obj.other_participant(user_id)).data

    def get_last_message(self, obj):
        message = self.context.get('last_messages', {}).get(obj.id)
        if message is None:
            return None
        return MessageSerializer(message).data
