"""
Domain models for the DormDash campus service marketplace.

Every entity is identified by an opaque UUID and a creation timestamp that
the entity store assigns. Relationships are foreign keys with PROTECT so the
marketplace never loses history through cascading deletes.
"""

import uuid

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .validators import validate_id_image, validate_not_blank, validate_positive_amount


def user_id_image_upload_path(instance, filename):
    """
    Generate upload path for student ID images.

    Path format: id_images/{user_id}/{filename}

    Args:
        instance: User model instance
        filename: Original filename

    Returns:
        str: Upload path
    """
    return f'id_images/{instance.id}/{filename}'


def check_transition(transitions, current_status, new_status):
    """
    Validate a status change against a transition table.

    Args:
        transitions: Mapping of status -> set of statuses it may move to
        current_status: Status currently stored
        new_status: Requested status

    Returns:
        tuple: (is_valid: bool, error_message: str or None)
    """
    if current_status == new_status:
        return True, None

    allowed = transitions.get(current_status)
    if allowed is None:
        return False, f'Unknown status "{current_status}".'

    if not allowed:
        return False, f'Cannot modify a record in terminal status "{current_status}".'

    if new_status not in allowed:
        return False, f'Invalid status transition from {current_status} to {new_status}.'

    return True, None


class Entity(models.Model):
    """
    Abstract base for marketplace records: UUID id plus creation timestamp.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    created_at = models.DateTimeField(
        _('created at'),
        default=timezone.now,
        editable=False,
        help_text=_('Timestamp when the record was created')
    )

    class Meta:
        abstract = True
        ordering = ['created_at']


class UserManager(BaseUserManager):
    """
    Manager for the email-keyed User model.
    """

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set.')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self._create_user(email, password, **extra_fields)


class User(Entity, AbstractUser):
    """
    Community member. Email is the login identifier.

    Additional fields:
    - name: Display name
    - email: Required, unique (stored lower-case)
    - password: One-way digest, never plaintext
    - edu_verified: Signed up through the campus email verification flow
    - id_verified: Uploaded a student ID (mocked verification)
    - id_image: The uploaded ID image
    - avatar_url / bio: Optional profile details
    """

    username = None
    first_name = None
    last_name = None

    name = models.CharField(
        _('name'),
        max_length=150,
        validators=[validate_not_blank],
        help_text=_('Required. Display name shown to other members.')
    )

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('An account with this email already exists.'),
        },
        help_text=_('Required. Campus email address.')
    )

    avatar_url = models.URLField(
        _('avatar url'),
        blank=True,
        default='',
    )

    edu_verified = models.BooleanField(
        _('edu verified'),
        default=False,
        help_text=_('Whether the campus email address was verified.')
    )

    id_verified = models.BooleanField(
        _('id verified'),
        default=False,
        help_text=_('Whether a student ID has been uploaded.')
    )

    id_image = models.ImageField(
        _('id image'),
        upload_to=user_id_image_upload_path,
        blank=True,
        null=True,
        validators=[validate_id_image],
        help_text=_('Uploaded student ID (max 5MB, formats: jpg, png, webp).')
    )

    bio = models.TextField(
        _('bio'),
        blank=True,
        default='',
    )

    objects = UserManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['created_at']

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name

    def set_password(self, raw_password):
        """
        Store the digest of raw_password.

        A None password marks the account as unusable (e.g. superusers created
        without a password).
        """
        from .identity import digest

        if raw_password is None:
            self.set_unusable_password()
            return
        self.password = digest(raw_password)
        self._password = raw_password

    def clean(self):
        """
        Validate and normalize fields.

        Ensures email is lower-case so uniqueness is case-insensitive.
        """
        super().clean()
        if self.email:
            self.email = self.email.strip().lower()

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)


class Service(Entity):
    """
    A listed offer of work with a price, schedule and status.

    Status state machine:
    - active -> in-progress (purchase recorded) or cancelled
    - in-progress -> completed or cancelled
    - completed, cancelled: terminal
    """

    CATEGORY_MOVING_HELP = 'Moving Help'
    CATEGORY_AIRPORT_RIDES = 'Airport Rides'
    CATEGORY_TUTORING = 'Tutoring'
    CATEGORY_CLEANING = 'Cleaning'
    CATEGORY_ERRANDS = 'Errands'
    CATEGORY_OTHER = 'Other'

    CATEGORY_CHOICES = [
        (CATEGORY_MOVING_HELP, 'Moving Help'),
        (CATEGORY_AIRPORT_RIDES, 'Airport Rides'),
        (CATEGORY_TUTORING, 'Tutoring'),
        (CATEGORY_CLEANING, 'Cleaning'),
        (CATEGORY_ERRANDS, 'Errands'),
        (CATEGORY_OTHER, 'Other'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    TRANSITIONS = {
        STATUS_ACTIVE: {STATUS_IN_PROGRESS, STATUS_CANCELLED},
        STATUS_IN_PROGRESS: {STATUS_COMPLETED, STATUS_CANCELLED},
        STATUS_COMPLETED: set(),
        STATUS_CANCELLED: set(),
    }

    provider = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='services',
        help_text=_('Member offering this service')
    )

    title = models.CharField(
        _('title'),
        max_length=200,
        validators=[validate_not_blank],
    )

    description = models.TextField(
        _('description'),
        validators=[validate_not_blank],
    )

    category = models.CharField(
        _('category'),
        max_length=20,
        choices=CATEGORY_CHOICES,
    )

    price = models.DecimalField(
        _('price'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
        help_text=_('Listed price in USD')
    )

    location = models.CharField(
        _('location'),
        max_length=300,
        validators=[validate_not_blank],
    )

    date_time = models.DateTimeField(
        _('date and time'),
        help_text=_('When the service is scheduled')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
    )

    image_url = models.URLField(
        _('image url'),
        blank=True,
        default='',
    )

    class Meta:
        verbose_name = _('service')
        verbose_name_plural = _('services')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['status'], name='service_status_idx'),
            models.Index(fields=['category'], name='service_category_idx'),
        ]

    def __str__(self):
        return self.title

    def can_transition_to(self, new_status):
        """
        Validate if the service can move to new_status.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        return check_transition(self.TRANSITIONS, self.status, new_status)

    def clean(self):
        """
        Validate status changes against the stored status.

        Raises:
            ValidationError: If the status change is not allowed
        """
        super().clean()

        if self._state.adding:
            return

        old_status = (
            Service.objects.filter(pk=self.pk)
            .values_list('status', flat=True)
            .first()
        )
        if old_status is None:
            return

        is_valid, error = check_transition(self.TRANSITIONS, old_status, self.status)
        if not is_valid:
            raise ValidationError({'status': error})


class Bid(Entity):
    """
    A member's counter-offer against a service's listed price.

    At most one bid per service can be accepted; enforced by a partial
    unique constraint.
    """

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    TRANSITIONS = {
        STATUS_PENDING: {STATUS_ACCEPTED, STATUS_REJECTED},
        STATUS_ACCEPTED: set(),
        STATUS_REJECTED: set(),
    }

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='bids',
    )

    bidder = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='bids',
    )

    amount = models.DecimalField(
        _('amount'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
    )

    message = models.TextField(
        _('message'),
        blank=True,
        default='',
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    class Meta:
        verbose_name = _('bid')
        verbose_name_plural = _('bids')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['service', 'status'], name='bid_service_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['service'],
                condition=Q(status='accepted'),
                name='one_accepted_bid_per_service',
                violation_error_message=_('This service already has an accepted bid.'),
            )
        ]

    def __str__(self):
        return f'{self.amount} on {self.service_id} ({self.status})'

    def can_transition_to(self, new_status):
        return check_transition(self.TRANSITIONS, self.status, new_status)

    def clean(self):
        super().clean()

        if self._state.adding:
            return

        old_status = (
            Bid.objects.filter(pk=self.pk)
            .values_list('status', flat=True)
            .first()
        )
        if old_status is None:
            return

        is_valid, error = check_transition(self.TRANSITIONS, old_status, self.status)
        if not is_valid:
            raise ValidationError({'status': error})


class Transaction(Entity):
    """
    Record of a (mocked) payment from buyer to seller for a service.

    Invariants:
    - buyer and seller differ
    - seller is the service's provider at creation time
    """

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_REFUNDED = 'refunded'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_REFUNDED, 'Refunded'),
    ]

    TRANSITIONS = {
        STATUS_PENDING: {STATUS_COMPLETED, STATUS_REFUNDED},
        STATUS_COMPLETED: {STATUS_REFUNDED},
        STATUS_REFUNDED: set(),
    }

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='transactions',
    )

    buyer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='purchases',
    )

    seller = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='sales',
    )

    amount = models.DecimalField(
        _('amount'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    class Meta:
        verbose_name = _('transaction')
        verbose_name_plural = _('transactions')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['buyer'], name='transaction_buyer_idx'),
            models.Index(fields=['seller'], name='transaction_seller_idx'),
        ]

    def __str__(self):
        return f'Transaction {self.id} ({self.status})'

    def can_transition_to(self, new_status):
        return check_transition(self.TRANSITIONS, self.status, new_status)

    def clean(self):
        """
        Validate buyer/seller relationship and status changes.

        Raises:
            ValidationError: If buyer is the seller, the seller is not the
                service provider, or the status change is not allowed
        """
        super().clean()

        if self.buyer_id and self.seller_id and str(self.buyer_id) == str(self.seller_id):
            raise ValidationError({
                'buyer': _('You cannot buy your own service.')
            })

        if self._state.adding:
            if self.service_id and self.seller_id:
                provider_id = (
                    Service.objects.filter(pk=self.service_id)
                    .values_list('provider_id', flat=True)
                    .first()
                )
                if provider_id is not None and str(provider_id) != str(self.seller_id):
                    raise ValidationError({
                        'seller': _('Seller must be the provider of the service.')
                    })
            return

        old_status = (
            Transaction.objects.filter(pk=self.pk)
            .values_list('status', flat=True)
            .first()
        )
        if old_status is None:
            return

        is_valid, error = check_transition(self.TRANSITIONS, old_status, self.status)
        if not is_valid:
            raise ValidationError({'status': error})


class Conversation(Entity):
    """
    Message thread between exactly two members about one service.

    pair_key is the sorted pair of participant ids; together with the service
    it is unique, so a pair has one thread per service whichever of them
    started it.
    """

    initiator = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='initiated_conversations',
    )

    recipient = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='received_conversations',
    )

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='conversations',
    )

    pair_key = models.CharField(
        max_length=80,
        blank=True,
        editable=False,
    )

    class Meta:
        verbose_name = _('conversation')
        verbose_name_plural = _('conversations')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['service', 'pair_key'],
                name='one_conversation_per_pair_per_service',
                violation_error_message=_('A conversation already exists for these members and service.'),
            )
        ]

    def __str__(self):
        return f'Conversation {self.id} about {self.service_id}'

    @staticmethod
    def make_pair_key(user_a, user_b):
        return ':'.join(sorted([str(user_a), str(user_b)]))

    @property
    def participants(self):
        return [self.initiator_id, self.recipient_id]

    def has_participant(self, user_id):
        return str(user_id) in {str(self.initiator_id), str(self.recipient_id)}

    def other_participant(self, user_id):
        """The participant who is not user_id."""
        if str(self.initiator_id) == str(user_id):
            return self.recipient
        return self.initiator

    def clean(self):
        super().clean()

        if self.initiator_id and self.recipient_id:
            if str(self.initiator_id) == str(self.recipient_id):
                raise ValidationError({
                    'recipient': _('A conversation needs two different participants.')
                })
            self.pair_key = self.make_pair_key(self.initiator_id, self.recipient_id)

    def save(self, *args, **kwargs):
        if self.initiator_id and self.recipient_id:
            self.pair_key = self.make_pair_key(self.initiator_id, self.recipient_id)
        super().save(*args, **kwargs)


class Message(Entity):
    """
    A single message in a conversation, ordered by created_at ascending.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.PROTECT,
        related_name='messages',
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='messages_sent',
    )

    text = models.TextField(
        _('text'),
        validators=[validate_not_blank],
    )

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['conversation', 'created_at'], name='message_conversation_idx'),
        ]

    def __str__(self):
        return f'Message {self.id} in {self.conversation_id}'

    def clean(self):
        """
        Trim text and check the sender belongs to the conversation.

        Raises:
            ValidationError: If the sender is not a participant
        """
        super().clean()

        if self.text:
            self.text = self.text.strip()

        if self.conversation_id and self.sender_id:
            conversation = Conversation.objects.filter(pk=self.conversation_id).first()
            if conversation is not None and not conversation.has_participant(self.sender_id):
                raise ValidationError({
                    'sender': _('Only conversation participants can post messages.')
                })


class StoredValue(models.Model):
    """
    Scalar key/value entry (session pointer, pending verification codes).
    """

    key = models.CharField(
        _('key'),
        max_length=255,
        primary_key=True,
    )

    value = models.TextField(
        _('value'),
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
    )

    class Meta:
        verbose_name = _('stored value')
        verbose_name_plural = _('stored values')

    def __str__(self):
        return self.key
