"""
Django admin configuration for the marketplace models.
"""

from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from .lifecycle import LifecycleEngine
from .models import Bid, Conversation, Message, Service, Transaction, User
from .store import EntityStore


class MarketplaceUserCreationForm(UserCreationForm):
    class Meta(UserCreationForm.Meta):
        model = User
        fields = ('email', 'name')
        field_classes = {}


class MarketplaceUserChangeForm(UserChangeForm):
    class Meta(UserChangeForm.Meta):
        model = User
        fields = '__all__'
        field_classes = {}


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Email replaces username as the login identifier.
    """

    form = MarketplaceUserChangeForm
    add_form = MarketplaceUserCreationForm

    list_display = [
        'email',
        'name',
        'edu_verified',
        'id_verified',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'edu_verified',
        'id_verified',
        'is_staff',
        'is_superuser',
        'is_active',
    ]

    search_fields = [
        'email',
        'name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        (_('Profile'), {
            'fields': ('name', 'bio', 'avatar_url')
        }),
        (_('Verification'), {
            'fields': ('edu_verified', 'id_verified', 'id_image')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'email',
                'name',
                'password1',
                'password2',
            ),
        }),
    )

    readonly_fields = ['created_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25


class BidInline(admin.TabularInline):
    """Inline admin for bids on a service."""
    model = Bid
    extra = 0
    fields = ['bidder', 'amount', 'status', 'created_at']
    readonly_fields = ['created_at']
    ordering = ['-created_at']


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    """
    Admin interface for Service model.

    Status changes from the bulk actions go through the lifecycle engine so
    the service state machine is enforced.
    """

    list_display = [
        'title',
        'provider',
        'category',
        'price',
        'status',
        'date_time',
        'created_at',
    ]

    list_filter = [
        'status',
        'category',
    ]

    search_fields = [
        'title',
        'description',
        'location',
        'provider__email',
        'provider__name',
    ]

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [BidInline]

    actions = ['mark_completed', 'mark_cancelled']

    fieldsets = (
        (None, {
            'fields': ('provider', 'title', 'description', 'image_url')
        }),
        (_('Pricing & Schedule'), {
            'fields': ('category', 'price', 'location', 'date_time', 'status')
        }),
        (_('Timestamps'), {
            'fields': ('created_at',),
            'classes': ('collapse',),
        }),
    )

    def _set_status(self, request, queryset, new_status):
        engine = LifecycleEngine(EntityStore())
        updated = 0
        for service in queryset:
            try:
                engine.set_service_status(service.id, new_status)
            except ValidationError as e:
                self.message_user(
                    request,
                    f'{service.title}: {" ".join(e.messages)}',
                    level=messages.WARNING
                )
                continue
            updated += 1

        if updated:
            self.message_user(request, f'{updated} service(s) marked {new_status}.')

    @admin.action(description=_('Mark selected services as completed'))
    def mark_completed(self, request, queryset):
        self._set_status(request, queryset, Service.STATUS_COMPLETED)

    @admin.action(description=_('Mark selected services as cancelled'))
    def mark_cancelled(self, request, queryset):
        self._set_status(request, queryset, Service.STATUS_CANCELLED)


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    """Admin interface for Bid model."""

    list_display = [
        'id',
        'service',
        'bidder',
        'amount',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
    ]

    search_fields = [
        'service__title',
        'bidder__email',
        'message',
    ]

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    list_per_page = 25


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Admin interface for Transaction model."""

    list_display = [
        'id',
        'service',
        'buyer',
        'seller',
        'amount',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
    ]

    search_fields = [
        'service__title',
        'buyer__email',
        'seller__email',
    ]

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ['sender', 'text', 'created_at']
    readonly_fields = ['created_at']
    ordering = ['created_at']


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        'id',
        'service',
        'initiator',
        'recipient',
        'created_at',
    ]

    search_fields = [
        'service__title',
        'initiator__email',
        'recipient__email',
    ]

    readonly_fields = ['created_at', 'pair_key']

    ordering = ['-created_at']

    list_per_page = 25

    inlines = [MessageInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        'id',
        'conversation',
        'sender',
        'created_at',
    ]

    search_fields = [
        'text',
        'sender__email',
    ]

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    list_per_page = 50
