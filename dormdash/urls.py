"""
URL configuration for the dormdash project.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path

from marketplace.views import (
    BidAcceptView,
    BidRejectView,
    CheckoutView,
    ConversationListView,
    ConversationMessagesView,
    DashboardView,
    IdVerificationView,
    LoginView,
    LogoutView,
    ServiceBidsView,
    ServiceConversationView,
    ServiceDetailView,
    ServiceListCreateView,
    SignupVerifyView,
    SignupView,
    UserProfileView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/signup/', SignupView.as_view(), name='signup'),
    path('api/auth/signup/verify/', SignupVerifyView.as_view(), name='signup_verify'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', LogoutView.as_view(), name='user_logout'),
    path('api/auth/profile/', UserProfileView.as_view(), name='user_profile'),
    path('api/auth/verify-id/', IdVerificationView.as_view(), name='verify_id'),

    # Service endpoints
    path('api/services/', ServiceListCreateView.as_view(), name='service_list'),
    path('api/services/<uuid:pk>/', ServiceDetailView.as_view(), name='service_detail'),
    path('api/services/<uuid:pk>/bids/', ServiceBidsView.as_view(), name='service_bids'),
    path('api/services/<uuid:pk>/checkout/', CheckoutView.as_view(), name='service_checkout'),
    path('api/services/<uuid:pk>/conversation/', ServiceConversationView.as_view(), name='service_conversation'),

    # Bid endpoints
    path('api/bids/<uuid:pk>/accept/', BidAcceptView.as_view(), name='bid_accept'),
    path('api/bids/<uuid:pk>/reject/', BidRejectView.as_view(), name='bid_reject'),

    # Conversation endpoints
    path('api/conversations/', ConversationListView.as_view(), name='conversation_list'),
    path('api/conversations/<uuid:pk>/messages/', ConversationMessagesView.as_view(), name='conversation_messages'),

    path('api/dashboard/', DashboardView.as_view(), name='dashboard'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
