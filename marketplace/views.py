"""
API views for the DormDash marketplace.

The views are thin: they validate request shape with serializers, call the
core services, and translate results into HTTP responses:
- None (not found) -> 404
- Django ValidationError -> 400
- AuthFailure / VerificationFailure -> 404 / 401 / 400
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .conversations import ConversationDirectory
from .identity import AuthFailure, IdentityService, VerificationFailure
from .lifecycle import LifecycleEngine
from .models import Service
from .permissions import IsConversationParticipant, IsServiceProvider
from .serializers import (
    BidCreateSerializer,
    BidSerializer,
    CheckoutSerializer,
    ConversationSerializer,
    IdVerificationSerializer,
    LoginSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ProfileUpdateSerializer,
    PublicUserSerializer,
    ServiceCreateSerializer,
    ServiceDetailSerializer,
    ServiceSerializer,
    SignupSerializer,
    SignupVerifySerializer,
    TransactionSerializer,
    UserProfileSerializer,
)
from .store import EntityStore

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0]
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def validation_error_response(error):
    """
    Convert a Django ValidationError into a 400 response.

    Field errors keep their field keys; plain errors go under 'detail'.
    """
    if hasattr(error, 'error_dict'):
        data = error.message_dict
    else:
        data = {'detail': error.messages}
    return Response(data, status=status.HTTP_400_BAD_REQUEST)


def not_found_response(kind, object_id):
    return Response(
        {'detail': f'{kind} with ID {object_id} does not exist.'},
        status=status.HTTP_404_NOT_FOUND
    )


class MarketplaceAPIView(APIView):
    """
    Base view wiring the core services to a fresh EntityStore.
    """

    def get_store(self):
        return EntityStore()

    def get_identity(self):
        return IdentityService(self.get_store())

    def get_engine(self):
        return LifecycleEngine(self.get_store())

    def get_directory(self):
        return ConversationDirectory(self.get_store())


# ============================================================================
# Signup, login & profile
# ============================================================================

class SignupView(MarketplaceAPIView):
    """
    First signup step: validate the form and issue a verification code.

    POST /api/auth/signup/
    Request body: {"name": "Jane", "email": "jane@utexas.edu", "password": "secret1"}

    Success response (201):
    {"email": "jane@utexas.edu", "verification_code": "482913", "detail": "..."}

    Email delivery is mocked, so the code is returned to the caller.

    Error responses:
    - 400: Invalid form (non-campus email, short password, taken email)
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'signup'

    def post(self, request, *args, **kwargs):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            code = self.get_identity().start_signup(data['name'], data['email'], data['password'])
        except DjangoValidationError as e:
            logger.warning(
                f"Signup rejected. Email: {data['email']}, "
                f"Errors: {e.messages}, IP: {get_client_ip(request)}"
            )
            return validation_error_response(e)

        return Response(
            {
                'email': data['email'].strip().lower(),
                'verification_code': code,
                'detail': f"We sent a verification code to {data['email']}.",
            },
            status=status.HTTP_201_CREATED
        )


class SignupVerifyView(MarketplaceAPIView):
    """
    Second signup step: submit the code and create the account.

    POST /api/auth/signup/verify/
    Request body: {"name": "...", "email": "...", "password": "...", "code": "482913"}

    Success response (201): the new user's profile; the session now points
    at the new user.

    Error responses:
    - 400: Code does not match (the code stays valid for another attempt)
    - 404: No pending code for this email
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'signup'

    def post(self, request, *args, **kwargs):
        serializer = SignupVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = self.get_identity().complete_signup(
                data['email'], data['code'], data['name'], data['password']
            )
        except DjangoValidationError as e:
            return validation_error_response(e)

        if result is VerificationFailure.NOT_FOUND:
            return Response(
                {'detail': 'No pending verification for this email. Please sign up again.'},
                status=status.HTTP_404_NOT_FOUND
            )

        if result is VerificationFailure.MISMATCH:
            logger.warning(
                f"Invalid verification code. Email: {data['email']}, IP: {get_client_ip(request)}"
            )
            return Response(
                {'detail': 'Invalid verification code.'},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(UserProfileSerializer(result).data, status=status.HTTP_201_CREATED)


class LoginView(MarketplaceAPIView):
    """
    API endpoint for user login.

    POST /api/auth/login/
    Request body: {"email": "user@utexas.edu", "password": "password123"}

    Success response (200): {"user": {...profile...}}

    Error responses:
    - 404: No account with that email
    - 401: Wrong password
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']

        result = self.get_identity().login(email, serializer.validated_data['password'])

        if result is AuthFailure.NOT_FOUND:
            logger.warning(f"Failed login attempt (no account). Email: {email}, IP: {get_client_ip(request)}")
            return Response(
                {'detail': 'No account found with this email.'},
                status=status.HTTP_404_NOT_FOUND
            )

        if result is AuthFailure.WRONG_PASSWORD:
            logger.warning(f"Failed login attempt (wrong password). Email: {email}, IP: {get_client_ip(request)}")
            return Response(
                {'detail': 'Incorrect password.'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        logger.info(f"Successful login. User: {result.email} (ID: {result.id}), IP: {get_client_ip(request)}")
        return Response({'user': UserProfileSerializer(result).data}, status=status.HTTP_200_OK)


class LogoutView(MarketplaceAPIView):
    """
    POST /api/auth/logout/ - clear the session pointer (204).
    """
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        self.get_identity().logout()
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserProfileView(MarketplaceAPIView):
    """
    The current user's profile.

    GET /api/auth/profile/ - profile of the logged-in user
    PATCH /api/auth/profile/ - update name, bio or avatar_url
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserProfileSerializer(request.user).data)

    def patch(self, request, *args, **kwargs):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = self.get_identity().update_profile(request.user.id, serializer.validated_data)
        except DjangoValidationError as e:
            return validation_error_response(e)

        if user is None:
            return not_found_response('User', request.user.id)

        logger.info(
            f"Profile updated. User: {user.email} (ID: {user.id}), "
            f"Fields: {sorted(serializer.validated_data)}"
        )
        return Response(UserProfileSerializer(user).data)


class IdVerificationView(MarketplaceAPIView):
    """
    Mocked student ID verification.

    POST /api/auth/verify-id/ (multipart, field "id_image")

    Any valid jpg/png/webp image up to 5MB marks the user ID-verified.
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, *args, **kwargs):
        serializer = IdVerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = self.get_identity().verify_identity(
                request.user.id, serializer.validated_data['id_image']
            )
        except DjangoValidationError as e:
            return validation_error_response(e)

        if user is None:
            return not_found_response('User', request.user.id)

        return Response(UserProfileSerializer(user).data)


# ============================================================================
# Services
# ============================================================================

class ServicePagination(PageNumberPagination):
    page_size_query_param = 'page_size'
    max_page_size = 100


class ServiceListCreateView(MarketplaceAPIView):
    """
    Browse active services or list a new one.

    GET /api/services/
    Query parameters:
    - q: search text (title, description, location; case-insensitive)
    - category: one of the fixed categories
    - ordering: newest (default), price-low, price-high
    - page, page_size: pagination

    POST /api/services/ (authenticated)
    Request body: {"title", "description", "category", "price", "location",
                   "date_time", "image_url"?}
    Success response (201): the new listing with status "active"
    """
    pagination_class = ServicePagination

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated()]
        return [AllowAny()]

    def get(self, request, *args, **kwargs):
        category = request.query_params.get('category') or None
        valid_categories = [value for value, _label in Service.CATEGORY_CHOICES]
        if category is not None and category not in valid_categories:
            return Response(
                {'error': f'Invalid category "{category}". Valid options: {", ".join(valid_categories)}'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            services = self.get_engine().browse_services(
                query=request.query_params.get('q') or None,
                category=category,
                ordering=request.query_params.get('ordering') or 'newest',
            )
        except DjangoValidationError as e:
            return validation_error_response(e)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(services, request, view=self)
        serializer = ServiceSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def post(self, request, *args, **kwargs):
        serializer = ServiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            service = self.get_engine().create_service(request.user.id, serializer.validated_data)
        except DjangoValidationError as e:
            logger.warning(
                f"Service creation rejected. User: {request.user.email}, "
                f"Errors: {e.messages}, IP: {get_client_ip(request)}"
            )
            return validation_error_response(e)

        return Response(ServiceSerializer(service).data, status=status.HTTP_201_CREATED)


class ServiceDetailView(MarketplaceAPIView):
    """
    GET /api/services/<id>/ - listing with provider and bids (newest first).
    """
    permission_classes = [AllowAny]

    def get(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        service = engine.get_service(pk)
        if service is None:
            return not_found_response('Service', pk)

        serializer = ServiceDetailSerializer(
            service,
            context={'request': request, 'bids': engine.bids_for_service(service.id)}
        )
        return Response(serializer.data)


class ServiceBidsView(MarketplaceAPIView):
    """
    Bids on a service.

    GET /api/services/<id>/bids/ - bids, newest first
    POST /api/services/<id>/bids/ (authenticated) - place a bid
    Request body: {"amount": "35.00", "message": "..."}

    Error responses:
    - 400: Non-positive amount, own service, service not active, or a bid
      was already accepted
    - 404: Service not found
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated()]
        return [AllowAny()]

    def get(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        if engine.get_service(pk) is None:
            return not_found_response('Service', pk)
        return Response(BidSerializer(engine.bids_for_service(pk), many=True).data)

    def post(self, request, pk, *args, **kwargs):
        serializer = BidCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            bid = self.get_engine().place_bid(
                pk,
                request.user.id,
                serializer.validated_data['amount'],
                serializer.validated_data.get('message', ''),
            )
        except DjangoValidationError as e:
            logger.warning(
                f"Bid rejected. Service ID: {pk}, User: {request.user.email}, "
                f"Errors: {e.messages}, IP: {get_client_ip(request)}"
            )
            return validation_error_response(e)

        if bid is None:
            return not_found_response('Service', pk)

        return Response(BidSerializer(bid).data, status=status.HTTP_201_CREATED)


class BidDecisionView(MarketplaceAPIView):
    """
    Provider decision on a bid.

    POST /api/bids/<id>/accept/ - accept; other pending bids are rejected
    POST /api/bids/<id>/reject/ - reject this bid only

    Error responses:
    - 403: Requester is not the service provider
    - 404: Bid not found
    - 400: Service no longer active or already has an accepted bid
    """
    permission_classes = [IsAuthenticated]
    decision = None

    def post(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        bid = engine.get_bid(pk)
        if bid is None:
            return not_found_response('Bid', pk)

        permission = IsServiceProvider()
        if not permission.has_object_permission(request, self, bid):
            logger.warning(
                f"Unauthorized bid {self.decision} attempt. Bid ID: {pk}, "
                f"User: {request.user.email} (ID: {request.user.id}), IP: {get_client_ip(request)}"
            )
            return Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        try:
            if self.decision == 'accept':
                bid = engine.accept_bid(pk)
            else:
                bid = engine.reject_bid(pk)
        except DjangoValidationError as e:
            return validation_error_response(e)

        return Response(BidSerializer(bid).data)


class BidAcceptView(BidDecisionView):
    decision = 'accept'


class BidRejectView(BidDecisionView):
    decision = 'reject'


class CheckoutView(MarketplaceAPIView):
    """
    Buy a service outright (mocked payment).

    POST /api/services/<id>/checkout/
    Request body: {"card_name": "...", "card_number": "4242 4242 4242 4242",
                   "expiry": "12/28", "cvv": "123"}

    Success response (201): the completed transaction; the service moves to
    "in-progress". The listed price is charged.

    Error responses:
    - 400: Invalid card details, own service, or service not active
    - 404: Service not found
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        if engine.get_service(pk) is None:
            return not_found_response('Service', pk)

        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            purchase = engine.buy_now(pk, request.user.id)
        except DjangoValidationError as e:
            logger.warning(
                f"Checkout rejected. Service ID: {pk}, User: {request.user.email}, "
                f"Errors: {e.messages}, IP: {get_client_ip(request)}"
            )
            return validation_error_response(e)

        if purchase is None:
            return not_found_response('Service', pk)

        return Response(TransactionSerializer(purchase).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Conversations
# ============================================================================

class ServiceConversationView(MarketplaceAPIView):
    """
    Open (or reopen) the thread with a service's provider.

    POST /api/services/<id>/conversation/
    Success response: 201 when created, 200 when it already existed.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        service = self.get_engine().get_service(pk)
        if service is None:
            return not_found_response('Service', pk)

        try:
            conversation, created = self.get_directory().get_or_create_conversation(
                request.user.id, service.provider_id, service.id
            )
        except DjangoValidationError as e:
            return validation_error_response(e)

        serializer = ConversationSerializer(conversation, context={'user_id': request.user.id})
        return Response(
            serializer.data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


class ConversationListView(MarketplaceAPIView):
    """
    GET /api/conversations/ - the current user's threads, newest first.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        directory = self.get_directory()
        conversations = directory.conversations_for_user(request.user.id)
        last_messages = {c.id: directory.last_message(c.id) for c in conversations}

        serializer = ConversationSerializer(
            conversations,
            many=True,
            context={'user_id': request.user.id, 'last_messages': last_messages}
        )
        return Response(serializer.data)


class ConversationMessagesView(MarketplaceAPIView):
    """
    Messages in a thread (participants only).

    GET /api/conversations/<id>/messages/ - full history, oldest first
    POST /api/conversations/<id>/messages/ - {"text": "..."}
    """
    permission_classes = [IsAuthenticated]

    def get_conversation(self, request, pk):
        conversation = self.get_directory().get_conversation(pk)
        if conversation is None:
            return None, not_found_response('Conversation', pk)

        permission = IsConversationParticipant()
        if not permission.has_object_permission(request, self, conversation):
            logger.warning(
                f"Non-participant conversation access. Conversation ID: {pk}, "
                f"User: {request.user.email} (ID: {request.user.id}), IP: {get_client_ip(request)}"
            )
            return None, Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        return conversation, None

    def get(self, request, pk, *args, **kwargs):
        conversation, error = self.get_conversation(request, pk)
        if error is not None:
            return error

        messages = self.get_directory().list_messages(conversation.id)
        return Response({
            'conversation': ConversationSerializer(conversation, context={'user_id': request.user.id}).data,
            'messages': MessageSerializer(messages, many=True).data,
        })

    def post(self, request, pk, *args, **kwargs):
        conversation, error = self.get_conversation(request, pk)
        if error is not None:
            return error

        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            message = self.get_directory().post_message(
                conversation.id, request.user.id, serializer.validated_data['text']
            )
        except DjangoValidationError as e:
            return validation_error_response(e)

        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Dashboard
# ============================================================================

class DashboardView(MarketplaceAPIView):
    """
    GET /api/dashboard/ - the current user's listings, purchases, bids and
    earnings with counts.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        summary = self.get_engine().dashboard(request.user.id)

        return Response({
            'user': PublicUserSerializer(request.user).data,
            'counts': {key: len(items) for key, items in summary.items()},
            'listings': ServiceSerializer(summary['listings'], many=True).data,
            'purchases': TransactionSerializer(summary['purchases'], many=True).data,
            'bids': BidSerializer(summary['bids'], many=True).data,
            'earnings': TransactionSerializer(summary['earnings'], many=True).data,
        })
