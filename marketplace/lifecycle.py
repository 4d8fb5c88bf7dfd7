"""
Marketplace lifecycle engine: services, bids, purchases and transactions.

All multi-record changes (accepting a bid, buying a service) run inside a
single database transaction so either every write lands or none does.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from .models import Bid, Service, Transaction

logger = logging.getLogger(__name__)


BROWSE_ORDERINGS = {
    'newest': ('-created_at',),
    'price-low': ('price', '-created_at'),
    'price-high': ('-price', '-created_at'),
}

TEXT_FIELDS = ('title', 'description', 'location')


class LifecycleEngine:
    """
    State transitions for services, bids and transactions.

    Args:
        store: EntityStore used for all reads and writes
    """

    def __init__(self, store):
        self.store = store

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def create_service(self, provider_id, payload):
        """
        List a new service for provider_id.

        The initial status is always 'active'; text fields are trimmed.

        Returns:
            Service: The new listing

        Raises:
            ValidationError: If the payload is invalid or the provider does
                not exist
        """
        values = dict(payload)
        for field in TEXT_FIELDS:
            if isinstance(values.get(field), str):
                values[field] = values[field].strip()
        values.pop('provider', None)
        values['provider_id'] = provider_id
        values['status'] = Service.STATUS_ACTIVE

        service = self.store.create('services', values)
        logger.info(
            f"Service listed: {service.title} (ID: {service.id}), "
            f"Provider ID: {provider_id}, Price: {service.price}"
        )
        return service

    def get_service(self, service_id):
        return self.store.get('services', service_id)

    def list_services(self):
        return self.store.read_all('services')

    def services_by_provider(self, user_id):
        return self.store.find('services', provider_id=user_id, order_by=('-created_at',))

    def update_service(self, service_id, patch):
        return self.store.update('services', service_id, patch)

    def browse_services(self, query=None, category=None, ordering='newest'):
        """
        Active services matching an optional search and category.

        Args:
            query: Case-insensitive text matched against title, description
                and location
            category: Exact category name
            ordering: 'newest', 'price-low' or 'price-high'

        Returns:
            list: Matching services

        Raises:
            ValidationError: If ordering is not recognised
        """
        if ordering not in BROWSE_ORDERINGS:
            raise ValidationError({
                'ordering': f'Invalid ordering "{ordering}". Valid options: {", ".join(BROWSE_ORDERINGS)}'
            })

        filters = [Q(status=Service.STATUS_ACTIVE)]
        if query:
            filters.append(
                Q(title__icontains=query)
                | Q(description__icontains=query)
                | Q(location__icontains=query)
            )
        if category:
            filters.append(Q(category=category))

        return self.store.find('services', *filters, order_by=BROWSE_ORDERINGS[ordering])

    def set_service_status(self, service_id, new_status):
        """
        Administrative status change (e.g. to completed or cancelled).

        Returns:
            Service or None if the service does not exist

        Raises:
            ValidationError: If the transition is not allowed
        """
        service = self.store.update('services', service_id, {'status': new_status})
        if service is not None:
            logger.info(f"Service status set: {service.title} (ID: {service.id}) -> {new_status}")
        return service

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    def place_bid(self, service_id, bidder_id, amount, message=''):
        """
        Place a pending bid on an active service.

        Returns:
            Bid, or None if the service does not exist

        Raises:
            ValidationError: If the service is not active, the bidder is the
                provider, a bid was already accepted, or the amount is invalid
        """
        with transaction.atomic():
            service = self.store.get('services', service_id)
            if service is None:
                return None

            if service.status != Service.STATUS_ACTIVE:
                raise ValidationError({
                    'service': 'Bids can only be placed on active services.'
                })

            if str(service.provider_id) == str(bidder_id):
                raise ValidationError({
                    'bidder': 'You cannot bid on your own service.'
                })

            if self.store.find('bids', service_id=service.id, status=Bid.STATUS_ACCEPTED):
                raise ValidationError({
                    'service': 'This service already has an accepted bid.'
                })

            bid = self.store.create('bids', {
                'service_id': service.id,
                'bidder_id': bidder_id,
                'amount': amount,
                'message': (message or '').strip(),
                'status': Bid.STATUS_PENDING,
            })

        logger.info(
            f"Bid placed: {bid.amount} on {service.title} (Service ID: {service.id}), "
            f"Bidder ID: {bidder_id}, Bid ID: {bid.id}"
        )
        return bid

    def get_bid(self, bid_id):
        return self.store.get('bids', bid_id)

    def bids_for_service(self, service_id):
        """Bids on a service, newest first."""
        return self.store.find('bids', service_id=service_id, order_by=('-created_at',))

    def bids_by_bidder(self, user_id):
        """Bids placed by a user, newest first."""
        return self.store.find('bids', bidder_id=user_id, order_by=('-created_at',))

    def accept_bid(self, bid_id):
        """
        Accept a pending bid and reject every other pending bid on its service.

        Bids that are already accepted or rejected are returned unchanged.

        Returns:
            Bid, or None if the bid does not exist

        Raises:
            ValidationError: If the service is no longer active or already
                has an accepted bid
        """
        with transaction.atomic():
            bid = self.store.get('bids', bid_id)
            if bid is None:
                return None

            if bid.status != Bid.STATUS_PENDING:
                logger.info(f"Accept ignored: bid {bid.id} is already {bid.status}")
                return bid

            service = self.store.get('services', bid.service_id)
            if service.status != Service.STATUS_ACTIVE:
                raise ValidationError({
                    'service': 'Bids can only be accepted while the service is active.'
                })

            accepted = self.store.update('bids', bid.id, {'status': Bid.STATUS_ACCEPTED})

            others = self.store.find(
                'bids',
                ~Q(pk=bid.pk),
                service_id=bid.service_id,
                status=Bid.STATUS_PENDING,
            )
            for other in others:
                self.store.update('bids', other.id, {'status': Bid.STATUS_REJECTED})

        logger.info(
            f"Bid accepted: {accepted.id} on Service ID {accepted.service_id}, "
            f"Amount: {accepted.amount}, Other bids rejected: {len(others)}"
        )
        return accepted

    def reject_bid(self, bid_id):
        """
        Reject a single pending bid; other bids are untouched.

        Returns:
            Bid, or None if the bid does not exist
        """
        bid = self.store.get('bids', bid_id)
        if bid is None:
            return None

        if bid.status != Bid.STATUS_PENDING:
            logger.info(f"Reject ignored: bid {bid.id} is already {bid.status}")
            return bid

        rejected = self.store.update('bids', bid.id, {'status': Bid.STATUS_REJECTED})
        logger.info(f"Bid rejected: {rejected.id} on Service ID {rejected.service_id}")
        return rejected

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def buy_now(self, service_id, buyer_id):
        """
        Buy a service outright at its listed price.

        Creates a completed transaction (seller is the provider, amount is the
        listed price) and moves the service to in-progress, in one database
        transaction.

        Returns:
            Transaction, or None if the service does not exist

        Raises:
            ValidationError: If the service is not active or the buyer is the
                provider
        """
        with transaction.atomic():
            service = self.store.get('services', service_id)
            if service is None:
                return None

            if service.status != Service.STATUS_ACTIVE:
                raise ValidationError({
                    'service': 'This service is no longer available for purchase.'
                })

            purchase = self.store.create('transactions', {
                'service_id': service.id,
                'buyer_id': buyer_id,
                'seller_id': service.provider_id,
                'amount': service.price,
                'status': Transaction.STATUS_COMPLETED,
            })
            self.store.update('services', service.id, {'status': Service.STATUS_IN_PROGRESS})

        logger.info(
            f"Purchase recorded: Transaction ID {purchase.id}, "
            f"Service: {service.title} (ID: {service.id}), "
            f"Buyer ID: {buyer_id}, Seller ID: {service.provider_id}, Amount: {purchase.amount}"
        )
        return purchase

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id):
        return self.store.get('transactions', transaction_id)

    def transactions_for_user(self, user_id):
        """Transactions where the user is buyer or seller, newest first."""
        return self.store.find(
            'transactions',
            Q(buyer_id=user_id) | Q(seller_id=user_id),
            order_by=('-created_at',),
        )

    def purchases_for_user(self, user_id):
        return self.store.find('transactions', buyer_id=user_id, order_by=('-created_at',))

    def earnings_for_user(self, user_id):
        return self.store.find('transactions', seller_id=user_id, order_by=('-created_at',))

    def dashboard(self, user_id):
        """
        Summary of a user's marketplace activity.

        Returns:
            dict: listings, purchases, bids and earnings lists
        """
        return {
            'listings': self.services_by_provider(user_id),
            'purchases': self.purchases_for_user(user_id),
            'bids': self.bids_by_bidder(user_id),
            'earnings': self.earnings_for_user(user_id),
        }
