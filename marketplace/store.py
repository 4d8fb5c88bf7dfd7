"""
Entity store: keyed record collections and scalar keys over the Django ORM.

Collections are addressed by name ('users', 'services', 'bids', 'messages',
'conversations', 'transactions'). The store assigns ids and creation
timestamps, validates every write with full_clean(), and reports a missing
record as None rather than raising.
"""

import logging
import threading
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import ProtectedError
from django.utils import timezone

from .models import Bid, Conversation, Message, Service, StoredValue, Transaction, User

logger = logging.getLogger(__name__)


COLLECTIONS = {
    'users': User,
    'services': Service,
    'bids': Bid,
    'messages': Message,
    'conversations': Conversation,
    'transactions': Transaction,
}

IMMUTABLE_FIELDS = {'id', 'created_at'}

_stamp_lock = threading.Lock()
_last_stamp = None


def next_timestamp():
    """
    Return a creation timestamp strictly later than any previously issued.

    Records created within the same clock tick still sort in creation order.
    """
    global _last_stamp

    with _stamp_lock:
        now = timezone.now()
        if _last_stamp is not None and now <= _last_stamp:
            now = _last_stamp + timedelta(microseconds=1)
        _last_stamp = now
        return now


class UnknownCollection(LookupError):
    """Raised when a collection name is not one of COLLECTIONS."""


class EntityStore:
    """
    Process-wide persistent storage for marketplace records.

    Usage:
        store = EntityStore()
        service = store.create('services', {...})
        store.update('services', service.id, {'status': 'in-progress'})
    """

    def model_for(self, collection):
        """
        Resolve a collection name to its model class.

        Raises:
            UnknownCollection: If the name is not a known collection
        """
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise UnknownCollection(f'Unknown collection "{collection}".') from None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_all(self, collection):
        """
        Return every record of a collection, oldest first.

        Returns:
            list: Records ordered by created_at (empty if none exist)
        """
        model = self.model_for(collection)
        return list(model.objects.order_by('created_at'))

    def get(self, collection, record_id):
        """
        Look up a record by id.

        Returns:
            The record, or None if the id does not resolve (including
            malformed ids)
        """
        model = self.model_for(collection)
        if record_id is None:
            return None
        try:
            return model.objects.filter(pk=record_id).first()
        except (ValidationError, ValueError):
            return None

    def find(self, collection, *filters, order_by=('created_at',), **lookups):
        """
        Return records matching ORM filters.

        Args:
            collection: Collection name
            *filters: Q objects
            order_by: Ordering fields (default oldest first)
            **lookups: Field lookups

        Returns:
            list: Matching records (empty for malformed lookup values)
        """
        model = self.model_for(collection)
        try:
            return list(model.objects.filter(*filters, **lookups).order_by(*order_by))
        except (ValidationError, ValueError):
            return []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, collection, payload):
        """
        Create a record with a fresh id and creation timestamp.

        Args:
            collection: Collection name
            payload: Dict of field values (id and created_at are ignored)

        Returns:
            The saved record

        Raises:
            ValidationError: If the payload names unknown fields or is invalid
        """
        model = self.model_for(collection)
        values = {k: v for k, v in payload.items() if k not in IMMUTABLE_FIELDS}

        record = model()
        self._apply(model, record, values)
        record.created_at = next_timestamp()
        record.full_clean()
        record.save(force_insert=True)

        logger.info(f"Created {collection} record {record.pk}")
        return record

    def update(self, collection, record_id, patch):
        """
        Merge patch fields into a stored record.

        Args:
            collection: Collection name
            record_id: Id of the record to update
            patch: Dict of field values to overwrite

        Returns:
            The updated record, or None if no record has that id

        Raises:
            ValidationError: If the patch names unknown or immutable fields,
                or the merged record is invalid
        """
        model = self.model_for(collection)

        with transaction.atomic():
            record = self.get(collection, record_id)
            if record is None:
                logger.info(f"Update skipped: {collection} record {record_id} not found")
                return None

            self._apply(model, record, patch)
            record.full_clean()
            record.save()

        logger.info(f"Updated {collection} record {record.pk}: fields={sorted(patch)}")
        return record

    def write_all(self, collection, records):
        """
        Replace an entire collection in one database transaction.

        Records missing from `records` are removed; the rest are validated
        and saved. Records may be model instances or dicts with an 'id'.

        Returns:
            list: The saved records, in the order given

        Raises:
            ValidationError: If any record is invalid, or a removed record is
                still referenced by another record (nothing is written)
        """
        model = self.model_for(collection)
        saved = []

        with transaction.atomic():
            existing = {str(r.pk): r for r in model.objects.all()}

            for item in records:
                if isinstance(item, model):
                    record = item
                else:
                    item = dict(item)
                    record_id = item.pop('id', None)
                    record = existing.get(str(record_id)) if record_id else None
                    if record is None:
                        record = model(**({'id': record_id} if record_id else {}))
                        record.created_at = item.pop('created_at', None) or next_timestamp()
                    self._apply(model, record, item)
                record.full_clean()
                saved.append(record)

            keep = [r.pk for r in saved]
            try:
                model.objects.exclude(pk__in=keep).delete()
            except ProtectedError as exc:
                logger.warning(f"Replace of {collection} refused: removed records are still referenced")
                raise ValidationError({'records': 'Cannot remove records that other records reference.'}) from exc
            for record in saved:
                record.save()

        logger.info(f"Replaced {collection} collection with {len(saved)} records")
        return saved

    def _apply(self, model, record, patch):
        field_names = {}
        for field in model._meta.concrete_fields:
            field_names[field.name] = field
            field_names[field.attname] = field

        unknown = [k for k in patch if k not in field_names]
        if unknown:
            raise ValidationError({k: 'Unknown field.' for k in unknown})

        immutable = [k for k in patch if field_names[k].name in IMMUTABLE_FIELDS]
        if immutable:
            raise ValidationError({k: 'This field cannot be changed.' for k in immutable})

        for key, value in patch.items():
            setattr(record, key, value)

    # ------------------------------------------------------------------
    # Scalar keys
    # ------------------------------------------------------------------

    def get_value(self, key):
        """Return the value stored under key, or None."""
        return StoredValue.objects.filter(pk=key).values_list('value', flat=True).first()

    def set_value(self, key, value):
        """Store value under key, overwriting any previous value."""
        StoredValue.objects.update_or_create(key=key, defaults={'value': str(value)})

    def clear_value(self, key):
        """
        Remove key.

        Returns:
            bool: True if a value was removed
        """
        deleted, _ = StoredValue.objects.filter(pk=key).delete()
        return bool(deleted)
