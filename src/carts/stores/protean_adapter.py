"""Durable cart stores backed by protean repositories.

Repository calls are blocking (SQLAlchemy under the ``production`` config),
so each call runs in a worker thread with the carts domain context pushed,
keeping the event loop free while the durable tier is slow.
"""

import asyncio
from datetime import UTC, datetime

from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from carts.cart.cart import as_utc
from carts.persisted.persisted_cart import PersistedCart
from carts.saved.saved_cart import SavedCart
from carts.stores.port import DurableCartStore, SavedCartStore


_EPOCH = datetime.min.replace(tzinfo=UTC)

# Rows per repository page; protean caps an unbounded query at its default limit
_PAGE_SIZE = 100


def _newest_first(records):
    return sorted(records, key=lambda r: as_utc(r.updated_at) if r.updated_at else _EPOCH, reverse=True)


def _updated_before(record, cutoff: datetime) -> bool:
    return record.updated_at is not None and as_utc(record.updated_at) < as_utc(cutoff)


class _DomainBound:
    """Run blocking repository code off the event loop inside the domain context."""

    def __init__(self, domain: Domain):
        self._domain = domain

    async def _run(self, fn, *args, **kwargs):
        return await asyncio.to_thread(self._in_context, fn, *args, **kwargs)

    def _in_context(self, fn, *args, **kwargs):
        with self._domain.domain_context():
            return fn(*args, **kwargs)


class ProteanDurableCartStore(_DomainBound, DurableCartStore):
    """PersistedCart repository wrapped as a DurableCartStore."""

    def _repo(self):
        return self._domain.repository_for(PersistedCart)

    def _filter(self, **filters) -> list:
        """Every record matching ``filters``, read a page at a time."""
        query = self._repo()._dao.query.filter(**filters).order_by("id")
        records, offset = [], 0
        while True:
            page = query.limit(_PAGE_SIZE).offset(offset).all().items
            records.extend(page)
            if len(page) < _PAGE_SIZE:
                return records
            offset += _PAGE_SIZE

    def _get(self, cart_id, tenant_id):
        try:
            record = self._repo().get(cart_id)
        except ObjectNotFoundError:
            return None
        return record if record.tenant_id == tenant_id else None

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    async def find_by_id(self, cart_id, tenant_id):
        return await self._run(self._get, cart_id, tenant_id)

    async def find_by_session_and_tenant(self, session_id, tenant_id):
        def _find():
            records = self._filter(tenant_id=tenant_id, session_id=session_id)
            if not records:
                return None
            live = [r for r in records if not r.converted]
            return _newest_first(live or records)[0]

        return await self._run(_find)

    async def find_by_user_and_tenant(self, user_id, tenant_id):
        def _find():
            records = self._filter(tenant_id=tenant_id, user_id=user_id, converted=False)
            return _newest_first(records)[0] if records else None

        return await self._run(_find)

    async def find_abandoned(self, tenant_id, updated_before):
        def _find():
            records = self._filter(tenant_id=tenant_id, converted=False)
            return _newest_first([r for r in records if _updated_before(r, updated_before)])

        return await self._run(_find)

    async def find_unconverted(self, tenant_id):
        return await self._run(lambda: _newest_first(self._filter(tenant_id=tenant_id, converted=False)))

    async def count_unconverted(self, tenant_id):
        return await self._run(lambda: len(self._filter(tenant_id=tenant_id, converted=False)))

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    async def save(self, record):
        def _save():
            stored = self._get(record.id, record.tenant_id)
            if stored is None:
                try:
                    self._repo().get(record.id)
                except ObjectNotFoundError:
                    pass
                else:
                    raise ValidationError({"tenant_id": [f"Cart {record.id} belongs to another tenant"]})
            elif stored.converted and not record.converted:
                raise ValidationError({"converted": [f"Cart {record.id} is converted and cannot be reactivated"]})

            self._repo().add(record)
            return record

        return await self._run(_save)

    async def delete(self, cart_id, tenant_id):
        def _delete():
            record = self._get(cart_id, tenant_id)
            if record is None:
                return False
            self._repo()._dao.delete(record)
            return True

        return await self._run(_delete)

    async def delete_matching(self, tenant_id, *, converted, updated_before):
        def _delete():
            expired = [
                record
                for record in self._filter(tenant_id=tenant_id, converted=converted)
                if _updated_before(record, updated_before)
            ]
            for record in expired:
                self._repo()._dao.delete(record)
            return len(expired)

        return await self._run(_delete)


class ProteanSavedCartStore(_DomainBound, SavedCartStore):
    """SavedCart repository wrapped as a SavedCartStore."""

    def _repo(self):
        return self._domain.repository_for(SavedCart)

    def _first(self, **filters):
        records = self._repo()._dao.query.filter(**filters).all().items
        if not records:
            return None
        # Reload through the repository so the items association is populated
        return self._repo().get(records[0].id)

    async def find_by_user(self, user_id, tenant_id):
        return await self._run(self._first, tenant_id=tenant_id, user_id=user_id)

    async def find_by_session(self, session_id, tenant_id):
        return await self._run(self._first, tenant_id=tenant_id, session_id=session_id)

    async def save(self, saved_cart):
        def _save():
            self._repo().add(saved_cart)
            return saved_cart

        return await self._run(_save)

    async def delete(self, saved_cart):
        await self._run(lambda: self._repo()._dao.delete(saved_cart))
