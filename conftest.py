"""Shared pytest fixtures: an in-memory database and seeding helpers."""

import itertools

import pytest

from database.models import Provider, ServiceTaxonomy
from database.simple_connection import ServiceMappingDatabase
from api.services.service_mapping_types import CanonicalService

_ids = itertools.count(1)


@pytest.fixture
def db():
    database = ServiceMappingDatabase(database_url="sqlite://")
    yield database
    database.engine.dispose()


@pytest.fixture
def add_taxonomy(db):
    """Insert taxonomy rows; returns the created CanonicalService list"""

    def _add(*entries):
        created = []
        session = db._get_conn()
        try:
            for entry in entries:
                if isinstance(entry, str):
                    entry = {"service": entry}
                row = ServiceTaxonomy(
                    id=entry.get("id", f"tax-{next(_ids):04d}"),
                    category=entry.get("category", "Geral"),
                    service=entry["service"],
                    num_historical_requests=entry.get("count", 0),
                    active=entry.get("active", True),
                )
                session.add(row)
                created.append(CanonicalService(
                    id=row.id,
                    category=row.category,
                    service=row.service,
                    historical_request_count=row.num_historical_requests,
                    active=row.active,
                ))
            session.commit()
        finally:
            session.close()
        return created

    return _add


@pytest.fixture
def add_providers(db):
    """Insert providers given as (id, services) or (id, services, status) tuples"""

    def _add(*providers):
        session = db._get_conn()
        try:
            for provider in providers:
                provider_id, services = provider[0], provider[1]
                status = provider[2] if len(provider) > 2 else "ativo"
                session.add(Provider(id=provider_id, name=f"Provider {provider_id}", services=services, status=status))
            session.commit()
        finally:
            session.close()

    return _add
