# database/simple_connection.py
# Datastore access for the service mapping pipeline

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import AppConfig
from database.models import Base, Provider, ServiceTaxonomy, ServiceMapping, ServiceMappingSuggestion
from api.services.service_mapping_errors import DataSourceUnavailable
from api.services.service_mapping_types import CanonicalService, ProviderRecord, SuggestionStatus

logger = logging.getLogger(__name__)

MAPPING_CONFLICT_KEYS = ["provider_service_name", "taxonomy_service_id"]
SUGGESTION_CONFLICT_KEYS = ["provider_service_name"]


class ServiceMappingDatabase:
    def __init__(self, database_url: Optional[str] = None, create_tables: bool = True):
        self.database_url = database_url or AppConfig.DATABASE_URL

        logger.info(f"📁 Using database: {self.database_url}")
        engine_kwargs: Dict[str, Any] = {"echo": False}  # Set to True for SQL debugging
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.database_url or self.database_url in ("sqlite://", "sqlite:///"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        if create_tables:
            self.init_database()

    def _get_conn(self) -> Session:
        """Return a SQLAlchemy Session"""
        return self.SessionLocal()

    def init_database(self):
        """Create the tables the pipeline reads and writes"""
        Base.metadata.create_all(bind=self.engine)
        logger.info("✅ Service mapping tables ready")

    # ============= READS =============

    def list_providers(self, status: Optional[str] = None) -> List[ProviderRecord]:
        """Providers with the given status (all providers when status is None)"""
        session = self._get_conn()
        try:
            query = select(Provider.id, Provider.services, Provider.status)
            if status is not None:
                query = query.where(Provider.status == status)
            rows = session.execute(query).all()
            return [ProviderRecord(id=str(r.id), services_field=r.services, status=r.status) for r in rows]
        except SQLAlchemyError as e:
            logger.error(f"❌ Error reading providers: {e}")
            raise DataSourceUnavailable("providers", str(e)) from e
        finally:
            session.close()

    def list_canonical_services(self, active_only: bool = True) -> List[CanonicalService]:
        session = self._get_conn()
        try:
            query = select(ServiceTaxonomy)
            if active_only:
                query = query.where(ServiceTaxonomy.active.is_(True))
            entries = session.execute(query).scalars().all()
            return [
                CanonicalService(
                    id=str(t.id),
                    category=t.category,
                    service=t.service,
                    historical_request_count=t.num_historical_requests or 0,
                    active=bool(t.active),
                )
                for t in entries
            ]
        except SQLAlchemyError as e:
            logger.error(f"❌ Error reading service_taxonomy: {e}")
            raise DataSourceUnavailable("service_taxonomy", str(e)) from e
        finally:
            session.close()

    def count_mappings(self, verified: Optional[bool] = None) -> int:
        session = self._get_conn()
        try:
            query = select(func.count()).select_from(ServiceMapping)
            if verified is not None:
                query = query.where(ServiceMapping.verified.is_(verified))
            return session.execute(query).scalar_one()
        finally:
            session.close()

    def count_pending_suggestions(self) -> int:
        session = self._get_conn()
        try:
            query = (
                select(func.count())
                .select_from(ServiceMappingSuggestion)
                .where(ServiceMappingSuggestion.status == SuggestionStatus.PENDING.value)
            )
            return session.execute(query).scalar_one()
        finally:
            session.close()

    def list_mappings(self, verified: Optional[bool] = None) -> List[Dict[str, Any]]:
        session = self._get_conn()
        try:
            query = select(ServiceMapping).order_by(ServiceMapping.provider_service_name)
            if verified is not None:
                query = query.where(ServiceMapping.verified.is_(verified))
            return [
                {
                    "provider_service_name": m.provider_service_name,
                    "taxonomy_service_id": str(m.taxonomy_service_id),
                    "confidence_score": m.confidence_score,
                    "match_type": m.match_type,
                    "verified": bool(m.verified),
                }
                for m in session.execute(query).scalars().all()
            ]
        finally:
            session.close()

    def list_suggestions(self, status: Optional[str] = SuggestionStatus.PENDING.value, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        session = self._get_conn()
        try:
            query = select(ServiceMappingSuggestion).order_by(ServiceMappingSuggestion.provider_service_name)
            if status is not None:
                query = query.where(ServiceMappingSuggestion.status == status)
            if limit:
                query = query.limit(limit)
            results = []
            for s in session.execute(query).scalars().all():
                results.append({
                    "provider_service_name": s.provider_service_name,
                    "suggestions": [
                        {"taxonomy_id": str(tid), "score": score}
                        for tid, score in (
                            (s.suggested_taxonomy_id_1, s.suggested_score_1),
                            (s.suggested_taxonomy_id_2, s.suggested_score_2),
                            (s.suggested_taxonomy_id_3, s.suggested_score_3),
                        )
                        if tid is not None
                    ],
                    "status": s.status,
                })
            return results
        finally:
            session.close()

    # ============= UPSERTS =============

    def _dialect_insert(self):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")
        return insert

    def _upsert(self, model, rows: Sequence[Dict[str, Any]], conflict_keys: List[str], guard=None) -> int:
        """
        INSERT ... ON CONFLICT DO UPDATE for one chunk, in one transaction.

        With a guard, the commit only happens inside `guard.committing()`;
        a cancelled guard raises WriteCancelled and the chunk is rolled back.
        """
        if not rows:
            return 0

        insert = self._dialect_insert()
        now = datetime.utcnow()
        values = [dict(row, id=str(uuid.uuid4()), created_at=now, updated_at=now) for row in rows]

        stmt = insert(model.__table__)
        update_columns = {
            column: stmt.excluded[column]
            for column in rows[0].keys()
            if column not in conflict_keys
        }
        update_columns["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(index_elements=conflict_keys, set_=update_columns)

        with self.engine.connect() as conn:
            trans = conn.begin()
            try:
                conn.execute(stmt, values)
                if guard is None:
                    trans.commit()
                else:
                    with guard.committing():
                        trans.commit()
            except Exception:
                if trans.is_active:
                    trans.rollback()
                raise
        return len(values)

    def upsert_mapping_rows(self, rows: Sequence[Dict[str, Any]], guard=None) -> int:
        return self._upsert(ServiceMapping, rows, MAPPING_CONFLICT_KEYS, guard)

    def upsert_suggestion_rows(self, rows: Sequence[Dict[str, Any]], guard=None) -> int:
        return self._upsert(ServiceMappingSuggestion, rows, SUGGESTION_CONFLICT_KEYS, guard)


_db: Optional[ServiceMappingDatabase] = None


def get_database() -> ServiceMappingDatabase:
    """Shared database instance, created on first use"""
    global _db
    if _db is None:
        try:
            _db = ServiceMappingDatabase()
        except SQLAlchemyError as e:
            logger.error(f"❌ Cannot open database: {e}")
            raise DataSourceUnavailable("database", str(e)) from e
    return _db
