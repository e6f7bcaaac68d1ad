from sqlalchemy import Column, String, DateTime, JSON, Integer, Boolean, Text, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base
import uuid
import os
from datetime import datetime

Base = declarative_base()

# Use String for UUID fields in SQLite, UUID for PostgreSQL
def get_uuid_column():
    """Return appropriate UUID column type based on database URL"""
    database_url = os.getenv("DATABASE_URL", "sqlite:///./service_mapping.db")
    if "postgresql" in database_url:
        from sqlalchemy.dialects.postgresql import UUID
        return UUID(as_uuid=False)
    else:
        # Use String for SQLite
        return String(36)

class Provider(Base):
    """Service provider as imported from the back office"""
    __tablename__ = "providers"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255))
    # Free text ("Canalização, Pintura") or a JSON list, depending on the import source
    services = Column(JSON)
    status = Column(String(50), default="ativo", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

class ServiceTaxonomy(Base):
    """Canonical service catalogue, built from historical service requests"""
    __tablename__ = "service_taxonomy"

    id = Column(get_uuid_column(), primary_key=True, default=lambda: str(uuid.uuid4()))
    category = Column(Text, nullable=False, index=True)
    service = Column(Text, nullable=False)
    num_historical_requests = Column(Integer, default=0)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('category', 'service', name='unique_taxonomy_category_service'),
    )

class ServiceMapping(Base):
    """Accepted mapping between a provider service label and a taxonomy entry"""
    __tablename__ = "service_mapping"

    id = Column(get_uuid_column(), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_service_name = Column(Text, nullable=False, index=True)
    taxonomy_service_id = Column(get_uuid_column(), ForeignKey("service_taxonomy.id"), nullable=False, index=True)
    confidence_score = Column(Integer)  # 0-100
    match_type = Column(String(20))  # exact, high, medium, low, manual
    verified = Column(Boolean, default=False, index=True)
    verified_by = Column(Text)
    verified_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('provider_service_name', 'taxonomy_service_id', name='unique_mapping_label_taxonomy'),
    )

class ServiceMappingSuggestion(Base):
    """Top candidates for a label that needs manual review"""
    __tablename__ = "service_mapping_suggestions"

    id = Column(get_uuid_column(), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_service_name = Column(Text, nullable=False, unique=True)
    suggested_taxonomy_id_1 = Column(get_uuid_column(), ForeignKey("service_taxonomy.id"))
    suggested_score_1 = Column(Integer)
    suggested_taxonomy_id_2 = Column(get_uuid_column(), ForeignKey("service_taxonomy.id"))
    suggested_score_2 = Column(Integer)
    suggested_taxonomy_id_3 = Column(get_uuid_column(), ForeignKey("service_taxonomy.id"))
    suggested_score_3 = Column(Integer)
    status = Column(String(20), default="pending")  # pending, resolved, dismissed
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('idx_service_mapping_suggestions_status', 'status'),
    )
