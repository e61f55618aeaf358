"""
CarbonChain - ORM Models
=========================
SQLAlchemy ORM models: profiles, projects, media, credit mirror, transactions.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileORM(Base):
    """Profile ORM model (identity of NGO, admin, buyer)"""
    __tablename__ = 'profiles'

    id = Column(String(64), primary_key=True, default=_new_id)
    full_name = Column(String(256), nullable=True)
    organization = Column(String(256), nullable=True)
    role = Column(String(20), nullable=False, default="ngo")
    address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    projects = relationship("ProjectORM", back_populates="submitter")

    __table_args__ = (
        Index('idx_profiles_role', 'role'),
    )


class ProjectORM(Base):
    """Project ORM model"""
    __tablename__ = 'projects'

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(256), nullable=False)
    project_type = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    planting_date = Column(String(32), nullable=True)
    location_name = Column(String(256), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    area_hectares = Column(Float, nullable=True)
    tree_species = Column(JSON, nullable=True)
    estimated_co2_tons = Column(Integer, nullable=False, default=0)
    available_credits = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    submitted_by = Column(String(64), ForeignKey('profiles.id'), nullable=False)
    verification_date = Column(DateTime(timezone=True), nullable=True)
    verification_notes = Column(Text, nullable=True)
    blockchain_hash = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    submitter = relationship("ProfileORM", back_populates="projects")
    media = relationship("ProjectMediaORM", back_populates="project")

    __table_args__ = (
        Index('idx_projects_status', 'status'),
        Index('idx_projects_submitted_by', 'submitted_by'),
    )


class ProjectMediaORM(Base):
    """Project media ORM model"""
    __tablename__ = 'project_media'

    id = Column(String(64), primary_key=True, default=_new_id)
    project_id = Column(String(64), ForeignKey('projects.id'), nullable=False)
    file_url = Column(Text, nullable=False)
    file_name = Column(String(256), nullable=True)
    media_type = Column(String(20), nullable=False, default="document")
    file_size = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    project = relationship("ProjectORM", back_populates="media")

    __table_args__ = (
        Index('idx_project_media_project', 'project_id'),
    )


class CarbonCreditORM(Base):
    """Local mirror of an on-chain credit token"""
    __tablename__ = 'carbon_credits'

    id = Column(String(64), primary_key=True, default=_new_id)
    project_id = Column(String(64), ForeignKey('projects.id'), nullable=False)
    token_id = Column(String(80), nullable=False)
    amount_tons = Column(Integer, nullable=False)
    price_per_ton = Column(Float, nullable=False, default=0)
    total_value = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="available")
    owner_id = Column(String(64), ForeignKey('profiles.id'), nullable=True)
    blockchain_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index('idx_carbon_credits_project', 'project_id'),
        Index('idx_carbon_credits_token', 'token_id'),
    )


class CreditTransactionORM(Base):
    """Purchase receipt ORM model"""
    __tablename__ = 'transactions'

    id = Column(String(64), primary_key=True, default=_new_id)
    buyer_id = Column(String(64), ForeignKey('profiles.id'), nullable=False)
    seller_id = Column(String(64), nullable=True)
    credit_id = Column(String(64), nullable=True)
    project_id = Column(String(64), nullable=True)
    amount_tons = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False)
    price_per_ton = Column(Float, nullable=False)
    transaction_hash = Column(String(80), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index('idx_transactions_buyer', 'buyer_id'),
        Index('idx_transactions_project', 'project_id'),
        Index('idx_transactions_hash', 'transaction_hash'),
    )


__all__ = [
    'Base',
    'ProfileORM',
    'ProjectORM',
    'ProjectMediaORM',
    'CarbonCreditORM',
    'CreditTransactionORM',
]
