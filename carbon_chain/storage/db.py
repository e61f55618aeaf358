"""
CarbonChain - Database Storage Layer
======================================
Persistent storage relazionale con SQLAlchemy.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Profili, progetti, media, mirror crediti, transazioni
- Decremento atomico available_credits (compare-and-decrement)
- Transizioni di stato progetto condizionali
- SQLite (dev/test) o Postgres (produzione)
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Iterator, Sequence, Union

from sqlalchemy import create_engine, event, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, selectinload
from sqlalchemy.pool import StaticPool

# Internal imports
from carbon_chain.config import PlatformSettings
from carbon_chain.constants import ProjectStatus
from carbon_chain.errors import (
    DatabaseError,
    InvalidAmountError,
    InvalidProjectStateError,
    InventoryDecrementError,
    ProjectNotFoundError,
)
from carbon_chain.logging_setup import get_logger
from carbon_chain.storage.models_orm import (
    Base,
    CarbonCreditORM,
    CreditTransactionORM,
    ProfileORM,
    ProjectMediaORM,
    ProjectORM,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("storage")


# ============================================================================
# ROW SERIALIZATION
# ============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def profile_to_dict(profile: ProfileORM) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "organization": profile.organization,
        "role": profile.role,
        "address": profile.address,
        "created_at": _iso(profile.created_at),
    }


def media_to_dict(media: ProjectMediaORM) -> Dict[str, Any]:
    return {
        "id": media.id,
        "project_id": media.project_id,
        "file_url": media.file_url,
        "file_name": media.file_name,
        "media_type": media.media_type,
        "file_size": media.file_size,
        "description": media.description,
    }


def project_to_dict(
    project: ProjectORM,
    include_submitter: bool = False,
    include_media: bool = False
) -> Dict[str, Any]:
    data = {
        "id": project.id,
        "title": project.title,
        "project_type": project.project_type,
        "description": project.description,
        "planting_date": project.planting_date,
        "location_name": project.location_name,
        "latitude": project.latitude,
        "longitude": project.longitude,
        "area_hectares": project.area_hectares,
        "tree_species": list(project.tree_species or []),
        "estimated_co2_tons": project.estimated_co2_tons,
        "available_credits": project.available_credits,
        "status": project.status,
        "submitted_by": project.submitted_by,
        "verification_date": _iso(project.verification_date),
        "verification_notes": project.verification_notes,
        "blockchain_hash": project.blockchain_hash,
        "created_at": _iso(project.created_at),
    }
    if include_submitter:
        data["submitter"] = profile_to_dict(project.submitter) if project.submitter else None
    if include_media:
        data["media"] = [media_to_dict(m) for m in project.media]
    return data


def credit_to_dict(credit: CarbonCreditORM) -> Dict[str, Any]:
    return {
        "id": credit.id,
        "project_id": credit.project_id,
        "token_id": credit.token_id,
        "amount_tons": credit.amount_tons,
        "price_per_ton": credit.price_per_ton,
        "total_value": credit.total_value,
        "status": credit.status,
        "owner_id": credit.owner_id,
        "blockchain_address": credit.blockchain_address,
        "created_at": _iso(credit.created_at),
    }


def transaction_to_dict(tx: CreditTransactionORM) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "buyer_id": tx.buyer_id,
        "seller_id": tx.seller_id,
        "credit_id": tx.credit_id,
        "project_id": tx.project_id,
        "amount_tons": tx.amount_tons,
        "total_amount": tx.total_amount,
        "price_per_ton": tx.price_per_ton,
        "transaction_hash": tx.transaction_hash,
        "status": tx.status,
        "created_at": _iso(tx.created_at),
    }


# ============================================================================
# DATABASE CLASS
# ============================================================================

class PlatformDatabase:
    """
    Database relazionale piattaforma.

    Thread-safe: ogni operazione apre la propria sessione.

    Attributes:
        config: Platform configuration
        engine: SQLAlchemy engine

    Examples:
        >>> db = PlatformDatabase(config)
        >>> db.create_schema()
        >>> project = db.get_project(project_id)
    """

    def __init__(self, config: PlatformSettings):
        self.config = config
        self.engine = self._create_engine(config.database_url, config.database_echo)
        self._session_factory = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
        )

        logger.info(
            "Database initialized",
            extra_data={"dialect": self.engine.dialect.name}
        )

    @staticmethod
    def _create_engine(url: str, echo: bool):
        if not url.startswith("sqlite"):
            return create_engine(url, echo=echo, pool_pre_ping=True)

        kwargs: Dict[str, Any] = {
            "echo": echo,
            "connect_args": {"check_same_thread": False, "timeout": 30.0},
        }
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        if in_memory:
            kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            if not in_memory:
                # WAL mode for better concurrency
                cursor.execute("PRAGMA journal_mode = WAL")
            cursor.close()

        return engine

    def create_schema(self) -> None:
        """Crea tabelle mancanti"""
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database schema initialized")
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                code="DB_INIT_FAILED"
            )

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Sessione transazionale: commit a fine blocco, rollback su errore.

        Raises:
            DatabaseError: Su qualsiasi errore SQLAlchemy
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(
                f"Database operation failed: {e}",
                code="DB_OPERATION_FAILED"
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Chiudi connection pool"""
        self.engine.dispose()
        logger.info("Database closed")

    # ========================================================================
    # PROFILE OPERATIONS
    # ========================================================================

    def upsert_profile(
        self,
        profile_id: Optional[str] = None,
        full_name: Optional[str] = None,
        organization: Optional[str] = None,
        role: str = "ngo",
        address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crea o aggiorna profilo.

        Campi None non sovrascrivono valori esistenti (tranne address
        che è sempre impostato se passato).
        """
        with self.session_scope() as session:
            profile = session.get(ProfileORM, profile_id) if profile_id else None
            if profile is None:
                profile = ProfileORM(
                    full_name=full_name,
                    organization=organization,
                    role=role,
                    address=address,
                )
                if profile_id:
                    profile.id = profile_id
                session.add(profile)
            else:
                if full_name is not None:
                    profile.full_name = full_name
                if organization is not None:
                    profile.organization = organization
                if address is not None:
                    profile.address = address
                profile.role = role or profile.role
            session.flush()
            return profile_to_dict(profile)

    def get_profile(self, profile_id: str) -> Optional[Dict[str, Any]]:
        with self.session_scope() as session:
            profile = session.get(ProfileORM, profile_id)
            return profile_to_dict(profile) if profile else None

    # ========================================================================
    # PROJECT OPERATIONS
    # ========================================================================

    def insert_project(self, **fields) -> Dict[str, Any]:
        """Inserisce progetto, ritorna riga salvata"""
        with self.session_scope() as session:
            project = ProjectORM(**fields)
            session.add(project)
            session.flush()
            return project_to_dict(project)

    def get_project(
        self,
        project_id: str,
        include_submitter: bool = False,
        include_media: bool = False
    ) -> Optional[Dict[str, Any]]:
        with self.session_scope() as session:
            stmt = (
                select(ProjectORM)
                .where(ProjectORM.id == project_id)
                .options(selectinload(ProjectORM.submitter), selectinload(ProjectORM.media))
            )
            project = session.scalars(stmt).first()
            if project is None:
                return None
            return project_to_dict(project, include_submitter, include_media)

    def list_projects(
        self,
        status: Optional[Union[str, Sequence[str]]] = None,
        submitted_by: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Lista progetti (più recenti prima).

        Args:
            status: Stato o lista di stati
            submitted_by: Filtra per profilo submitter
            search: Match case-insensitive su titolo, località, organizzazione
        """
        with self.session_scope() as session:
            stmt = (
                select(ProjectORM)
                .outerjoin(ProfileORM, ProjectORM.submitted_by == ProfileORM.id)
                .options(selectinload(ProjectORM.submitter))
                .order_by(ProjectORM.created_at.desc())
            )
            if status:
                statuses = [status] if isinstance(status, str) else list(status)
                stmt = stmt.where(ProjectORM.status.in_(statuses))
            if submitted_by:
                stmt = stmt.where(ProjectORM.submitted_by == submitted_by)
            if search:
                pattern = f"%{search.lower()}%"
                stmt = stmt.where(or_(
                    func.lower(ProjectORM.title).like(pattern),
                    func.lower(ProjectORM.location_name).like(pattern),
                    func.lower(ProfileORM.organization).like(pattern),
                ))
            return [
                project_to_dict(p, include_submitter=True)
                for p in session.scalars(stmt).all()
            ]

    def get_projects_by_ids(self, project_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = [pid for pid in set(project_ids) if pid]
        if not ids:
            return {}
        with self.session_scope() as session:
            stmt = select(ProjectORM).where(ProjectORM.id.in_(ids))
            return {p.id: project_to_dict(p) for p in session.scalars(stmt).all()}

    def update_project(self, project_id: str, **fields) -> Dict[str, Any]:
        """
        Aggiorna campi progetto.

        Raises:
            ProjectNotFoundError: Se progetto inesistente
        """
        with self.session_scope() as session:
            project = session.get(ProjectORM, project_id)
            if project is None:
                raise ProjectNotFoundError(
                    f"Project not found: {project_id}",
                    code="PROJECT_NOT_FOUND"
                )
            for key, value in fields.items():
                setattr(project, key, value)
            session.flush()
            return project_to_dict(project)

    def transition_project(
        self,
        project_id: str,
        from_status: ProjectStatus,
        **fields
    ) -> Dict[str, Any]:
        """
        Aggiorna progetto solo se nello stato atteso (UPDATE condizionale).

        Raises:
            ProjectNotFoundError: Se progetto inesistente
            InvalidProjectStateError: Se stato corrente diverso da from_status
        """
        with self.session_scope() as session:
            result = session.execute(
                update(ProjectORM)
                .where(ProjectORM.id == project_id)
                .where(ProjectORM.status == from_status.value)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            project = session.get(ProjectORM, project_id, populate_existing=True)
            if project is None:
                raise ProjectNotFoundError(
                    f"Project not found: {project_id}",
                    code="PROJECT_NOT_FOUND"
                )
            if result.rowcount == 0:
                raise InvalidProjectStateError(
                    f"Project {project_id} is {project.status}, expected {from_status.value}",
                    code="INVALID_PROJECT_STATE",
                    details={"status": project.status, "expected": from_status.value}
                )
            return project_to_dict(project)

    def count_projects_by_status(self) -> Dict[str, int]:
        with self.session_scope() as session:
            rows = session.execute(
                select(ProjectORM.status, func.count(ProjectORM.id)).group_by(ProjectORM.status)
            ).all()
            counts = {s.value: 0 for s in ProjectStatus}
            counts.update({status: count for status, count in rows})
            return counts

    # ========================================================================
    # INVENTORY
    # ========================================================================

    def decrement_available_credits(self, project_id: str, amount: int) -> int:
        """
        Decremento atomico available_credits.

        Singolo UPDATE condizionale: riesce solo se
        coalesce(available_credits, estimated_co2_tons) >= amount.
        Non fa clamp: se la condizione fallisce nulla cambia.

        Args:
            project_id: Progetto
            amount: Crediti da sottrarre (> 0)

        Returns:
            int: Crediti residui

        Raises:
            InvalidAmountError: amount <= 0
            ProjectNotFoundError: Progetto inesistente
            InventoryDecrementError: Crediti insufficienti
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmountError(
                f"Decrement amount must be a positive integer, got {amount!r}",
                code="INVALID_AMOUNT"
            )

        current = func.coalesce(ProjectORM.available_credits, ProjectORM.estimated_co2_tons)

        with self.session_scope() as session:
            # UPDATE first: no read lock held before the write on SQLite
            result = session.execute(
                update(ProjectORM)
                .where(ProjectORM.id == project_id)
                .where(current >= amount)
                .values(available_credits=current - amount)
                .execution_options(synchronize_session=False)
            )
            row = session.execute(
                select(ProjectORM.available_credits, ProjectORM.estimated_co2_tons)
                .where(ProjectORM.id == project_id)
            ).first()

            if row is None:
                raise ProjectNotFoundError(
                    f"Project not found: {project_id}",
                    code="PROJECT_NOT_FOUND"
                )

            available = row[0] if row[0] is not None else row[1]
            if result.rowcount == 0:
                raise InventoryDecrementError(
                    f"Insufficient available credits: requested {amount}, available {available}",
                    code="DECREMENT_REJECTED",
                    details={"project_id": project_id, "requested": amount, "available": available}
                )

        logger.debug(
            "Available credits decremented",
            extra_data={"project_id": project_id, "amount": amount, "remaining": available}
        )
        return available

    # ========================================================================
    # MEDIA / CREDITS / TRANSACTIONS
    # ========================================================================

    def insert_media(self, **fields) -> Dict[str, Any]:
        with self.session_scope() as session:
            media = ProjectMediaORM(**fields)
            session.add(media)
            session.flush()
            return media_to_dict(media)

    def insert_credit(self, **fields) -> Dict[str, Any]:
        """Inserisce riga mirror di un token on-chain"""
        with self.session_scope() as session:
            credit = CarbonCreditORM(**fields)
            session.add(credit)
            session.flush()
            return credit_to_dict(credit)

    def list_credits(self, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self.session_scope() as session:
            stmt = select(CarbonCreditORM).order_by(CarbonCreditORM.created_at.desc())
            if project_id:
                stmt = stmt.where(CarbonCreditORM.project_id == project_id)
            return [credit_to_dict(c) for c in session.scalars(stmt).all()]

    def insert_transaction(self, **fields) -> Dict[str, Any]:
        """Inserisce ricevuta acquisto"""
        with self.session_scope() as session:
            tx = CreditTransactionORM(**fields)
            session.add(tx)
            session.flush()
            return transaction_to_dict(tx)

    def list_transactions_for_buyer(self, buyer_id: str) -> List[Dict[str, Any]]:
        """Transazioni acquirente, più recenti prima"""
        with self.session_scope() as session:
            stmt = (
                select(CreditTransactionORM)
                .where(CreditTransactionORM.buyer_id == buyer_id)
                .order_by(CreditTransactionORM.created_at.desc())
            )
            return [transaction_to_dict(t) for t in session.scalars(stmt).all()]


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PlatformDatabase",
    "profile_to_dict",
    "project_to_dict",
    "media_to_dict",
    "credit_to_dict",
    "transaction_to_dict",
]
