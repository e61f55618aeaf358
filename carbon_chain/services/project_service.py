"""
CarbonChain - Project Service
===============================
Servizio intake e query progetti.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Submission progetto NGO (stima crediti, media)
- Query progetti e marketplace
- Statistiche dashboard NGO e admin
- Registrazione metadata progetto (senza chiamata on-chain)
"""

import math
import random
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union, Any

# Internal imports
from carbon_chain.config import PlatformSettings
from carbon_chain.constants import (
    MARKETPLACE_STATUSES,
    UNIT_PRICE_NATIVE,
    ProjectStatus,
    estimate_credits,
    media_type_for,
)
from carbon_chain.domain.models import ProjectForm, effective_available_credits
from carbon_chain.errors import (
    AuthenticationRequiredError,
    DatabaseError,
    MissingFieldError,
    ProfileNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)
from carbon_chain.logging_setup import get_logger, AuditLogger
from carbon_chain.metadata.store import MetadataStore
from carbon_chain.storage.db import PlatformDatabase
from carbon_chain.utils.validators import validate_positive_number


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("project_service")


def generate_project_id() -> str:
    """
    ID registrazione progetto: PROJ-<anno>-<NNN>.

    Examples:
        >>> generate_project_id()
        'PROJ-2026-042'
    """
    year = datetime.now(timezone.utc).year
    return f"PROJ-{year}-{random.randint(0, 999):03d}"


def _as_float(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}", code="INVALID_NUMBER", details={"field": field})
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"Invalid {field}: {value!r}", code="INVALID_NUMBER", details={"field": field})
    return number


# ============================================================================
# PROJECT SERVICE
# ============================================================================

class ProjectService:
    """
    Servizio gestione progetti.

    Intake NGO, query, marketplace e statistiche.

    Attributes:
        db: Platform database
        metadata_store: Storage metadata off-chain
        config: Platform configuration

    Examples:
        >>> service = ProjectService(db, metadata_store, config)
        >>> project = service.submit_project(ngo_id, form)
        >>> project["estimated_co2_tons"]
        400
    """

    def __init__(
        self,
        db: PlatformDatabase,
        metadata_store: MetadataStore,
        config: PlatformSettings,
        audit: Optional[AuditLogger] = None
    ):
        self.db = db
        self.metadata_store = metadata_store
        self.config = config
        self.audit = audit or AuditLogger()

    # ========================================================================
    # INTAKE
    # ========================================================================

    def submit_project(
        self,
        submitter_id: Optional[str],
        form: Union[ProjectForm, Dict[str, Any]]
    ) -> Dict:
        """
        Registra progetto NGO con stato pending.

        Args:
            submitter_id: Profilo autenticato
            form: Dati form (ProjectForm o dict snake_case)

        Returns:
            dict: Progetto salvato con lista `media`

        Raises:
            AuthenticationRequiredError: Submitter non autenticato
            MissingFieldError: Campi obbligatori mancanti
            ValidationError: Valori numerici non validi
        """
        if isinstance(form, dict):
            form = ProjectForm.from_dict(form)

        profile = self.db.get_profile(submitter_id) if submitter_id else None
        if profile is None:
            raise AuthenticationRequiredError(
                "Please log in to submit a project",
                code="AUTH_REQUIRED"
            )

        missing = form.missing_fields()
        if missing:
            raise MissingFieldError(
                "Missing required fields",
                code="MISSING_FIELDS",
                details={"missing": missing}
            )

        latitude = _as_float(form.latitude, "latitude")
        longitude = _as_float(form.longitude, "longitude")
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationError(
                "Coordinates out of range",
                code="INVALID_COORDINATES",
                details={"latitude": latitude, "longitude": longitude}
            )
        total_area = validate_positive_number(_as_float(form.total_area, "total_area"), "total_area")
        planted_area = validate_positive_number(_as_float(form.planted_area, "planted_area"), "planted_area")

        # ~20 tCO2e per ettaro piantato
        estimated = estimate_credits(planted_area)
        if estimated < 1:
            # Nessun credito emettibile: il progetto non sarebbe mai approvabile
            raise ValidationError(
                "Planted area too small to yield at least one credit",
                code="AREA_TOO_SMALL",
                details={"planted_area": planted_area, "estimated_credits": estimated}
            )

        project = self.db.insert_project(
            title=str(form.project_name).strip(),
            project_type=str(form.project_type).strip(),
            description=str(form.description).strip(),
            planting_date=str(form.start_date),
            location_name=f"{str(form.region).strip()}, {str(form.country).strip()}",
            latitude=latitude,
            longitude=longitude,
            area_hectares=total_area,
            tree_species=[str(form.species).strip()],
            estimated_co2_tons=estimated,
            status=ProjectStatus.PENDING.value,
            submitted_by=profile["id"],
        )

        media_rows = []
        for index, attachment in enumerate(form.media, start=1):
            try:
                media_rows.append(self.db.insert_media(
                    project_id=project["id"],
                    file_url=attachment.file_url,
                    file_name=attachment.file_name,
                    media_type=media_type_for(attachment.mime_type).value,
                    file_size=attachment.file_size,
                    description=f"Project media file {index}",
                ))
            except DatabaseError as e:
                # Submission valida anche senza media
                logger.warning(
                    "Media insertion failed",
                    extra_data={"project_id": project["id"], "file_url": attachment.file_url, "error": str(e)}
                )

        project["media"] = media_rows

        logger.info(
            "Project submitted",
            extra_data={
                "project_id": project["id"],
                "submitted_by": profile["id"],
                "estimated_co2_tons": estimated,
                "media": len(media_rows),
            }
        )
        self.audit.log_project_submitted(project["id"], profile["id"], estimated)

        return project

    # ========================================================================
    # PROJECT QUERIES
    # ========================================================================

    def get_project(self, project_id: str) -> Dict:
        """
        Progetto completo (submitter, media, crediti emessi).

        Raises:
            ProjectNotFoundError: Se non esiste
        """
        project = self.db.get_project(project_id, include_submitter=True, include_media=True)
        if project is None:
            raise ProjectNotFoundError(
                f"Project not found: {project_id}",
                code="PROJECT_NOT_FOUND"
            )
        project["effective_available_credits"] = effective_available_credits(project)
        project["credits"] = self.db.list_credits(project_id)
        return project

    def list_projects(
        self,
        status: Optional[str] = None,
        submitted_by: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[Dict]:
        """
        Lista progetti con filtri.

        Args:
            status: Filtra per stato
            submitted_by: Filtra per submitter
            search: Testo su titolo, località, organizzazione

        Returns:
            List[dict]: Progetti, più recenti prima
        """
        if status and status not in {s.value for s in ProjectStatus}:
            raise ValidationError(f"Unknown status: {status}", code="INVALID_STATUS")
        return self.db.list_projects(status=status, submitted_by=submitted_by, search=search)

    def marketplace_listings(self) -> List[Dict]:
        """
        Progetti acquistabili (verified o tokenized).

        Ogni listing riporta crediti disponibili effettivi e prezzo unitario.
        """
        listings = []
        for project in self.db.list_projects(status=MARKETPLACE_STATUSES):
            available = effective_available_credits(project)
            submitter = project.get("submitter") or {}
            listings.append({
                "project_id": project["id"],
                "title": project["title"],
                "project_type": project["project_type"],
                "location_name": project["location_name"],
                "organization": submitter.get("organization"),
                "status": project["status"],
                "estimated_co2_tons": project["estimated_co2_tons"],
                "available_credits": available,
                "price_per_credit": str(UNIT_PRICE_NATIVE),
                "sold_out": available <= 0,
                "blockchain_hash": project["blockchain_hash"],
            })
        return listings

    # ========================================================================
    # STATISTICS
    # ========================================================================

    def ngo_dashboard(self, submitter_id: str) -> Dict:
        """
        Statistiche dashboard NGO.

        Returns:
            dict: total_credits (verified+tokenized), pending_credits,
                  approved_projects, success_rate (%), total_projects

        Raises:
            ProfileNotFoundError: Profilo inesistente
        """
        if self.db.get_profile(submitter_id) is None:
            raise ProfileNotFoundError(
                f"Profile not found: {submitter_id}",
                code="PROFILE_NOT_FOUND"
            )

        projects = self.db.list_projects(submitted_by=submitter_id)
        approved = [p for p in projects if p["status"] in MARKETPLACE_STATUSES]
        pending = [p for p in projects if p["status"] == ProjectStatus.PENDING.value]

        success_rate = round(len(approved) / len(projects) * 100) if projects else 0

        return {
            "total_projects": len(projects),
            "total_credits": sum(p["estimated_co2_tons"] for p in approved),
            "pending_credits": sum(p["estimated_co2_tons"] for p in pending),
            "approved_projects": len(approved),
            "success_rate": success_rate,
        }

    def admin_overview(self) -> Dict:
        """Conteggi per stato e crediti disponibili totali"""
        counts = self.db.count_projects_by_status()
        available = sum(
            effective_available_credits(p)
            for p in self.db.list_projects(status=MARKETPLACE_STATUSES)
        )
        return {
            "total_projects": sum(counts.values()),
            "by_status": counts,
            "available_credits": available,
        }

    # ========================================================================
    # METADATA REGISTRATION
    # ========================================================================

    def register_project_metadata(self, project_data: Optional[Dict], ngo_address: Optional[str]) -> Dict:
        """
        Registra metadata progetto off-chain.

        La registrazione on-chain avviene al mint dopo l'approvazione.

        Returns:
            dict: projectId, metadataURI, timestamp
        """
        if not project_data or not ngo_address:
            raise MissingFieldError(
                "Missing required fields",
                code="MISSING_FIELDS",
                details={"missing": [
                    name for name, value in (("projectData", project_data), ("ngoAddress", ngo_address))
                    if not value
                ]}
            )

        project_id = generate_project_id()
        now = datetime.now(timezone.utc).isoformat()

        metadata_uri = self.metadata_store.upload_project_data({
            **project_data,
            "projectId": project_id,
            "submissionDate": now,
        })

        logger.info(
            "Project metadata registered",
            extra_data={"project_id": project_id, "ngo_address": ngo_address, "uri": metadata_uri}
        )

        return {
            "projectId": project_id,
            "metadataURI": metadata_uri,
            "timestamp": now,
        }


# ============================================================================
# EXPORT
# ============================================================================

__all__ = ["ProjectService", "generate_project_id"]
