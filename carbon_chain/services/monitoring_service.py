"""
CarbonChain - Monitoring Service
==================================
Servizio MRV simulato: dati satellitari, analisi GIS, change detection,
report MRV e alert.

Security Level: LOW
Last Updated: 2026-10-19
Version: 1.0.0

Valori fissi e latenze simulate (scalate da monitoring_latency_scale).
Istanza unica creata dal composition root e passata ai chiamanti.
"""

import asyncio
import time
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple, Any

from carbon_chain.errors import ValidationError
from carbon_chain.logging_setup import get_logger


logger = get_logger("monitoring")


# Latenze simulate (secondi)
SATELLITE_DELAY = 1.0
GIS_DELAY = 1.5
CHANGE_DETECTION_DELAY = 2.0
MRV_REPORT_DELAY = 3.0
ALERTS_DELAY = 0.8


@dataclass(frozen=True)
class MonitoringAlert:
    """Alert di monitoraggio"""
    id: str
    type: str          # deforestation, growth, anomaly, verification_needed
    severity: str      # low, medium, high, critical
    title: str
    description: str
    location: Tuple[float, float]
    detected_at: str
    status: str        # active, investigating, resolved

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["location"] = list(self.location)
        data["detectedAt"] = data.pop("detected_at")
        return data


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MonitoringService:
    """
    Servizio monitoraggio MRV (mock).

    Examples:
        >>> service = MonitoringService(latency_scale=0)
        >>> alerts = await service.get_active_alerts()
        >>> len(alerts)
        2
    """

    def __init__(self, latency_scale: float = 1.0):
        self.latency_scale = latency_scale

    async def _simulate(self, seconds: float) -> None:
        delay = seconds * self.latency_scale
        if delay > 0:
            await asyncio.sleep(delay)

    async def fetch_satellite_data(
        self,
        project_id: str,
        date_range: Optional[Tuple[date, date]] = None
    ) -> List[Dict[str, Any]]:
        """Dati satellitari (copertura forestale, NDVI, stima carbonio)"""
        if date_range is not None and date_range[0] > date_range[1]:
            raise ValidationError("startDate must not be after endDate", code="INVALID_DATE_RANGE")

        logger.info("Fetching satellite data", extra_data={"project_id": project_id})
        await self._simulate(SATELLITE_DELAY)

        return [{
            "timestamp": _now_iso(),
            "coordinates": [-9.0238, -70.812],
            "forestCover": 87.5,
            "vegetationIndex": 0.82,
            "carbonEstimate": 245.8,
            "changeDetection": {
                "type": "increase",
                "percentage": 2.3,
                "confidence": 0.94,
            },
        }]

    async def perform_gis_analysis(self, project_id: str) -> Dict[str, Any]:
        logger.info("Performing GIS analysis", extra_data={"project_id": project_id})
        await self._simulate(GIS_DELAY)

        return {
            "projectId": project_id,
            "analysisDate": _now_iso(),
            "metrics": {
                "totalArea": 1000,
                "forestedArea": 875,
                "coveragePercentage": 87.5,
                "carbonSequestration": 245.8,
                "biodiversityIndex": 0.78,
            },
            "alerts": [],
        }

    async def detect_changes(self, before_image: str, after_image: str) -> Dict[str, Any]:
        logger.info("Detecting changes between satellite images")
        await self._simulate(CHANGE_DETECTION_DELAY)

        return {
            "changeMap": "/api/change-detection/result.png",
            "statistics": {
                "totalChange": 3.2,
                "deforestation": 0.8,
                "reforestation": 2.4,
                "confidence": 0.91,
            },
        }

    async def generate_mrv_report(
        self,
        project_id: str,
        period: Tuple[date, date]
    ) -> Dict[str, Any]:
        """Report MRV del periodo"""
        logger.info("Generating MRV report", extra_data={"project_id": project_id})
        await self._simulate(MRV_REPORT_DELAY)

        return {
            "reportId": f"mrv-{project_id}-{int(time.time() * 1000)}",
            "url": f"/api/reports/mrv-{project_id}.pdf",
            "period": {"start": period[0].isoformat(), "end": period[1].isoformat()},
            "metrics": {
                "carbonSequestered": 245.8,
                "forestCoverChange": 2.3,
                "verificationStatus": "verified",
            },
        }

    async def get_active_alerts(self, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        logger.info(
            "Fetching active alerts",
            extra_data={"project_id": project_id or "all"}
        )
        await self._simulate(ALERTS_DELAY)

        now = datetime.now(timezone.utc)
        alerts = [
            MonitoringAlert(
                id="alert-1",
                type="deforestation",
                severity="medium",
                title="Decreased Forest Cover Detected",
                description="2.3% decrease in forest cover detected in the last 30 days",
                location=(22.4707, 89.537),
                detected_at=(now - timedelta(hours=2)).isoformat(),
                status="active",
            ),
            MonitoringAlert(
                id="alert-2",
                type="verification_needed",
                severity="low",
                title="Irregular Activity Pattern",
                description="Unusual changes in vegetation patterns require verification",
                location=(-23.5505, -46.6333),
                detected_at=(now - timedelta(days=3)).isoformat(),
                status="investigating",
            ),
        ]
        return [a.to_dict() for a in alerts]


__all__ = ["MonitoringService", "MonitoringAlert"]
