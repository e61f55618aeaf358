"""
CarbonChain - Monitoring Tests
================================
Simulated MRV service.
"""

from datetime import date

import pytest

from carbon_chain.errors import ValidationError
from carbon_chain.services.monitoring_service import MonitoringService


@pytest.fixture
def monitoring():
    return MonitoringService(latency_scale=0)


class TestMonitoringService:
    """Test fixed MRV responses"""

    @pytest.mark.asyncio
    async def test_satellite_data(self, monitoring):
        data = await monitoring.fetch_satellite_data("p-1", (date(2025, 1, 1), date(2025, 6, 30)))

        assert len(data) == 1
        assert data[0]["forestCover"] == 87.5
        assert data[0]["changeDetection"]["type"] == "increase"

    @pytest.mark.asyncio
    async def test_satellite_rejects_inverted_range(self, monitoring):
        with pytest.raises(ValidationError):
            await monitoring.fetch_satellite_data("p-1", (date(2025, 6, 30), date(2025, 1, 1)))

    @pytest.mark.asyncio
    async def test_gis_analysis(self, monitoring):
        analysis = await monitoring.perform_gis_analysis("p-1")

        assert analysis["projectId"] == "p-1"
        assert analysis["metrics"]["coveragePercentage"] == 87.5
        assert analysis["alerts"] == []

    @pytest.mark.asyncio
    async def test_change_detection(self, monitoring):
        result = await monitoring.detect_changes("before.png", "after.png")

        assert result["statistics"]["reforestation"] == 2.4

    @pytest.mark.asyncio
    async def test_mrv_report(self, monitoring):
        report = await monitoring.generate_mrv_report("p-1", (date(2025, 1, 1), date(2025, 3, 31)))

        assert report["reportId"].startswith("mrv-p-1-")
        assert report["period"] == {"start": "2025-01-01", "end": "2025-03-31"}
        assert report["metrics"]["verificationStatus"] == "verified"

    @pytest.mark.asyncio
    async def test_active_alerts(self, monitoring):
        alerts = await monitoring.get_active_alerts()

        assert [a["id"] for a in alerts] == ["alert-1", "alert-2"]
        assert all("detectedAt" in a for a in alerts)
        assert alerts[0]["location"] == [22.4707, 89.537]
