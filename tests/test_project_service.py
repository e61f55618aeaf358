"""
CarbonChain - Project Service Tests
=====================================
Intake, listings, dashboards and metadata registration.
"""

import re

import pytest

from carbon_chain.domain.models import MediaAttachment, ProjectForm
from carbon_chain.errors import (
    AuthenticationRequiredError,
    MissingFieldError,
    ProfileNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)
from carbon_chain.services.project_service import generate_project_id


class TestSubmitProject:
    """Test NGO project intake"""

    def test_submit_estimates_credits(self, platform, ngo_profile, sample_project_form):
        project = platform.projects.submit_project(ngo_profile["id"], sample_project_form)

        assert project["status"] == "pending"
        assert project["estimated_co2_tons"] == 400
        assert project["available_credits"] is None
        assert project["location_name"] == "Acre, Brazil"
        assert project["tree_species"] == ["Bertholletia excelsa"]
        assert project["area_hectares"] == 25
        assert project["submitted_by"] == ngo_profile["id"]

    def test_estimate_rounds_half_up(self, platform, ngo_profile, sample_project_form):
        sample_project_form["planted_area"] = 0.025

        project = platform.projects.submit_project(ngo_profile["id"], sample_project_form)

        assert project["estimated_co2_tons"] == 1

    def test_submit_with_media(self, platform, ngo_profile, sample_project_form):
        form = ProjectForm.from_dict(sample_project_form)
        form.media = [
            MediaAttachment("https://cdn.test/site.jpg", "site.jpg", "image/jpeg", 2048),
            MediaAttachment("https://cdn.test/plan.pdf", "plan.pdf", "application/pdf", 4096),
        ]

        project = platform.projects.submit_project(ngo_profile["id"], form)

        assert [m["media_type"] for m in project["media"]] == ["image", "document"]
        assert project["media"][0]["description"] == "Project media file 1"

    def test_requires_authenticated_profile(self, platform, sample_project_form):
        with pytest.raises(AuthenticationRequiredError):
            platform.projects.submit_project(None, sample_project_form)

        with pytest.raises(AuthenticationRequiredError):
            platform.projects.submit_project("unknown-profile", sample_project_form)

    def test_missing_fields_listed(self, platform, ngo_profile, sample_project_form):
        del sample_project_form["species"]
        sample_project_form["region"] = "  "

        with pytest.raises(MissingFieldError) as exc_info:
            platform.projects.submit_project(ngo_profile["id"], sample_project_form)

        assert exc_info.value.details["missing"] == ["region", "species"]
        assert platform.db.list_projects() == []

    def test_rejects_out_of_range_coordinates(self, platform, ngo_profile, sample_project_form):
        sample_project_form["latitude"] = 91

        with pytest.raises(ValidationError):
            platform.projects.submit_project(ngo_profile["id"], sample_project_form)

    def test_rejects_non_positive_area(self, platform, ngo_profile, sample_project_form):
        sample_project_form["planted_area"] = 0

        with pytest.raises(ValidationError):
            platform.projects.submit_project(ngo_profile["id"], sample_project_form)

    def test_rejects_area_yielding_no_credit(self, platform, ngo_profile, sample_project_form):
        sample_project_form["planted_area"] = 0.01

        with pytest.raises(ValidationError) as exc_info:
            platform.projects.submit_project(ngo_profile["id"], sample_project_form)

        assert exc_info.value.code == "AREA_TOO_SMALL"
        assert exc_info.value.details["estimated_credits"] == 0
        assert platform.db.list_projects() == []


class TestProjectQueries:
    """Test detail, listing and marketplace views"""

    def test_get_project_detail(self, platform, pending_project):
        project = platform.projects.get_project(pending_project["id"])

        assert project["effective_available_credits"] == 400
        assert project["credits"] == []
        assert project["submitter"]["organization"] == "Amazon Restoration Fund"

    def test_get_missing_project(self, platform):
        with pytest.raises(ProjectNotFoundError):
            platform.projects.get_project("missing")

    def test_list_rejects_unknown_status(self, platform):
        with pytest.raises(ValidationError):
            platform.projects.list_projects(status="approved")

    def test_marketplace_only_verified_or_tokenized(self, platform, pending_project, verified_project):
        listings = platform.projects.marketplace_listings()

        assert [l["project_id"] for l in listings] == [verified_project["id"]]
        listing = listings[0]
        assert listing["available_credits"] == 400
        assert listing["price_per_credit"] == "0.001"
        assert listing["organization"] == "Cerrado Alive"
        assert listing["sold_out"] is False

    def test_marketplace_sold_out(self, platform, verified_project):
        platform.db.decrement_available_credits(verified_project["id"], 400)

        listing = platform.projects.marketplace_listings()[0]

        assert listing["available_credits"] == 0
        assert listing["sold_out"] is True


class TestDashboards:
    """Test NGO and admin statistics"""

    def test_ngo_dashboard(self, platform, ngo_without_wallet, sample_project_form, verified_project):
        platform.projects.submit_project(ngo_without_wallet["id"], sample_project_form)

        stats = platform.projects.ngo_dashboard(ngo_without_wallet["id"])

        assert stats == {
            "total_projects": 2,
            "total_credits": 400,
            "pending_credits": 400,
            "approved_projects": 1,
            "success_rate": 50,
        }

    def test_ngo_dashboard_empty(self, platform, ngo_profile):
        stats = platform.projects.ngo_dashboard(ngo_profile["id"])

        assert stats["total_projects"] == 0
        assert stats["success_rate"] == 0

    def test_ngo_dashboard_unknown_profile(self, platform):
        with pytest.raises(ProfileNotFoundError) as exc_info:
            platform.projects.ngo_dashboard("unknown-profile")

        assert exc_info.value.code == "PROFILE_NOT_FOUND"

    def test_admin_overview(self, platform, pending_project, verified_project):
        overview = platform.projects.admin_overview()

        assert overview["total_projects"] == 2
        assert overview["by_status"]["pending"] == 1
        assert overview["by_status"]["verified"] == 1
        assert overview["available_credits"] == 400


class TestMetadataRegistration:
    """Test off-chain project registration"""

    def test_project_id_format(self):
        assert re.fullmatch(r"PROJ-\d{4}-\d{3}", generate_project_id())

    def test_register_uploads_metadata(self, platform, metadata_store):
        result = platform.projects.register_project_metadata(
            {"name": "Sundarbans Mangroves"},
            "0x1111111111111111111111111111111111111111",
        )

        stored = metadata_store.get_project_data(result["metadataURI"])
        assert stored["name"] == "Sundarbans Mangroves"
        assert stored["projectId"] == result["projectId"]
        assert "submissionDate" in stored

    def test_register_requires_fields(self, platform):
        with pytest.raises(MissingFieldError) as exc_info:
            platform.projects.register_project_metadata(None, None)

        assert exc_info.value.details["missing"] == ["projectData", "ngoAddress"]
