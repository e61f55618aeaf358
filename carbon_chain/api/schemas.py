"""
CarbonChain - API Schemas
==========================
Pydantic models for API request/response validation.

Request bodies use camelCase keys (projectId, recipientAddress, ...);
snake_case names are accepted as well.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# BASE SCHEMAS
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="CarbonChain version")
    timestamp: int = Field(..., description="Current timestamp")


# ============================================================================
# PROJECT SCHEMAS
# ============================================================================

class ProjectMediaIn(CamelModel):
    """Media already uploaded elsewhere"""
    file_url: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)


class ProjectSubmitRequest(CamelModel):
    """NGO project submission"""
    project_name: str
    project_type: str
    description: str
    start_date: str
    country: str
    region: str
    latitude: float
    longitude: float
    total_area: float
    planted_area: float
    species: str
    media: List[ProjectMediaIn] = Field(default_factory=list)


class ReviewRequest(CamelModel):
    """Admin review decision"""
    notes: Optional[str] = ""


# ============================================================================
# MARKETPLACE SCHEMAS
# ============================================================================

class PurchaseRequest(CamelModel):
    """Marketplace purchase"""
    project_id: str
    quantity: int


# ============================================================================
# BLOCKCHAIN SCHEMAS
# ============================================================================

class MintRequest(CamelModel):
    """Direct mint request (presence checked by the service)"""
    project_id: Optional[str] = None
    recipient_address: Optional[str] = None
    credits_amount: Optional[int] = None
    verification_data: Optional[Any] = None


class ListCreditRequest(CamelModel):
    """List token for sale"""
    token_id: str
    price_in_matic: float = Field(..., gt=0)


class TokenRequest(CamelModel):
    """Token reference (buy, retire, delist)"""
    token_id: str


class RegisterProjectRequest(CamelModel):
    """Off-chain project registration"""
    project_data: Optional[Dict[str, Any]] = None
    ngo_address: Optional[str] = None


class RateSellerRequest(CamelModel):
    """Seller rating"""
    seller_address: str
    rating: int = Field(..., ge=1, le=5)


# ============================================================================
# WALLET SCHEMAS
# ============================================================================

class TransferRequest(CamelModel):
    """Direct token transfer (always refused after validation)"""
    token_address: Optional[str] = None
    recipient_address: Optional[str] = None
    amount: Optional[Union[float, str]] = None
    sender_address: Optional[str] = None


# ============================================================================
# MONITORING SCHEMAS
# ============================================================================

class AnalysisRequest(CamelModel):
    """GIS analysis request"""
    project_id: Optional[str] = None


class ChangeDetectionRequest(CamelModel):
    """Change detection between two images"""
    before_image: str
    after_image: str


class MRVReportRequest(CamelModel):
    """MRV report for a period"""
    project_id: str
    start_date: date
    end_date: date


__all__ = [
    "CamelModel",
    "HealthResponse",
    "ProjectMediaIn",
    "ProjectSubmitRequest",
    "ReviewRequest",
    "PurchaseRequest",
    "MintRequest",
    "ListCreditRequest",
    "TokenRequest",
    "RegisterProjectRequest",
    "RateSellerRequest",
    "TransferRequest",
    "AnalysisRequest",
    "ChangeDetectionRequest",
    "MRVReportRequest",
]
