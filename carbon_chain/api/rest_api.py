"""
CarbonChain - REST API
=======================
API REST della piattaforma crediti di carbonio.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Endpoints:
- /api/projects/* - Intake e revisione progetti
- /api/marketplace/* - Listing e acquisto crediti
- /api/blockchain/* - Operazioni contratto crediti
- /api/wallet/* - Saldo, portfolio, storico
- /api/monitoring/* - Servizio MRV (mock)
- /api/dashboard/* - Statistiche NGO/admin

Risposte: {"success": true, "data": ...} oppure {"error": ..., "details": ...}.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
import time

from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Internal imports
from carbon_chain import __version__
from carbon_chain.api.deps import (
    get_contract,
    get_current_user,
    get_issuance_service,
    get_monitoring_service,
    get_project_service,
    get_settlement_service,
    get_wallet_service,
    require_admin,
    require_auth,
    set_platform,
)
from carbon_chain.api.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    setup_cors_middleware,
)
from carbon_chain.api.schemas import (
    AnalysisRequest,
    ChangeDetectionRequest,
    HealthResponse,
    ListCreditRequest,
    MintRequest,
    MRVReportRequest,
    ProjectSubmitRequest,
    PurchaseRequest,
    RateSellerRequest,
    RegisterProjectRequest,
    ReviewRequest,
    TokenRequest,
    TransferRequest,
)
from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.errors import (
    AuthenticationRequiredError,
    CarbonChainException,
    InvalidAddressError,
    MissingFieldError,
)
from carbon_chain.logging_setup import get_logger
from carbon_chain.platform import Platform
from carbon_chain.services.issuance_service import IssuanceService
from carbon_chain.services.monitoring_service import MonitoringService
from carbon_chain.services.project_service import ProjectService
from carbon_chain.services.settlement_service import SettlementService
from carbon_chain.services.wallet_service import WalletService
from carbon_chain.utils.validators import is_evm_address, validate_evm_address


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("api")


# ============================================================================
# API STATE
# ============================================================================

class APIState:
    """Global API state"""
    platform: Optional[Platform] = None
    cors_enabled: bool = False


state = APIState()


# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="CarbonChain API",
    description="REST API for the CarbonChain carbon credit platform",
    version=__version__
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
# Outermost: request id must exist before logging runs
app.add_middleware(RequestIDMiddleware)


def _ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(CarbonChainException)
async def carbonchain_exception_handler(request: Request, exc: CarbonChainException):
    log_data = {
        "request_id": getattr(request.state, "request_id", "unknown"),
        "code": exc.code,
        "path": request.url.path,
    }
    if exc.http_status >= 500:
        logger.error(exc.message, extra_data=log_data)
    else:
        logger.info(exc.message, extra_data=log_data)

    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error": exc.message,
            "code": exc.code,
            "details": jsonable_encoder(exc.details),
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    missing = [
        ".".join(str(part) for part in error.get("loc", ())[1:])
        for error in errors
        if error.get("type") == "missing"
    ]
    if missing:
        content = {"error": "Missing required fields", "details": {"missing": missing}}
    else:
        content = {"error": "Invalid request", "details": errors}
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error",
        extra_data={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error": str(exc),
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "details": {"type": type(exc).__name__}}
    )


# ============================================================================
# ROOT ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "CarbonChain API",
        "version": __version__,
        "status": "running"
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check"""
    return HealthResponse(
        status="ok" if state.platform is not None else "initializing",
        version=__version__,
        timestamp=int(time.time())
    )


# ============================================================================
# PROJECT ENDPOINTS
# ============================================================================

@app.post("/api/projects", status_code=status.HTTP_201_CREATED)
def submit_project(
    request: ProjectSubmitRequest,
    user: Dict = Depends(require_auth),
    projects: ProjectService = Depends(get_project_service)
):
    """Submit a project for review"""
    project = projects.submit_project(user["id"], request.model_dump())
    return _ok(project)


@app.get("/api/projects")
def list_projects(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    mine: bool = False,
    user: Optional[Dict] = Depends(get_current_user),
    projects: ProjectService = Depends(get_project_service)
):
    """List projects, newest first (mine=true: only the caller's)"""
    submitted_by = None
    if mine:
        if user is None:
            raise AuthenticationRequiredError("Authentication required", code="AUTH_REQUIRED")
        submitted_by = user["id"]

    items = projects.list_projects(status=status_filter, submitted_by=submitted_by, search=search)
    return _ok(items)


@app.get("/api/projects/{project_id}")
def get_project(
    project_id: str,
    projects: ProjectService = Depends(get_project_service)
):
    """Project detail with media and issued credits"""
    return _ok(projects.get_project(project_id))


@app.post("/api/projects/{project_id}/approve")
def approve_project(
    project_id: str,
    request: Optional[ReviewRequest] = None,
    admin: Dict = Depends(require_admin),
    issuance: IssuanceService = Depends(get_issuance_service)
):
    """Approve a pending project and mint its credits"""
    notes = (request.notes if request else None) or ""
    outcome = issuance.approve_project(project_id, notes)
    logger.info(
        "Project approved via API",
        extra_data={"project_id": project_id, "admin_id": admin["id"], "status": outcome.status.value}
    )
    return _ok(outcome.to_dict())


@app.post("/api/projects/{project_id}/reject")
def reject_project(
    project_id: str,
    request: ReviewRequest,
    admin: Dict = Depends(require_admin),
    issuance: IssuanceService = Depends(get_issuance_service)
):
    """Reject a pending project (notes required)"""
    project = issuance.reject_project(project_id, request.notes)
    return _ok(project)


# ============================================================================
# MARKETPLACE ENDPOINTS
# ============================================================================

@app.get("/api/marketplace/listings")
def marketplace_listings(projects: ProjectService = Depends(get_project_service)):
    """Projects available for purchase"""
    return _ok(projects.marketplace_listings())


@app.post("/api/marketplace/purchase")
def purchase_credits(
    request: PurchaseRequest,
    user: Dict = Depends(require_auth),
    settlement: SettlementService = Depends(get_settlement_service)
):
    """
    Buy credits from a project.

    Payment is signed by the platform server wallet: any authenticated
    profile spends platform funds. The buyer identity only selects whose
    portfolio records the purchase.
    """
    receipt = settlement.purchase(request.project_id, request.quantity, user["id"])
    return _ok(receipt.to_dict())


# ============================================================================
# BLOCKCHAIN ENDPOINTS
# ============================================================================

@app.post("/api/blockchain/mint")
def mint_credits(
    request: MintRequest,
    admin: Dict = Depends(require_admin),
    issuance: IssuanceService = Depends(get_issuance_service)
):
    """Mint credits directly (no database writes)"""
    result = issuance.mint_credits(
        request.project_id,
        request.recipient_address,
        request.credits_amount,
        request.verification_data,
    )
    return _ok({**result.to_dict(), "timestamp": _now_iso()})


@app.post("/api/blockchain/list")
def list_credit(
    request: ListCreditRequest,
    admin: Dict = Depends(require_admin),
    contract: CarbonCreditContract = Depends(get_contract)
):
    """List a credit token for sale"""
    tx_hash = contract.list_credit(request.token_id, request.price_in_matic)
    return _ok({
        "transactionHash": tx_hash,
        "tokenId": request.token_id,
        "priceInMatic": request.price_in_matic,
        "timestamp": _now_iso(),
    })


@app.post("/api/blockchain/buy")
def buy_credit(
    request: TokenRequest,
    admin: Dict = Depends(require_admin),
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Buy a listed credit token at its on-chain price"""
    tx_hash = contract.buy_credit(request.token_id)
    return _ok({
        "transactionHash": tx_hash,
        "tokenId": request.token_id,
        "timestamp": _now_iso(),
    })


@app.post("/api/blockchain/retire")
def retire_credit(
    request: TokenRequest,
    admin: Dict = Depends(require_admin),
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Retire a credit token"""
    tx_hash = contract.retire_credit(request.token_id)
    return _ok({
        "transactionHash": tx_hash,
        "tokenId": request.token_id,
        "timestamp": _now_iso(),
    })


@app.post("/api/blockchain/delist")
def delist_credit(
    request: TokenRequest,
    admin: Dict = Depends(require_admin),
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Withdraw a listed credit token from sale"""
    tx_hash = contract.delist_credit(request.token_id)
    return _ok({
        "transactionHash": tx_hash,
        "tokenId": request.token_id,
        "timestamp": _now_iso(),
    })


@app.post("/api/blockchain/register")
def register_project(
    request: RegisterProjectRequest,
    projects: ProjectService = Depends(get_project_service)
):
    """Register project metadata off-chain"""
    return _ok(projects.register_project_metadata(request.project_data, request.ngo_address))


@app.get("/api/blockchain/token/{token_id}")
def token_info(
    token_id: str,
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Owner, metadata URI, listing and retirement state of a token"""
    return _ok({
        "tokenId": token_id,
        "owner": contract.owner_of(token_id),
        "tokenURI": contract.token_uri(token_id),
        "isListed": contract.is_listed(token_id),
        "isRetired": contract.is_retired(token_id),
        "listingPrice": contract.get_listing_price(token_id),
    })


@app.get("/api/blockchain/seller/{address}/rating")
def seller_rating(
    address: str,
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Aggregated seller rating"""
    address = validate_evm_address(address)
    rating = contract.get_seller_rating(address)
    count = rating["rating_count"]
    return _ok({
        "sellerAddress": address,
        "totalRating": rating["total_rating"],
        "ratingCount": count,
        "averageRating": round(rating["total_rating"] / count, 2) if count else 0,
    })


@app.post("/api/blockchain/rate")
def rate_seller(
    request: RateSellerRequest,
    admin: Dict = Depends(require_admin),
    contract: CarbonCreditContract = Depends(get_contract)
):
    """Rate a seller (1-5)"""
    tx_hash = contract.rate_seller(request.seller_address, request.rating)
    return _ok({
        "transactionHash": tx_hash,
        "sellerAddress": request.seller_address,
        "rating": request.rating,
        "timestamp": _now_iso(),
    })


# ============================================================================
# WALLET ENDPOINTS
# ============================================================================

def _require_address(address: Optional[str]) -> str:
    if not address:
        raise MissingFieldError("Wallet address is required", code="MISSING_FIELDS",
                                details={"missing": ["address"]})
    if not is_evm_address(address):
        raise InvalidAddressError("Invalid wallet address format", code="INVALID_ADDRESS",
                                  details={"address": address})
    return address


@app.get("/api/wallet/balance")
def wallet_balance(
    address: Optional[str] = None,
    wallets: WalletService = Depends(get_wallet_service)
):
    """CCT balance of an address"""
    address = _require_address(address)
    return _ok({
        "address": address,
        "balances": wallets.token_balances(address),
        "timestamp": _now_iso(),
    })


@app.post("/api/wallet/transfer")
def wallet_transfer(
    request: TransferRequest,
    wallets: WalletService = Depends(get_wallet_service)
):
    """Direct token transfer (refused: use the marketplace)"""
    tx_hash = wallets.send_tokens(
        request.token_address,
        request.recipient_address,
        request.amount,
        request.sender_address,
    )
    return _ok({"transactionHash": tx_hash, "timestamp": _now_iso()})


@app.get("/api/wallet/portfolio")
def wallet_portfolio(
    user: Dict = Depends(require_auth),
    wallets: WalletService = Depends(get_wallet_service)
):
    """Portfolio of the authenticated buyer"""
    return _ok(wallets.portfolio(user["id"]).to_dict())


@app.get("/api/wallet/history")
def wallet_history(
    address: Optional[str] = None,
    wallets: WalletService = Depends(get_wallet_service)
):
    """Latest native transactions of an address"""
    address = _require_address(address)
    return _ok({
        "address": address,
        "transactions": wallets.transaction_history(address),
    })


# ============================================================================
# MONITORING ENDPOINTS
# ============================================================================

@app.get("/api/monitoring/alerts")
async def monitoring_alerts(
    project_id: Optional[str] = Query(None, alias="projectId"),
    monitoring: MonitoringService = Depends(get_monitoring_service)
):
    """Active monitoring alerts"""
    alerts = await monitoring.get_active_alerts(project_id)
    return _ok({"alerts": alerts, "timestamp": _now_iso()})


@app.post("/api/monitoring/analysis")
async def monitoring_analysis(
    request: AnalysisRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service)
):
    """GIS analysis for a project"""
    if not request.project_id:
        raise MissingFieldError("Project ID is required", code="MISSING_FIELDS",
                                details={"missing": ["projectId"]})
    return _ok(await monitoring.perform_gis_analysis(request.project_id))


@app.get("/api/monitoring/satellite")
async def monitoring_satellite(
    project_id: Optional[str] = Query(None, alias="projectId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    monitoring: MonitoringService = Depends(get_monitoring_service)
):
    """Satellite observations for a project"""
    if not project_id:
        raise MissingFieldError("Project ID is required", code="MISSING_FIELDS",
                                details={"missing": ["projectId"]})

    date_range = (start_date, end_date) if start_date and end_date else None
    data = await monitoring.fetch_satellite_data(project_id, date_range)
    return _ok({"projectId": project_id, "data": data, "timestamp": _now_iso()})


@app.post("/api/monitoring/changes")
async def monitoring_changes(
    request: ChangeDetectionRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service)
):
    """Change detection between two satellite images"""
    return _ok(await monitoring.detect_changes(request.before_image, request.after_image))


@app.post("/api/monitoring/report")
async def monitoring_report(
    request: MRVReportRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service)
):
    """MRV report for a period"""
    report = await monitoring.generate_mrv_report(
        request.project_id, (request.start_date, request.end_date)
    )
    return _ok(report)


# ============================================================================
# DASHBOARD ENDPOINTS
# ============================================================================

@app.get("/api/dashboard/ngo")
def ngo_dashboard(
    user: Dict = Depends(require_auth),
    projects: ProjectService = Depends(get_project_service)
):
    """Statistics for the caller's projects"""
    return _ok(projects.ngo_dashboard(user["id"]))


@app.get("/api/dashboard/admin")
def admin_dashboard(
    admin: Dict = Depends(require_admin),
    projects: ProjectService = Depends(get_project_service)
):
    """Platform-wide project statistics"""
    return _ok(projects.admin_overview())


# ============================================================================
# INITIALIZATION
# ============================================================================

def initialize_api(platform: Platform) -> FastAPI:
    """
    Initialize API with platform services.

    Args:
        platform: Platform built by build_platform()

    Returns:
        FastAPI: Initialized app

    Examples:
        >>> app = initialize_api(build_platform(config))
        >>> uvicorn.run(app, host=config.api_host, port=config.api_port)
    """
    state.platform = platform
    set_platform(platform)

    # Middleware cannot be added once the app has served a request
    if platform.config.api_enable_cors and not state.cors_enabled:
        setup_cors_middleware(app, platform.config.api_cors_origins)
        state.cors_enabled = True

    logger.info("API initialized and ready", extra_data={"version": __version__})

    return app


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "app",
    "state",
    "initialize_api",
]
