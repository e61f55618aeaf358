"""
CarbonChain - API Dependencies
================================
FastAPI dependency injection utilities.

The bearer token identifies a profile: the token value is the profile id
issued by the identity provider.
"""

from typing import Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from carbon_chain.blockchain.client import CarbonCreditContract
from carbon_chain.constants import ProfileRole
from carbon_chain.errors import PermissionDeniedError
from carbon_chain.logging_setup import get_logger
from carbon_chain.platform import Platform
from carbon_chain.services.issuance_service import IssuanceService
from carbon_chain.services.monitoring_service import MonitoringService
from carbon_chain.services.project_service import ProjectService
from carbon_chain.services.settlement_service import SettlementService
from carbon_chain.services.wallet_service import WalletService

logger = get_logger("api.deps")

# Global instance (set at startup)
_platform: Optional[Platform] = None

# Security
security = HTTPBearer(auto_error=False)


def set_platform(platform: Optional[Platform]):
    """Set global platform instance"""
    global _platform
    _platform = platform


def get_platform() -> Platform:
    """
    Get platform instance.

    Dependency for FastAPI routes.
    """
    if _platform is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Platform not initialized"
        )
    return _platform


def get_project_service(platform: Platform = Depends(get_platform)) -> ProjectService:
    return platform.projects


def get_issuance_service(platform: Platform = Depends(get_platform)) -> IssuanceService:
    return platform.issuance


def get_settlement_service(platform: Platform = Depends(get_platform)) -> SettlementService:
    return platform.settlement


def get_wallet_service(platform: Platform = Depends(get_platform)) -> WalletService:
    return platform.wallets


def get_monitoring_service(platform: Platform = Depends(get_platform)) -> MonitoringService:
    return platform.monitoring


def get_contract(platform: Platform = Depends(get_platform)) -> CarbonCreditContract:
    return platform.contract


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    platform: Platform = Depends(get_platform)
) -> Optional[Dict]:
    """
    Get current authenticated profile.

    Returns None when no token is sent or the token matches no profile.
    """
    if credentials is None:
        return None

    profile = platform.db.get_profile(credentials.credentials)
    if profile is None:
        logger.warning("Bearer token does not match any profile")
    return profile


def require_auth(
    current_user: Optional[Dict] = Depends(get_current_user)
) -> Dict:
    """
    Require authentication.

    Raises 401 if not authenticated.
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_admin(current_user: Dict = Depends(require_auth)) -> Dict:
    """
    Require admin role.

    Raises 403 for authenticated non-admin profiles.
    """
    if current_user.get("role") != ProfileRole.ADMIN.value:
        raise PermissionDeniedError(
            "Admin role required",
            code="ADMIN_REQUIRED",
            details={"role": current_user.get("role")}
        )
    return current_user


__all__ = [
    'get_platform',
    'get_project_service',
    'get_issuance_service',
    'get_settlement_service',
    'get_wallet_service',
    'get_monitoring_service',
    'get_contract',
    'get_current_user',
    'require_auth',
    'require_admin',
    'set_platform',
]
