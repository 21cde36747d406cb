"""Provider status routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.core.config import get_settings
from backend.core.errors import ProviderError, ProviderNotConfiguredError
from .config import ProviderConfig
from .gateway import ProviderGateway
from .schemas import ProviderName, ProviderStatus, ProviderTestResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["providers"])


# =============================================================================
# Shared State
# =============================================================================

_gateway: ProviderGateway | None = None


def get_gateway() -> ProviderGateway:
    """Get or create the process-wide gateway from settings."""
    global _gateway
    if _gateway is None:
        _gateway = ProviderGateway(ProviderConfig.from_settings(get_settings()))
    return _gateway


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=ProviderStatus)
async def provider_status(gateway: ProviderGateway = Depends(get_gateway)) -> ProviderStatus:
    """List configured providers, the default and the fallback chain."""
    return gateway.status()


@router.post("/{name}/test", response_model=ProviderTestResult)
async def test_provider(
    name: ProviderName, gateway: ProviderGateway = Depends(get_gateway)
) -> ProviderTestResult:
    """Send a minimal completion to one provider, without fallback."""
    try:
        return await gateway.test_provider(name)
    except ProviderNotConfiguredError:
        raise HTTPException(status_code=404, detail=f"Provider not configured: {name.value}")
    except ProviderError as e:
        logger.warning("Provider test for %s failed: %s", name.value, e)
        return ProviderTestResult(provider=name, ok=False)
