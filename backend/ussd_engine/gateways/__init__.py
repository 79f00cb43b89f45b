"""
Gateway Factory — builds the collaborator set selected by configuration.

    GATEWAY_BACKEND=memory   in-process dicts (development, tests)
    GATEWAY_BACKEND=http     case-management REST API at CASE_API_BASE_URL
"""
from typing import Optional

import structlog

from ussd_engine.config import Settings, get_settings
from ussd_engine.gateways.base import (
    GatewayError, GatewayRejected, GatewayUnavailable, Gateways,
)

logger = structlog.get_logger(__name__)

_instance: Optional[Gateways] = None


def create_gateways(settings: Optional[Settings] = None) -> Gateways:
    settings = settings or get_settings()
    backend = settings.GATEWAY_BACKEND

    if backend == "http":
        from ussd_engine.gateways.http import CaseApiClient, http_gateways
        api = CaseApiClient(
            settings.CASE_API_BASE_URL,
            token=settings.CASE_API_TOKEN,
            timeout=settings.CASE_API_TIMEOUT_SECONDS,
        )
        logger.info("gateways_created", backend="http", base_url=settings.CASE_API_BASE_URL)
        return http_gateways(api)

    if backend != "memory":
        raise ValueError(f"Unknown GATEWAY_BACKEND: {backend}")

    from ussd_engine.gateways.memory import InMemoryCaseStore
    store = InMemoryCaseStore()
    if settings.MEMORY_SEED_DEMO:
        store.seed_demo()
    logger.info("gateways_created", backend="memory", seeded=settings.MEMORY_SEED_DEMO)
    return store.as_gateways()


def get_gateways() -> Gateways:
    """FastAPI dependency: the process-wide collaborator set."""
    global _instance
    if _instance is None:
        _instance = create_gateways()
    return _instance


def reset_gateways() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None


__all__ = [
    "Gateways", "GatewayError", "GatewayRejected", "GatewayUnavailable",
    "create_gateways", "get_gateways", "reset_gateways",
]
