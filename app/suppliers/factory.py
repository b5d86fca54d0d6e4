"""Factory helpers for building the supplier clients at startup."""

from __future__ import annotations

from typing import Dict

from app import config
from app.domain import Supplier
from app.suppliers.base import SupplierClient
from app.suppliers.supplier_a import SupplierAClient
from app.suppliers.supplier_b import SupplierBClient
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="suppliers/factory")


def build_suppliers(settings: config.Settings | None = None) -> Dict[Supplier, SupplierClient]:
    """Instantiate one client per configured supplier."""
    settings = settings or config.settings

    if not settings.supplier_a_base_url:
        raise ValueError("supplier_a_base_url must be set")
    if not settings.supplier_b_base_url:
        raise ValueError("supplier_b_base_url must be set")

    supplier_a = SupplierAClient(
        settings.supplier_a_base_url,
        timeout=settings.request_timeout_seconds,
    )
    logger.info("Using Supplier A", extra={"base_url": mask_url(settings.supplier_a_base_url)})

    supplier_b = SupplierBClient(
        settings.supplier_b_base_url,
        username=settings.supplier_b_username,
        password=settings.supplier_b_password,
        token=settings.supplier_b_token,
        timeout=settings.request_timeout_seconds,
    )
    if not supplier_b.has_credentials and not settings.supplier_b_token:
        logger.warning("Supplier B has no credentials or token; cabinet requests will fail until a token is set")
    logger.info("Using Supplier B", extra={"base_url": mask_url(settings.supplier_b_base_url)})

    return {Supplier.SUPPLIER_A: supplier_a, Supplier.SUPPLIER_B: supplier_b}
