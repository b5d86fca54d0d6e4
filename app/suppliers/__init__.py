"""Supplier API clients and the factory that wires them up."""

from .base import HttpSupplierClient, SupplierClient, format_duration, parse_duration
from .factory import build_suppliers
from .supplier_a import SupplierAClient
from .supplier_b import SupplierBClient

__all__ = [
    "build_suppliers",
    "HttpSupplierClient",
    "SupplierClient",
    "SupplierAClient",
    "SupplierBClient",
    "format_duration",
    "parse_duration",
]
