"""
Shared API state - one store, catalog, engine and service set per process.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException

from ..config.settings import get_settings, Settings
from ..data.catalog import Catalog
from ..engine.pricing_engine import PricingEngine
from ..errors import ErpError
from ..services.acceptance_service import AcceptanceService
from ..services.pricing_service import PricingService
from ..services.purchase_order_service import PurchaseOrderService
from ..services.quotation_service import QuotationService
from ..storage.store import RowStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: RowStore
    catalog: Catalog
    engine: PricingEngine
    pricing: PricingService
    quotations: QuotationService
    acceptances: AcceptanceService
    purchase_orders: PurchaseOrderService


def build_services(settings: Optional[Settings] = None, catalog: Optional[Catalog] = None) -> Services:
    """Wire the services around a fresh store."""
    settings = settings or get_settings()
    catalog = catalog if catalog is not None else Catalog.from_csv(settings)
    store = RowStore()
    engine = PricingEngine(settings)
    pricing = PricingService(catalog, store, engine, settings)
    quotations = QuotationService(store, settings, pricing)
    acceptances = AcceptanceService(store, quotations)
    purchase_orders = PurchaseOrderService(store, quotations, acceptances, settings)
    return Services(settings, store, catalog, engine, pricing, quotations, acceptances, purchase_orders)


services = build_services()


def reset_services(settings: Optional[Settings] = None, catalog: Optional[Catalog] = None) -> Services:
    """Replace the process-wide services (used by tests)."""
    global services
    services = build_services(settings, catalog)
    return services


@contextmanager
def http_errors():
    """Turn business-rule failures into HTTP errors."""
    try:
        yield
    except ErpError as e:
        if e.http_status >= 500:
            logger.exception("Unhandled service error")
        raise HTTPException(status_code=e.http_status, detail=str(e))
