import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from erp_pricing.config.settings import Settings
from erp_pricing.data.catalog import Catalog
from erp_pricing.engine.models import Item, Customer, CompetitorPrice
from erp_pricing.engine.pricing_engine import PricingEngine
from erp_pricing.services.acceptance_service import AcceptanceService
from erp_pricing.services.pricing_service import PricingService
from erp_pricing.services.purchase_order_service import PurchaseOrderService
from erp_pricing.services.quotation_service import QuotationService
from erp_pricing.storage.store import RowStore


@pytest.fixture
def settings(tmp_path):
    return Settings.load(data_dir=tmp_path)


@pytest.fixture
def catalog():
    catalog = Catalog()
    catalog.add_item(Item(id="PUMP", name="Hydraulic Pump", cost_price=100.0))
    catalog.add_item(Item(id="VALVE", name="Ball Valve", cost_price=20.0))
    catalog.add_customer(Customer(id="WHOLESALE", name="Gulf Marine", customer_type="Wholesale"))
    catalog.add_customer(Customer(id="RETAIL", name="Al Noor Trading", customer_type="Retail",
                                  classification="Family"))
    catalog.add_competitor_price(CompetitorPrice(item_id="PUMP", competitor_name="A", price=160.0))
    catalog.add_competitor_price(CompetitorPrice(item_id="PUMP", competitor_name="B", price=150.0))
    return catalog


@pytest.fixture
def engine(settings):
    return PricingEngine(settings)


@pytest.fixture
def store():
    return RowStore()


@pytest.fixture
def pricing_service(catalog, store, engine, settings):
    return PricingService(catalog, store, engine, settings)


@pytest.fixture
def quotation_service(store, settings, pricing_service):
    return QuotationService(store, settings, pricing_service)


@pytest.fixture
def acceptance_service(store, quotation_service):
    return AcceptanceService(store, quotation_service)


@pytest.fixture
def po_service(store, quotation_service, acceptance_service, settings):
    return PurchaseOrderService(store, quotation_service, acceptance_service, settings)


@pytest.fixture
def quotation(quotation_service):
    """Draft quotation with a 10 x 50.00 line and a 5 x 20.00 line."""
    return quotation_service.create_quotation(
        customer_id="WHOLESALE",
        customer_type="Wholesale",
        items=[
            {"description": "Hydraulic Pump", "quantity": 10, "unit_price": 50.0, "item_id": "PUMP"},
            {"description": "Ball Valve", "quantity": 5, "unit_price": 20.0, "item_id": "VALVE"},
        ],
    )


@pytest.fixture
def quotation_lines(quotation, quotation_service):
    pump, valve = quotation_service.get_items(quotation.id)
    return pump, valve
