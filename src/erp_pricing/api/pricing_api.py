"""
Pricing API - FastAPI router for price calculation and pricing reports.
"""
from datetime import date, datetime, timedelta
from typing import Literal, Optional

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..engine.currency import convert, get_rate
from ..engine.models import PricingConfiguration, PricingResult, VolumeTier
from . import state
from .state import http_errors

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


class VolumeTierModel(BaseModel):
    min_quantity: int = Field(ge=0)
    max_quantity: Optional[int] = None
    discount_percentage: float = 0.0
    special_price: Optional[float] = None


class CalculateRequest(BaseModel):
    """Explicit pricing configuration; cost defaults to the catalog cost."""
    item_id: str
    method: str
    customer_type: Literal['Retail', 'Wholesale'] = 'Retail'
    customer_id: Optional[str] = None
    cost_price: Optional[float] = None
    quantity: int = 1
    base_currency: str = 'BHD'
    target_currency: str = 'BHD'
    markup: Optional[float] = None
    target_margin: Optional[float] = None
    volume_tiers: list[VolumeTierModel] = []
    contract_price: Optional[float] = None
    contract_valid_from: Optional[date] = None
    contract_valid_to: Optional[date] = None
    competitor_prices: list[float] = []
    market_demand: Optional[Literal['high', 'medium', 'low']] = None
    seasonal_factor: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_margin: Optional[float] = None
    as_of: Optional[date] = None


class ItemPriceRequest(BaseModel):
    customer_id: str
    quantity: int = 1
    method: Optional[str] = None
    overrides: Optional[dict] = None
    as_of: Optional[date] = None


class BatchRequest(BaseModel):
    item_ids: list[str]
    customer_id: str
    quantities: Optional[list[int]] = None


def _result_payload(result: PricingResult) -> dict:
    payload = jsonable_encoder(result)
    payload["line_total"] = result.line_total
    payload["trace_text"] = result.get_trace_text()
    return payload


@router.post("/calculate")
async def calculate(req: CalculateRequest):
    """Price an explicit configuration."""
    data = req.model_dump(exclude={'cost_price', 'quantity', 'volume_tiers'})
    config = PricingConfiguration(
        volume_tiers=[VolumeTier(**tier.model_dump()) for tier in req.volume_tiers],
        **data,
    )
    with http_errors():
        result = state.services.pricing.calculate_with_configuration(config, req.cost_price, req.quantity)
    return _result_payload(result)


@router.post("/items/{item_id}/optimal")
async def price_item(item_id: str, req: ItemPriceRequest):
    """Price a catalog item for a customer (optimal method unless one is given)."""
    with http_errors():
        result = state.services.pricing.calculate_item_price(
            item_id, req.customer_id, req.quantity, req.method, req.overrides, req.as_of
        )
    return _result_payload(result)


@router.post("/batch")
async def price_batch(req: BatchRequest):
    with http_errors():
        results = state.services.pricing.calculate_batch_prices(req.item_ids, req.customer_id, req.quantities)
    return [_result_payload(r) for r in results]


@router.get("/items/{item_id}/analysis")
async def price_analysis(item_id: str):
    """Scenario prices, competitive position and recommendations for an item."""
    with http_errors():
        analysis = state.services.pricing.price_analysis(item_id)
    return jsonable_encoder(analysis)


@router.get("/currency/convert")
async def convert_currency(amount: float, from_currency: str, to_currency: str):
    rates = state.services.settings.currency_rates
    return {
        "amount": amount,
        "from_currency": from_currency.upper(),
        "to_currency": to_currency.upper(),
        "rate": get_rate(from_currency, to_currency, rates),
        "converted": convert(amount, from_currency, to_currency, rates),
    }


@router.get("/reports/performance")
async def performance_report(date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
    date_to = date_to or datetime.now()
    date_from = date_from or date_to - timedelta(days=30)
    return state.services.pricing.performance_report(date_from, date_to)


@router.get("/reports/competitive-position")
async def competitive_position(item_id: Optional[str] = None):
    return state.services.pricing.competitive_position_report(item_id)
