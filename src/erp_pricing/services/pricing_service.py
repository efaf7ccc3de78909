"""
Pricing Service - Prices catalog items for customers and keeps a history.

Builds pricing configurations from catalog data (customer type, volume
tiers, competitor prices, contracts), runs them through the engine and
records each result for the performance and competitive reports.
"""
import dataclasses
import logging
from datetime import date, datetime
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..data.catalog import Catalog
from ..engine.models import (
    PricingConfiguration,
    PricingMethod,
    PricingResult,
    PriceAnalysis,
    Item,
    Customer,
    VALID_PRICING_METHODS,
    MARKET_DEMANDS,
)
from ..engine.pricing_engine import PricingEngine
from ..errors import PricingError, ValidationError
from ..storage.records import PricingCalculation
from ..storage.store import RowStore

logger = logging.getLogger(__name__)

CALCULATIONS = 'pricing_calculations'

# Configuration fields a caller may override on top of catalog defaults
OVERRIDABLE_FIELDS = {
    'markup', 'target_margin', 'market_demand', 'seasonal_factor',
    'min_price', 'max_price', 'min_margin', 'target_currency', 'contract_price',
}


def _naive_local(moment: datetime) -> datetime:
    """Calculation timestamps are naive local time; bring aware bounds onto that clock."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


class PricingService:
    """Catalog-aware pricing with calculation history."""

    def __init__(self, catalog: Catalog, store: RowStore,
                 engine: Optional[PricingEngine] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.store = store
        self.engine = engine or PricingEngine(self.settings)

    def build_configuration(
        self,
        item: Item,
        customer: Customer,
        method: str,
        overrides: Optional[dict] = None,
        as_of: Optional[date] = None,
    ) -> PricingConfiguration:
        """Configuration for ``method`` filled in from catalog data."""
        if method not in VALID_PRICING_METHODS:
            raise PricingError(f"Unknown pricing method: {method}")

        item_markup = item.retail_markup if customer.customer_type == 'Retail' else item.wholesale_markup

        config = PricingConfiguration(
            item_id=item.id,
            customer_id=customer.id,
            customer_type=customer.customer_type,
            method=method,
            base_currency=item.currency,
            target_currency=self.settings.base_currency,
            volume_tiers=self.catalog.volume_tiers_for(item.id, customer.id),
            competitor_prices=self.catalog.competitor_prices_for(item.id),
            as_of=as_of,
        )

        if method in (PricingMethod.COST_PLUS, PricingMethod.VALUE_BASED):
            config.markup = item_markup
        elif method == PricingMethod.MARGIN_BASED:
            config.target_margin = self.settings.pricing.margin_for(customer.customer_type)
        elif method == PricingMethod.CONTRACT:
            contract = self.catalog.contract_for(item.id, customer.id, as_of)
            if contract is None and not (overrides or {}).get('contract_price'):
                raise PricingError(f"No contract price in force for item {item.id} and customer {customer.id}")
            if contract is not None:
                config.contract_price = contract.price
                config.contract_valid_from = contract.valid_from
                config.contract_valid_to = contract.valid_to

        for key, value in (overrides or {}).items():
            if key not in OVERRIDABLE_FIELDS:
                raise ValidationError(f"Field '{key}' cannot be overridden")
            if value is not None:
                setattr(config, key, value)

        if config.market_demand is not None and config.market_demand not in MARKET_DEMANDS:
            raise ValidationError(f"Market demand must be one of: {', '.join(MARKET_DEMANDS)}")

        return config

    def calculate_item_price(
        self,
        item_id: str,
        customer_id: str,
        quantity: int = 1,
        method: Optional[str] = None,
        overrides: Optional[dict] = None,
        as_of: Optional[date] = None,
    ) -> PricingResult:
        """
        Price one catalog item for a customer.

        With no method the engine's optimal pricing (customer-type margin,
        volume tiers for large quantities) is used.
        """
        item = self.catalog.get_item(item_id)
        customer = self.catalog.get_customer(customer_id)

        if method:
            config = self.build_configuration(item, customer, method, overrides, as_of)
            result = self.engine.calculate_price(config, item.cost_price, quantity)
        else:
            result = self.engine.calculate_optimal_price(item, customer, quantity)

        self._record(result)
        return result

    def calculate_with_configuration(self, config: PricingConfiguration, cost_price: Optional[float] = None,
                                     quantity: int = 1) -> PricingResult:
        """Price an explicit configuration; cost defaults to the catalog cost."""
        if cost_price is None:
            cost_price = self.catalog.get_item(config.item_id).cost_price
        result = self.engine.calculate_price(config, cost_price, quantity)
        self._record(result)
        return result

    def calculate_batch_prices(self, item_ids: list[str], customer_id: str,
                               quantities: Optional[list[int]] = None) -> list[PricingResult]:
        """Optimal prices for several items; unknown items are skipped."""
        customer = self.catalog.get_customer(customer_id)
        quantities = quantities or []

        items = []
        item_quantities = []
        for i, item_id in enumerate(item_ids):
            item = self.catalog.items.get(item_id)
            if item is None:
                logger.warning("Skipping unknown item %s in batch pricing", item_id)
                continue
            items.append(item)
            item_quantities.append(quantities[i] if i < len(quantities) else 1)

        results = self.engine.calculate_batch(items, customer, item_quantities)
        for result in results:
            self._record(result)
        return results

    def price_analysis(self, item_id: str) -> PriceAnalysis:
        item = self.catalog.get_item(item_id)
        return self.engine.generate_price_analysis(item, self.catalog.competitor_prices_for(item.id))

    def _record(self, result: PricingResult):
        self.store.insert(CALCULATIONS, PricingCalculation(
            item_id=result.item_id,
            customer_id=result.customer_id,
            method=result.method,
            quantity=result.quantity,
            cost_price=result.cost_price,
            base_price=result.base_price,
            final_price=result.final_price,
            margin_percentage=result.margin_percentage,
            markup_percentage=result.markup_percentage,
            currency=result.target_currency,
            volume_discount=result.applied_volume_discount,
            competitor_average=result.competitor_average,
            factors=list(result.factors),
            calculated_at=result.calculated_at,
        ))

    # Reports

    def performance_report(self, date_from: datetime, date_to: datetime) -> dict:
        """Calculation count, average margin and method mix for a period."""
        date_from, date_to = _naive_local(date_from), _naive_local(date_to)
        df = self.store.to_frame(CALCULATIONS)
        report = {
            "period": {"from": date_from.isoformat(), "to": date_to.isoformat()},
            "total_calculations": 0,
            "average_margin": "0.00",
            "method_distribution": {},
            "calculations": [],
        }
        if df.empty:
            return report

        df = df[(df['calculated_at'] >= date_from) & (df['calculated_at'] <= date_to)]
        if df.empty:
            return report

        df = df.sort_values('calculated_at', ascending=False)
        report["total_calculations"] = int(len(df))
        report["average_margin"] = f"{float(df['margin_percentage'].mean()):.2f}"
        report["method_distribution"] = {
            str(method): int(count) for method, count in df['method'].value_counts().items()
        }
        report["calculations"] = [
            {
                "id": row['id'],
                "item_id": row['item_id'],
                "customer_id": row['customer_id'],
                "method": row['method'],
                "quantity": int(row['quantity']),
                "final_price": round(float(row['final_price']), 2),
                "margin_percentage": round(float(row['margin_percentage']), 2),
                "calculated_at": row['calculated_at'].isoformat(),
            }
            for row in df.head(100).to_dict(orient='records')
        ]
        return report

    def competitive_position_report(self, item_id: Optional[str] = None) -> list[dict]:
        """Per-item competitor count and min/max/average price."""
        rows = [dataclasses.asdict(cp) for cp in self.catalog.competitor_prices]
        if item_id:
            rows = [r for r in rows if r['item_id'] == item_id]
        if not rows:
            return []

        df = pd.DataFrame(rows)
        grouped = df.groupby('item_id')['price'].agg(['count', 'min', 'max', 'mean']).reset_index()

        return [
            {
                "item_id": row['item_id'],
                "competitor_count": int(row['count']),
                "min_price": float(row['min']),
                "max_price": float(row['max']),
                "average_price": float(row['mean']),
            }
            for row in grouped.to_dict(orient='records')
        ]
