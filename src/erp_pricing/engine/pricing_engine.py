"""
Pricing Engine - Multi-method price calculation with traceability.

Supports cost-plus, margin-based, competitive, value-based, dynamic,
contract and volume-tiered pricing, followed by:
- Volume discounts
- Seasonal factor
- Minimum margin floor and min/max price clamps
- Currency conversion via the static rate table
- Margin, markup and competitive position analysis

The engine holds no data of its own; callers pass in the item cost and
customer context they looked up.
"""
import logging
from datetime import date
from typing import Optional

from ..config.settings import get_settings, Settings, PricingConstants
from ..errors import PricingError, ValidationError
from .currency import get_rate
from .models import (
    PricingMethod,
    VALID_PRICING_METHODS,
    PricingConfiguration,
    PricingResult,
    PriceAnalysis,
    Item,
    Customer,
)
from .tier_resolver import apply_volume_discount, price_volume_tiered, tiers_from_tuples

logger = logging.getLogger(__name__)


def _average(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def calculate_cost_plus(cost: float, markup_percentage: float) -> float:
    """Cost-plus pricing: cost + fixed markup."""
    return cost * (1 + markup_percentage / 100)


def calculate_margin_based(cost: float, target_margin_percentage: float) -> float:
    """Margin-based pricing: price = cost / (1 - margin%)."""
    if target_margin_percentage >= 100:
        raise PricingError("Target margin cannot be 100% or higher")
    return cost / (1 - target_margin_percentage / 100)


def calculate_competitive(cost: float, competitor_prices: list[float],
                          constants: Optional[PricingConstants] = None) -> float:
    """
    Price a little below the competitor average while holding a minimum margin.

    Without competitor data the default markup is used instead.
    """
    constants = constants or PricingConstants()

    average = _average(competitor_prices)
    if average is None:
        return calculate_cost_plus(cost, constants.competitive_default_markup)

    target_price = average * constants.competitive_discount
    floor_price = calculate_margin_based(cost, constants.competitive_min_margin)
    return max(target_price, floor_price)


def calculate_dynamic(cost: float, market_demand: Optional[str], competitor_prices: list[float],
                      constants: Optional[PricingConstants] = None) -> float:
    """
    Base markup adjusted for demand, then pulled back inside a band
    around the competitor average.
    """
    constants = constants or PricingConstants()
    price = calculate_cost_plus(cost, constants.dynamic_base_markup)

    adjustment = constants.dynamic_demand_adjustment / 100
    if market_demand == 'high':
        price *= 1 + adjustment
    elif market_demand == 'low':
        price *= 1 - adjustment

    average = _average(competitor_prices)
    if average is not None:
        band = constants.dynamic_band / 100
        reentry = constants.dynamic_band_reentry / 100
        if price > average * (1 + band):
            price = average * (1 + reentry)
        elif price < average * (1 - band):
            price = average * (1 - reentry)

    return price


def market_position(price: float, competitor_average: float, band_percentage: float = 10.0) -> str:
    """Classify a price as above, at or below the competitor average."""
    band = band_percentage / 100
    if price > competitor_average * (1 + band):
        return 'above'
    if price < competitor_average * (1 - band):
        return 'below'
    return 'at'


class PricingEngine:
    """
    Core pricing engine.

    Calculation order:
    1. Method price (cost-plus, margin, competitive, ...)
    2. Volume discount from the configured tiers
    3. Seasonal factor
    4. Minimum margin floor, then min/max price clamps
    5. Currency conversion
    6. Margin/markup and market position analysis
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.constants = self.settings.pricing

    def method_price(self, config: PricingConfiguration, cost: float, quantity: int,
                     result: PricingResult) -> float:
        """Price produced by the configured method alone."""
        method = config.method
        constants = self.constants

        if method == PricingMethod.COST_PLUS:
            markup = config.markup or 0.0
            result.factors.append(f"Cost-plus with {markup:g}% markup")
            return calculate_cost_plus(cost, markup)

        if method == PricingMethod.MARGIN_BASED:
            margin = config.target_margin or 0.0
            result.factors.append(f"Margin-based with {margin:g}% target margin")
            return calculate_margin_based(cost, margin)

        if method == PricingMethod.COMPETITIVE:
            result.factors.append("Competitive pricing based on market analysis")
            return calculate_competitive(cost, config.competitor_prices, constants)

        if method == PricingMethod.VOLUME_TIERED:
            price, tier = price_volume_tiered(
                cost, quantity, config.volume_tiers, constants.volume_default_markup
            )
            result.volume_tier_applied = tier
            if tier is not None and tier.special_price is None:
                result.applied_volume_discount = tier.discount_percentage
            result.factors.append(f"Volume pricing for quantity {quantity}")
            return price

        if method == PricingMethod.DYNAMIC:
            result.factors.append("Dynamic pricing with market factors")
            return calculate_dynamic(cost, config.market_demand, config.competitor_prices, constants)

        if method == PricingMethod.CONTRACT:
            as_of = config.as_of or date.today()
            if config.contract_valid_from and as_of < config.contract_valid_from:
                raise PricingError(f"Contract price is not valid before {config.contract_valid_from.isoformat()}")
            if config.contract_valid_to and as_of > config.contract_valid_to:
                raise PricingError(f"Contract price expired on {config.contract_valid_to.isoformat()}")
            result.factors.append("Contract pricing")
            return config.contract_price if config.contract_price is not None else cost

        # value_based: item markup when given, else the customer-type default
        markup = config.markup if config.markup is not None else constants.markup_for(config.customer_type)
        result.factors.append(f"Default {config.customer_type} markup: {markup:g}%")
        return calculate_cost_plus(cost, markup)

    def calculate_price(self, config: PricingConfiguration, cost_price: float,
                        quantity: int = 1) -> PricingResult:
        """
        Calculate a full price breakdown for one item.

        Args:
            config: Method and parameters
            cost_price: Item cost in the base currency
            quantity: Ordered quantity (drives volume tiers)

        Returns:
            PricingResult with prices, margins, factors and trace
        """
        if config.method not in VALID_PRICING_METHODS:
            raise PricingError(f"Unknown pricing method: {config.method}")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if cost_price < 0:
            raise ValidationError("Cost price cannot be negative")

        cost = float(cost_price)
        result = PricingResult(
            item_id=config.item_id,
            customer_id=config.customer_id,
            method=config.method,
            quantity=quantity,
            cost_price=cost,
            base_price=cost,
            final_price=cost,
            base_currency=config.base_currency,
            target_currency=config.target_currency,
            conversion_rate=1.0,
            price_in_target_currency=cost,
            gross_margin=0.0,
            margin_percentage=0.0,
            markup=0.0,
            markup_percentage=0.0,
            valid_until=config.contract_valid_to,
        )
        result.add_trace("Cost", f"Item {config.item_id} cost", f"{cost:.2f}")

        price = self.method_price(config, cost, quantity, result)
        result.base_price = price
        result.add_trace("Method", f"Applied {config.method}", f"{price:.2f}")

        # Volume-tiered pricing already consumed the tiers
        if config.method != PricingMethod.VOLUME_TIERED and config.volume_tiers:
            volume = apply_volume_discount(price, quantity, config.volume_tiers)
            price = volume.price
            if volume.discount > 0:
                result.applied_volume_discount = volume.discount
                result.volume_tier_applied = volume.tier
                result.factors.append(f"Volume discount: {volume.discount:g}%")
                result.add_trace("Volume Discount", f"{volume.discount:g}% for quantity {quantity}", f"{price:.2f}")

        if config.seasonal_factor and config.seasonal_factor != 1:
            price *= config.seasonal_factor
            result.factors.append(f"Seasonal factor: {config.seasonal_factor:g}")
            result.add_trace("Seasonal", f"Factor {config.seasonal_factor:g}", f"{price:.2f}")

        if config.min_margin is not None and cost > 0:
            floor_price = calculate_margin_based(cost, config.min_margin)
            if price < floor_price:
                price = floor_price
                result.factors.append(f"Applied minimum margin: {config.min_margin:g}%")
                result.add_trace("Margin Floor", f"Raised to {config.min_margin:g}% margin", f"{price:.2f}")

        if config.min_price is not None and price < config.min_price:
            price = config.min_price
            result.factors.append(f"Applied minimum price: {config.min_price:g}")
            result.add_trace("Clamp", "Minimum price", f"{price:.2f}")

        if config.max_price is not None and price > config.max_price:
            price = config.max_price
            result.factors.append(f"Applied maximum price: {config.max_price:g}")
            result.add_trace("Clamp", "Maximum price", f"{price:.2f}")

        result.final_price = price

        # Currency conversion
        rate = get_rate(config.base_currency, config.target_currency, self.settings.currency_rates)
        result.conversion_rate = rate
        result.price_in_target_currency = price * rate
        if rate != 1.0:
            result.add_trace(
                "Currency",
                f"{config.base_currency} → {config.target_currency} at {rate:.4f}",
                f"{result.price_in_target_currency:.2f}",
            )

        # Margin analysis
        result.gross_margin = price - cost
        result.margin_percentage = (result.gross_margin / price) * 100 if price else 0.0
        result.markup = price - cost
        result.markup_percentage = (result.markup / cost) * 100 if cost else 0.0

        # Competitive analysis
        average = _average(config.competitor_prices)
        if average is not None:
            result.competitor_average = average
            result.market_position = market_position(price, average, self.constants.market_band)
            result.add_trace("Market", f"Competitor average {average:.2f}", result.market_position)

        result.add_trace("Final", "Final unit price", f"{price:.2f}")
        return result

    def optimal_configuration(self, item: Item, customer: Customer, quantity: int = 1) -> PricingConfiguration:
        """Configuration used when the caller does not pick a method."""
        constants = self.constants

        method = PricingMethod.MARGIN_BASED
        if quantity >= constants.volume_method_threshold:
            method = PricingMethod.VOLUME_TIERED

        return PricingConfiguration(
            item_id=item.id,
            customer_id=customer.id,
            customer_type=customer.customer_type,
            method=method,
            base_currency=self.settings.base_currency,
            target_currency=self.settings.base_currency,
            target_margin=constants.margin_for(customer.customer_type),
            volume_tiers=tiers_from_tuples(constants.default_volume_tiers),
            min_margin=constants.optimal_min_margin,
        )

    def calculate_optimal_price(self, item: Item, customer: Customer, quantity: int = 1) -> PricingResult:
        """
        Price by customer type and quantity.

        Margin-based at the customer type's target margin, switching to
        volume-tiered pricing for large quantities.
        """
        config = self.optimal_configuration(item, customer, quantity)
        return self.calculate_price(config, item.cost_price, quantity)

    def calculate_batch(self, items: list[Item], customer: Customer,
                        quantities: Optional[list[int]] = None) -> list[PricingResult]:
        """Optimal prices for several items; items that fail are skipped."""
        quantities = quantities or []
        results = []

        for i, item in enumerate(items):
            quantity = quantities[i] if i < len(quantities) and quantities[i] else 1
            try:
                results.append(self.calculate_optimal_price(item, customer, quantity))
            except ValidationError as e:
                logger.warning("Skipping item %s in batch pricing: %s", item.id, e)

        return results

    def generate_price_analysis(self, item: Item, competitor_prices: Optional[list[float]] = None) -> PriceAnalysis:
        """Price an item under the standard retail/wholesale scenarios."""
        constants = self.constants
        currency = self.settings.base_currency
        competitor_prices = competitor_prices or []

        scenarios = [
            PricingConfiguration(
                item_id=item.id,
                customer_type='Retail',
                method=PricingMethod.MARGIN_BASED,
                target_margin=constants.retail_margin,
                base_currency=currency,
                target_currency=currency,
                competitor_prices=competitor_prices,
            ),
            PricingConfiguration(
                item_id=item.id,
                customer_type='Wholesale',
                method=PricingMethod.MARGIN_BASED,
                target_margin=constants.wholesale_margin,
                base_currency=currency,
                target_currency=currency,
                competitor_prices=competitor_prices,
            ),
            PricingConfiguration(
                item_id=item.id,
                customer_type='Wholesale',
                method=PricingMethod.VOLUME_TIERED,
                base_currency=currency,
                target_currency=currency,
                volume_tiers=tiers_from_tuples([(100, 499, 15.0), (500, None, 25.0)]),
                competitor_prices=competitor_prices,
            ),
        ]

        current_pricing = [self.calculate_price(s, item.cost_price) for s in scenarios]
        retail, wholesale = current_pricing[0], current_pricing[1]

        recommendations = []
        if retail.margin_percentage < 50:
            recommendations.append("Consider increasing retail margin for better profitability")
        if wholesale.margin_percentage < 25:
            recommendations.append("Wholesale margin is below industry standards")
        recommendations.append("Consider implementing volume discounts for quantities above 50 units")
        recommendations.append("Monitor competitor pricing regularly for optimal positioning")

        if wholesale.competitor_average is not None:
            position = (
                f"Wholesale price {wholesale.final_price:.2f} is {wholesale.market_position} "
                f"the competitor average of {wholesale.competitor_average:.2f}"
            )
        else:
            position = "Market analysis pending - no competitor data"

        return PriceAnalysis(
            item=item,
            current_pricing=current_pricing,
            recommendations=recommendations,
            competitive_position=position,
        )
