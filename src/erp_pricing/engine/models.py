"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


class PricingMethod:
    """Names of the supported pricing methods."""
    COST_PLUS = 'cost_plus'            # Cost + fixed markup
    MARGIN_BASED = 'margin_based'      # Price = Cost / (1 - Margin%)
    COMPETITIVE = 'competitive'        # Market-based pricing
    VALUE_BASED = 'value_based'        # Customer-type default markup
    DYNAMIC = 'dynamic'                # Demand and competitor adjusted
    CONTRACT = 'contract'              # Fixed agreement price
    VOLUME_TIERED = 'volume_tiered'    # Quantity-based tiers


VALID_PRICING_METHODS = {
    PricingMethod.COST_PLUS,
    PricingMethod.MARGIN_BASED,
    PricingMethod.COMPETITIVE,
    PricingMethod.VALUE_BASED,
    PricingMethod.DYNAMIC,
    PricingMethod.CONTRACT,
    PricingMethod.VOLUME_TIERED,
}

CUSTOMER_TYPES = ('Retail', 'Wholesale')
MARKET_DEMANDS = ('high', 'medium', 'low')


@dataclass
class TraceStep:
    """A single step in the pricing calculation trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class VolumeTier:
    """A quantity range with a discount or an override price."""
    min_quantity: int
    max_quantity: Optional[int] = None
    discount_percentage: float = 0.0
    special_price: Optional[float] = None

    # Catalog scoping; both empty means the tier applies globally
    item_id: Optional[str] = None
    customer_id: Optional[str] = None

    def matches(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


@dataclass
class Item:
    """A tradeable item with its landed cost."""
    id: str
    name: str
    cost_price: float
    category: Optional[str] = None
    retail_markup: float = 70.0
    wholesale_markup: float = 40.0
    currency: str = 'BHD'


@dataclass
class Customer:
    """A customer; the type drives default margins and markups."""
    id: str
    name: str
    customer_type: str = 'Retail'  # "Retail" or "Wholesale"
    classification: str = 'Corporate'


@dataclass
class CompetitorPrice:
    item_id: str
    competitor_name: str
    price: float


@dataclass
class ContractPrice:
    item_id: str
    customer_id: str
    price: float
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    def is_valid_on(self, day: date) -> bool:
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_to and day > self.valid_to:
            return False
        return True


@dataclass
class PricingConfiguration:
    """Everything the engine needs to price one item for one customer."""
    item_id: str
    method: str
    customer_type: str = 'Retail'
    customer_id: Optional[str] = None
    base_currency: str = 'BHD'
    target_currency: str = 'BHD'

    # Cost-plus
    markup: Optional[float] = None

    # Margin-based
    target_margin: Optional[float] = None

    # Volume pricing
    volume_tiers: list[VolumeTier] = field(default_factory=list)

    # Contract pricing
    contract_price: Optional[float] = None
    contract_valid_from: Optional[date] = None
    contract_valid_to: Optional[date] = None

    # Dynamic / competitive factors
    competitor_prices: list[float] = field(default_factory=list)
    market_demand: Optional[str] = None  # "high", "medium", "low"
    seasonal_factor: Optional[float] = None

    # Constraints
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_margin: Optional[float] = None

    # Date used to check contract validity (defaults to today)
    as_of: Optional[date] = None


@dataclass
class PricingResult:
    """Complete result of a pricing calculation."""
    item_id: str
    method: str
    cost_price: float
    base_price: float
    final_price: float

    base_currency: str
    target_currency: str
    conversion_rate: float
    price_in_target_currency: float

    gross_margin: float
    margin_percentage: float
    markup: float
    markup_percentage: float

    quantity: int = 1
    customer_id: Optional[str] = None

    applied_volume_discount: float = 0.0
    volume_tier_applied: Optional[VolumeTier] = None

    competitor_average: Optional[float] = None
    market_position: Optional[str] = None  # "above", "at", "below"

    calculated_at: datetime = field(default_factory=datetime.now)
    valid_until: Optional[date] = None
    factors: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this result."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    @property
    def line_total(self) -> float:
        return round(self.final_price * self.quantity, 2)


@dataclass
class PriceAnalysis:
    """Scenario pricing for one item plus recommendations."""
    item: Item
    current_pricing: list[PricingResult]
    recommendations: list[str] = field(default_factory=list)
    competitive_position: str = ""
