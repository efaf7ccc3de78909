"""
Centralized settings, paths and pricing constants for the ERP pricing service.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_CURRENCY_RATES = {
    'BHD': 1.0,   # base for internal conversions
    'USD': 2.65,
    'AED': 9.95,
    'KWD': 0.81,
    'SAR': 9.94,
    'EUR': 0.93,
    'GBP': 0.79,
}

# (min_quantity, max_quantity, discount_percentage)
DEFAULT_VOLUME_TIERS = (
    (1, 9, 0.0),
    (10, 49, 5.0),
    (50, 99, 10.0),
    (100, 499, 15.0),
    (500, None, 20.0),
)


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class PricingConstants:
    """
    Business heuristics used by the pricing methods.

    All percentages are expressed as whole numbers (40 means 40%).
    """
    competitive_discount: float = 0.95
    competitive_min_margin: float = 20.0
    competitive_default_markup: float = 30.0

    volume_default_markup: float = 40.0

    dynamic_base_markup: float = 30.0
    dynamic_demand_adjustment: float = 10.0
    dynamic_band: float = 10.0
    dynamic_band_reentry: float = 5.0

    # Band around the competitor average that counts as "at" market
    market_band: float = 10.0

    retail_margin: float = 70.0
    wholesale_margin: float = 40.0
    retail_markup: float = 70.0
    wholesale_markup: float = 40.0

    volume_method_threshold: int = 100
    optimal_min_margin: float = 10.0
    default_volume_tiers: tuple = DEFAULT_VOLUME_TIERS

    def margin_for(self, customer_type: str) -> float:
        return self.retail_margin if customer_type == 'Retail' else self.wholesale_margin

    def markup_for(self, customer_type: str) -> float:
        return self.retail_markup if customer_type == 'Retail' else self.wholesale_markup


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Seed data files
    items_csv: Path
    customers_csv: Path
    volume_tiers_csv: Path
    competitor_prices_csv: Path
    contracts_csv: Path

    base_currency: str = 'BHD'
    currency_rates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CURRENCY_RATES))

    # Uploader used when a PO upload arrives without a resolvable user
    system_user_id: str = 'system'

    quotation_validity_days: int = 30
    log_level: str = 'INFO'

    pricing: PricingConstants = field(default_factory=PricingConstants)

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        env_data_dir = os.environ.get('ERP_DATA_DIR')
        data = data_dir or (Path(env_data_dir) if env_data_dir else root / 'data')

        return cls(
            project_root=root,
            data_dir=data,
            items_csv=data / 'items.csv',
            customers_csv=data / 'customers.csv',
            volume_tiers_csv=data / 'volume_tiers.csv',
            competitor_prices_csv=data / 'competitor_prices.csv',
            contracts_csv=data / 'contracts.csv',
            base_currency=os.environ.get('ERP_BASE_CURRENCY', 'BHD').strip().upper(),
            system_user_id=os.environ.get('ERP_SYSTEM_USER_ID', 'system'),
            log_level=os.environ.get('ERP_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next call reloads from the environment."""
    global _settings
    _settings = None
