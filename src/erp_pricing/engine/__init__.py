"""Engine subpackage - core pricing logic, volume tiers and currency."""
from .pricing_engine import PricingEngine
from .models import PricingConfiguration, PricingMethod, PricingResult, VolumeTier

__all__ = ['PricingEngine', 'PricingConfiguration', 'PricingMethod', 'PricingResult', 'VolumeTier']
