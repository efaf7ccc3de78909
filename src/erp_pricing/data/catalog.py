"""
Catalog - Items, customers and pricing reference data.

Loads seed CSVs (items, customers, volume tiers, competitor prices,
contract prices) with pandas and answers the lookups the pricing
service needs. Missing files simply leave that table empty.
"""
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.models import Item, Customer, VolumeTier, CompetitorPrice, ContractPrice, CUSTOMER_TYPES
from ..errors import NotFoundError

logger = logging.getLogger(__name__)


def _load_csv(path: Path) -> pd.DataFrame:
    """Read a CSV as strings with blank cells as '' and stripped values."""
    if not path.exists():
        return pd.DataFrame()
    df = pd.read_csv(path, dtype=str).fillna('')
    df.columns = [c.strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def _opt_float(value: str) -> Optional[float]:
    return float(value) if value not in ('', None) else None


def _opt_int(value: str) -> Optional[int]:
    return int(float(value)) if value not in ('', None) else None


def _opt_date(value: str) -> Optional[date]:
    return datetime.strptime(value, '%Y-%m-%d').date() if value else None


class Catalog:
    """In-memory view of the pricing reference data."""

    def __init__(self):
        self.items: dict[str, Item] = {}
        self.customers: dict[str, Customer] = {}
        self.volume_tiers: list[VolumeTier] = []
        self.competitor_prices: list[CompetitorPrice] = []
        self.contracts: list[ContractPrice] = []
        self.load_report: dict = {}

    @classmethod
    def from_csv(cls, settings: Optional[Settings] = None) -> 'Catalog':
        """
        Build a catalog from the seed CSV files named in settings.

        Rows that fail to parse are skipped and listed in ``load_report``.
        """
        settings = settings or get_settings()
        catalog = cls()
        report = {
            "timestamp": datetime.now().isoformat(),
            "input_files": {},
            "metrics": {},
            "warnings": [],
        }

        sources = {
            "items": (settings.items_csv, catalog._add_item_row),
            "customers": (settings.customers_csv, catalog._add_customer_row),
            "volume_tiers": (settings.volume_tiers_csv, catalog._add_tier_row),
            "competitor_prices": (settings.competitor_prices_csv, catalog._add_competitor_row),
            "contracts": (settings.contracts_csv, catalog._add_contract_row),
        }

        for name, (path, add_row) in sources.items():
            report["input_files"][name] = {"path": str(path), "exists": path.exists()}
            df = _load_csv(path)
            loaded = 0
            for row in df.to_dict(orient='records'):
                try:
                    add_row(row)
                    loaded += 1
                except (KeyError, ValueError) as e:
                    report["warnings"].append(f"{name}: skipped row {row}: {e}")
            report["metrics"][f"{name}_count"] = loaded

        catalog.load_report = report
        if report["warnings"]:
            logger.warning("Catalog loaded with %d skipped rows", len(report["warnings"]))
        logger.info("Catalog loaded: %s", report["metrics"])
        return catalog

    # Row parsers

    def _add_item_row(self, row: dict):
        retail_markup = _opt_float(row.get('retail_markup', ''))
        wholesale_markup = _opt_float(row.get('wholesale_markup', ''))
        self.add_item(Item(
            id=row['id'],
            name=row.get('name') or row['id'],
            cost_price=float(row['cost_price'] or 0),
            category=row.get('category') or None,
            retail_markup=70.0 if retail_markup is None else retail_markup,
            wholesale_markup=40.0 if wholesale_markup is None else wholesale_markup,
            currency=(row.get('currency') or 'BHD').upper(),
        ))

    def _add_customer_row(self, row: dict):
        customer_type = row.get('customer_type') or 'Retail'
        if customer_type not in CUSTOMER_TYPES:
            raise ValueError(f"unknown customer type '{customer_type}'")
        self.add_customer(Customer(
            id=row['id'],
            name=row.get('name') or row['id'],
            customer_type=customer_type,
            classification=row.get('classification') or 'Corporate',
        ))

    def _add_tier_row(self, row: dict):
        self.add_volume_tier(VolumeTier(
            min_quantity=int(float(row['min_quantity'])),
            max_quantity=_opt_int(row.get('max_quantity', '')),
            discount_percentage=_opt_float(row.get('discount_percentage', '')) or 0.0,
            special_price=_opt_float(row.get('special_price', '')),
            item_id=row.get('item_id') or None,
            customer_id=row.get('customer_id') or None,
        ))

    def _add_competitor_row(self, row: dict):
        self.add_competitor_price(CompetitorPrice(
            item_id=row['item_id'],
            competitor_name=row.get('competitor_name', ''),
            price=float(row['price']),
        ))

    def _add_contract_row(self, row: dict):
        self.add_contract(ContractPrice(
            item_id=row['item_id'],
            customer_id=row['customer_id'],
            price=float(row['price']),
            valid_from=_opt_date(row.get('valid_from', '')),
            valid_to=_opt_date(row.get('valid_to', '')),
        ))

    # Programmatic seeding

    def add_item(self, item: Item) -> Item:
        self.items[item.id] = item
        return item

    def add_customer(self, customer: Customer) -> Customer:
        self.customers[customer.id] = customer
        return customer

    def add_volume_tier(self, tier: VolumeTier) -> VolumeTier:
        self.volume_tiers.append(tier)
        return tier

    def add_competitor_price(self, price: CompetitorPrice) -> CompetitorPrice:
        self.competitor_prices.append(price)
        return price

    def add_contract(self, contract: ContractPrice) -> ContractPrice:
        self.contracts.append(contract)
        return contract

    # Lookups

    def get_item(self, item_id: str) -> Item:
        item = self.items.get(str(item_id).strip())
        if item is None:
            raise NotFoundError(f"Item not found: {item_id}")
        return item

    def get_customer(self, customer_id: str) -> Customer:
        customer = self.customers.get(str(customer_id).strip())
        if customer is None:
            raise NotFoundError(f"Customer not found: {customer_id}")
        return customer

    def volume_tiers_for(self, item_id: Optional[str] = None, customer_id: Optional[str] = None) -> list[VolumeTier]:
        """
        Most specific tier set for an item/customer pair.

        Item+customer tiers win over item-only tiers, which win over
        global tiers. Returned sorted by min_quantity.
        """
        candidates = [
            [t for t in self.volume_tiers if t.item_id == item_id and t.customer_id == customer_id],
            [t for t in self.volume_tiers if t.item_id == item_id and t.customer_id is None],
            [t for t in self.volume_tiers if t.item_id is None and t.customer_id is None],
        ]
        for tiers in candidates:
            if tiers:
                return sorted(tiers, key=lambda t: t.min_quantity)
        return []

    def competitor_prices_for(self, item_id: str) -> list[float]:
        return [cp.price for cp in self.competitor_prices if cp.item_id == item_id]

    def contract_for(self, item_id: str, customer_id: str, as_of: Optional[date] = None) -> Optional[ContractPrice]:
        """First contract for the pair that is valid on ``as_of`` (today by default)."""
        day = as_of or date.today()
        for contract in self.contracts:
            if contract.item_id == item_id and contract.customer_id == customer_id and contract.is_valid_on(day):
                return contract
        return None
