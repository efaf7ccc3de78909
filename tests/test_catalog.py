from datetime import date

import pytest

from erp_pricing.data.catalog import Catalog
from erp_pricing.engine.models import VolumeTier, ContractPrice
from erp_pricing.errors import NotFoundError


def write(path, text):
    path.write_text(text.strip() + "\n", encoding="utf-8")


@pytest.fixture
def seeded_settings(settings):
    data = settings.data_dir
    write(data / "items.csv", """
id,name,category,cost_price,retail_markup,wholesale_markup,currency
ITM-1, Pump ,Pumps,100,70,40,bhd
ITM-2,Valve,,12.5,,,
ITM-3,Broken,,not-a-number,,,
""")
    write(data / "customers.csv", """
id,name,customer_type,classification
CUS-1,Gulf Marine,Wholesale,Corporate
CUS-2,Someone,Distributor,
""")
    write(data / "volume_tiers.csv", """
item_id,customer_id,min_quantity,max_quantity,discount_percentage,special_price
,,1,9,0,
,,10,,5,
ITM-1,,50,,10,
ITM-1,,1,49,0,
ITM-1,CUS-1,100,,,85
""")
    write(data / "contracts.csv", """
item_id,customer_id,price,valid_from,valid_to
ITM-2,CUS-1,10,2026-01-01,2026-06-30
""")
    return settings


def test_from_csv_loads_and_reports(seeded_settings):
    catalog = Catalog.from_csv(seeded_settings)

    assert set(catalog.items) == {"ITM-1", "ITM-2"}
    assert catalog.items["ITM-1"].name == "Pump"
    assert catalog.items["ITM-1"].currency == "BHD"
    assert catalog.items["ITM-2"].retail_markup == 70.0
    assert set(catalog.customers) == {"CUS-1"}

    report = catalog.load_report
    assert report["metrics"]["items_count"] == 2
    assert report["metrics"]["competitor_prices_count"] == 0
    assert report["input_files"]["competitor_prices"]["exists"] is False
    assert len(report["warnings"]) == 2


def test_zero_markup_is_kept(settings):
    write(settings.data_dir / "items.csv", """
id,name,category,cost_price,retail_markup,wholesale_markup,currency
ITM-9,At cost,,10,0,0,
""")
    item = Catalog.from_csv(settings).items["ITM-9"]

    assert item.retail_markup == 0.0
    assert item.wholesale_markup == 0.0


def test_volume_tier_precedence(seeded_settings):
    catalog = Catalog.from_csv(seeded_settings)

    specific = catalog.volume_tiers_for("ITM-1", "CUS-1")
    assert [t.special_price for t in specific] == [85.0]

    item_only = catalog.volume_tiers_for("ITM-1", "CUS-9")
    assert [t.min_quantity for t in item_only] == [1, 50]

    fallback = catalog.volume_tiers_for("ITM-2", "CUS-1")
    assert [t.min_quantity for t in fallback] == [1, 10]


def test_no_tiers_at_all():
    assert Catalog().volume_tiers_for("X", "Y") == []


def test_contract_lookup_respects_dates(seeded_settings):
    catalog = Catalog.from_csv(seeded_settings)
    assert catalog.contract_for("ITM-2", "CUS-1", date(2026, 3, 1)).price == 10.0
    assert catalog.contract_for("ITM-2", "CUS-1", date(2026, 7, 1)) is None
    assert catalog.contract_for("ITM-1", "CUS-1", date(2026, 3, 1)) is None


def test_lookups_raise_not_found(catalog):
    with pytest.raises(NotFoundError, match="Item not found"):
        catalog.get_item("NOPE")
    with pytest.raises(NotFoundError, match="Customer not found"):
        catalog.get_customer("NOPE")


def test_programmatic_seeding(catalog):
    catalog.add_volume_tier(VolumeTier(min_quantity=5, discount_percentage=3, item_id="PUMP"))
    catalog.add_contract(ContractPrice(item_id="PUMP", customer_id="RETAIL", price=99.0))

    assert catalog.volume_tiers_for("PUMP", "RETAIL")[0].discount_percentage == 3
    assert catalog.contract_for("PUMP", "RETAIL").price == 99.0
    assert catalog.competitor_prices_for("PUMP") == [160.0, 150.0]
