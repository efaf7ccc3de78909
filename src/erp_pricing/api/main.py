from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from erp_pricing import __version__
from erp_pricing.logging_config import configure_logging
from erp_pricing.api import state
from erp_pricing.api.pricing_api import router as pricing_router
from erp_pricing.api.quotations_api import router as quotations_router
from erp_pricing.api.acceptance_api import router as acceptance_router
from erp_pricing.api.purchase_orders_api import router as purchase_orders_router, upload_router

configure_logging()

app = FastAPI(
    title="ERP Pricing API",
    description="Pricing, quotations, customer acceptance and purchase-order reconciliation",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing_router)
app.include_router(quotations_router)
app.include_router(acceptance_router)
app.include_router(purchase_orders_router)
app.include_router(upload_router)


@app.get("/")
async def root():
    return {"status": "online", "message": "ERP Pricing API Active"}


@app.get("/system/status")
async def get_status():
    services = state.services
    return {
        "engine_active": True,
        "base_currency": services.settings.base_currency,
        "catalog": {
            "items": len(services.catalog.items),
            "customers": len(services.catalog.customers),
            "volume_tiers": len(services.catalog.volume_tiers),
            "competitor_prices": len(services.catalog.competitor_prices),
            "contracts": len(services.catalog.contracts),
        },
        "catalog_warnings": len(services.catalog.load_report.get("warnings", [])),
    }
