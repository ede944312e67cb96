import logging
from datetime import datetime

from fastapi import FastAPI

from erp_pricing import models  # noqa: F401  (registers all mappers)
from erp_pricing.core.config import settings
from erp_pricing.core.logging import configure_logging
from erp_pricing.database.connection import Base, SessionLocal, engine
from erp_pricing.middleware.metrics import MetricsMiddleware, new_metrics
from erp_pricing.routes import system
from erp_pricing.routes.auth import router as auth_router
from erp_pricing.routes.pricing.calculate_price import router as calculate_price_router
from erp_pricing.routes.pricing.pricing_route import router as pricing_router
from erp_pricing.routes.stores import router as stores_router
from erp_pricing.services.user_service import ensure_admin

configure_logging(settings)
logger = logging.getLogger("erp_pricing")

app = FastAPI(title="ERP Pricing Rules Service")

app.add_middleware(MetricsMiddleware)

app.include_router(auth_router)
app.include_router(stores_router)
app.include_router(pricing_router)
app.include_router(calculate_price_router)
app.include_router(system.router)


@app.on_event("startup")
def startup_event():
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        ensure_admin(db, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)
    app.state.start_time = datetime.utcnow()
    app.state.metrics = new_metrics()
    logger.info("Pricing service started (database=%s)", engine.url.render_as_string(hide_password=True))
