import logging

from fastapi import FastAPI

from app.core.config import settings
from app.middleware.idempotency import install_idempotency
from app.routers import health
from app.routers import offers
from app.routers import pos_offers
from .db import Base, engine

# IMPORTA MODELOS antes de create_all
from .models import audit as _audit_models
from .models import customer as _customer_models
from .models import invoice as _invoice_models
from .models import offer as _offer_models
from .models import product as _product_models

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Crea tablas faltantes (desarrollo)
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name, version=settings.app_version)

install_idempotency(app)
app.include_router(health.router)
app.include_router(offers.router)
app.include_router(pos_offers.router)
