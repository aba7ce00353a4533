import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boekhouding.api import assets, invoices, vat_configuration, vat_declaration
from boekhouding.db.database import init_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Boekhouding BTW API",
    description="BTW-aangifte (Dutch VAT return) engine and asset depreciation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(invoices.router, prefix="/api/invoices", tags=["invoices"])
app.include_router(vat_declaration.router, prefix="/api/vat-declaration", tags=["vat-declaration"])
app.include_router(
    vat_configuration.router, prefix="/api/vat-configuration", tags=["vat-configuration"]
)
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])


@app.get("/health")
def health_check():
    return {"status": "ok", "version": "0.1.0"}
