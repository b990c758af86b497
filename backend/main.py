import logging

from fastapi import FastAPI

import config
from routes import models, region_edit

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Region Edit", openapi_url=None, docs_url=None, redoc_url=None)

app.include_router(region_edit.router, prefix="/region-edit")
app.include_router(models.router)
