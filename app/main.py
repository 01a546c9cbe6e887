import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import index
from app.api.v1 import auth
from app.api.v1 import companies
from app.api.v1 import plants
from app.api.v1 import templates
from app.api.v1 import batches
from app.api.v1 import partners
from app.api.v1 import transfers
from app.api.v1 import tokens
from app.api.v1 import transportation


from app.core.config import settings
from app.core.logging import setup_logging

setup_logging()

app = FastAPI(title=settings.app_name)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(companies.router,
                   prefix="/api/v1/companies", tags=["Companies"])
app.include_router(plants.router, prefix="/api/v1/plants", tags=["Plants"])
app.include_router(templates.router,
                   prefix="/api/v1/templates", tags=["Product Templates"])
app.include_router(batches.router, prefix="/api/v1/batches", tags=["Batches"])
app.include_router(partners.router,
                   prefix="/api/v1/partners", tags=["Partners"])
app.include_router(transfers.router,
                   prefix="/api/v1/transfers", tags=["Transfers"])
app.include_router(tokens.router, prefix="/api/v1/tokens", tags=["Tokens"])
app.include_router(transportation.router,
                   prefix="/api/v1/transportation", tags=["Transportation"])

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
