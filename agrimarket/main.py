import logging
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from agrimarket.core.config import settings
from agrimarket.db.init import init_db
from agrimarket.api import admin, analytics, orders, products
from agrimarket.auth.jwt import router as auth_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("agrimarket")

app = FastAPI(
    title="agrimarket",
    description="Backend API for the Agri2Market+ farmer/buyer marketplace",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Initialize database
@app.on_event("startup")
async def startup_event():
    if settings.is_production and settings.JWT_SECRET == "dev-secret-change-me":
        logger.warning("JWT_SECRET is not set; using the development secret")
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    init_db()

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])

# Uploaded product images
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

@app.get("/")
def read_root():
    return {"message": "Welcome to Agri2Market+ API"}
