import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agrimarket.db")

        # Session tokens
        self.JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
        self.SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "token")

        # Admin bootstrap
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
        self.ADMIN_NAME = os.getenv("ADMIN_NAME", "Agri2Market+ Admin")

        # Product images
        self.UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads/products")
        self.UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads/products")
        self.MAX_IMAGES_PER_PRODUCT = int(os.getenv("MAX_IMAGES_PER_PRODUCT", "6"))
        self.MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(5 * 1024 * 1024)))

        # Unparseable minPrice/maxPrice are ignored instead of rejected
        self.LENIENT_PRICE_FILTERS = _env_bool("LENIENT_PRICE_FILTERS", True)

        self.CORS_ORIGINS = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost,http://localhost:3000").split(",")
            if origin.strip()
        ]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def session_max_age(self) -> int:
        return self.SESSION_TTL_DAYS * 24 * 60 * 60


settings = Settings()
