import os

from dotenv import load_dotenv

''' Runtime settings, read once from the environment (and a local .env file) '''

load_dotenv()


def _env_int(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Database
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "volunteer_hub")

# Authentication
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
AUTH_MODE = os.getenv("AUTH_MODE", "jwt").lower()
AUTH_USERINFO_URL = os.getenv("AUTH_USERINFO_URL", "")
TOKEN_EXPIRE_MINUTES = _env_int("TOKEN_EXPIRE_MINUTES", 60 * 24)
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")

# HTTP
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 12)
MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
LOG_FORMAT = os.getenv("LOG_FORMAT", "console")
