"""
config.py
---------
Loads environment variables (and an optional .env file) and exposes
them as typed constants for the Flask app.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Flask ---
SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
DEBUG: bool = _flag("DEBUG", "false")
PORT: int = int(os.getenv("PORT", "5001"))

# --- Database ---
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///address_book.db")

# --- JWT ---
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "jwt-secret-key-change-in-production")
JWT_ACCESS_TOKEN_HOURS: int = int(os.getenv("JWT_ACCESS_TOKEN_HOURS", "24"))
JWT_COOKIE_SECURE: bool = _flag("JWT_COOKIE_SECURE", "false")

# --- CORS ---
CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

# --- Seeding ---
SEED_DEFAULT_DATA: bool = _flag("SEED_DEFAULT_DATA", "true")
SEED_ADMIN_EMAIL: str = os.getenv("SEED_ADMIN_EMAIL", "admin@contactsbook.com")
SEED_ADMIN_PASSWORD: str = os.getenv("SEED_ADMIN_PASSWORD", "Admin@123")
