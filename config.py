"""
Application configuration, read once from the environment at import time.
"""

import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "eshop-database")

API_PREFIX = os.getenv("API_URL", "/api/v1").rstrip("/")

SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRE_DAYS = int(os.getenv("TOKEN_EXPIRE_DAYS", "1"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join("public", "uploads"))
UPLOAD_URL_PATH = "/public/uploads"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
