"""Environment configuration."""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

ENV = os.getenv("ENV")
ENV_IS_PROD = ENV == "prod"

COMMIT_HASH = os.getenv("COMMIT_HASH")
if not COMMIT_HASH and ENV_IS_PROD:
    raise ValueError("COMMIT_HASH is required for production environments")

APP_ADDR = os.getenv("HOST", "0.0.0.0")
APP_PORT = int(os.getenv("PORT", "8000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    if ENV_IS_PROD:
        raise ValueError("JWT_SECRET is required for production environments")
    JWT_SECRET = "ngurra-dev-secret"
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

MESSAGES_PAGE_LIMIT = int(os.getenv("MESSAGES_PAGE_LIMIT", "50"))
if not 1 <= MESSAGES_PAGE_LIMIT <= 200:
    raise ValueError("MESSAGES_PAGE_LIMIT must be between 1 and 200")
