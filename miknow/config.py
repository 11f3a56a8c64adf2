"""Configuration for the MiKnow notebook service."""

import os
from dotenv import load_dotenv

load_dotenv()

# Mistral API base URL (override for proxies or local mocks)
MISTRAL_API_BASE = os.getenv("MISTRAL_API_BASE", "https://api.mistral.ai/v1").rstrip("/")

MISTRAL_MODELS_URL = f"{MISTRAL_API_BASE}/models"
MISTRAL_CHAT_URL = f"{MISTRAL_API_BASE}/chat/completions"

# Optional key from the environment, used when none has been saved
MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY")

# Data directory for the JSON storage file (configurable for Docker)
DATA_DIR = os.getenv("DATA_DIR", "data/miknow")
STORAGE_FILE = os.path.join(DATA_DIR, "storage.json")

# Provider requests have no per-call timeout; this is the client-wide default
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))

DEFAULT_MODEL = "mistral-small-latest"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
