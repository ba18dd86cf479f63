"""
VinoScan Configuration
Centralized settings for the library
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# OpenAI Model Configuration
OPENAI_MODEL = os.getenv("VINOSCAN_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = 0.0  # Deterministic label reads
OPENAI_MAX_TOKENS = 500

# Image pipeline
MAX_IMAGE_DIMENSION = 800  # Longest side in pixels
JPEG_QUALITY = 70
MAX_UPLOAD_SIZE_MB = 200  # Raw camera files, downscaled right after

# Durable storage
STORAGE_KEY = "vinoscan_cellar"
DATA_DIR = Path(os.getenv("VINOSCAN_DATA_DIR", Path.home() / ".vinoscan"))
_quota = os.getenv("VINOSCAN_STORAGE_QUOTA_BYTES")
STORAGE_QUOTA_BYTES: Optional[int] = int(_quota) if _quota else None

# CSV export
EXPORT_FILENAME = "cellar_inventory.csv"

LOG_LEVEL = os.getenv("VINOSCAN_LOG_LEVEL", "INFO").upper()


def get_api_key() -> Optional[str]:
    """Return the OpenAI API key from the environment, or None when unset."""
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    return api_key or None
