"""Central configuration loader for the chart advisor."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Project root is the parent of the advisor/ package
PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")


def load_settings() -> dict:
    """Load settings from configs/settings.yaml (empty dict if absent)."""
    settings_path = PROJECT_ROOT / "configs" / "settings.yaml"
    if not settings_path.exists():
        return {}
    with open(settings_path) as f:
        return yaml.safe_load(f) or {}


SETTINGS = load_settings()


# --- API Keys ---
class Keys:
    ANTHROPIC = os.getenv("ANTHROPIC_API_KEY", "")


# --- Paths ---
class Paths:
    ROOT = PROJECT_ROOT
    DATA_CACHE = Path(os.getenv("ADVISOR_CACHE_DIR", PROJECT_ROOT / "data" / "cache"))
