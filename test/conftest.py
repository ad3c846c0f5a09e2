from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

TEST_ROOT = Path(__file__).resolve().parent

# Load test/.env first, then fall back to test/.env.example for defaults
load_dotenv(TEST_ROOT / ".env", override=False)
load_dotenv(TEST_ROOT / ".env.example", override=False)

# Use in-memory SQLite before any module creates the global engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
