"""Pytest configuration and fixtures for test suite.

This is the root-level conftest.py that provides:
- Python path setup (so crossmatch imports without installation)
- Environment variable defaults, set before crossmatch.config is imported

Database fixtures live in tests/integration/conftest.py
"""
import os
import sys
from pathlib import Path

# Settings are instantiated at import time, so defaults must exist first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "INFO")

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
