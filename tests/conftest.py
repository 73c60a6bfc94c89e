# tests/conftest.py
import asyncio
import os
import sys

# Settings are read at import time, so these must be in place before any app module is imported.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-rollcall-tests")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("CLASS_TABLE_MAP", "IT-A:ita,IT-B:itb")
os.environ.setdefault("HOURS_PER_DAY", "6")

# Windows asyncio fix for pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
