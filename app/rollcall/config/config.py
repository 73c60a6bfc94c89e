import os
from typing import Dict, List
from dotenv import load_dotenv

load_dotenv()


def parse_class_table_map(raw: str) -> Dict[str, str]:
    """
    Parses "IT-A:ita,IT-B:itb" into {"IT-A": "ita", "IT-B": "itb"}.
    Entries without a table part map the class to its lowercased name without dashes.
    """
    mapping: Dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        class_identifier, _, table_name = item.partition(":")
        class_identifier = class_identifier.strip()
        table_name = table_name.strip() or class_identifier.lower().replace("-", "")
        mapping[class_identifier] = table_name
    return mapping


class Config:
    """
    Settings read straight from the environment.

    Only the application wiring (main.py, api/dependencies.py) reads this object;
    loaders, committers and gateways get what they need through their constructors.
    """
    # Supabase
    SUPABASE_URL: str = os.environ.get("SUPABASE_URL")
    SUPABASE_ANON_KEY: str = os.environ.get("SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_KEY: str = os.environ.get("SUPABASE_SERVICE_KEY")
    LEDGER_BUCKET: str = os.environ.get("LEDGER_BUCKET", "ledger")

    # Redis
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")

    # JWT and session lifetimes
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    TEACHER_SESSION_TTL_SECONDS: int = int(os.environ.get("TEACHER_SESSION_TTL_SECONDS", 3600))
    REMEMBER_ME_SESSION_TTL_SECONDS: int = int(os.environ.get("REMEMBER_ME_SESSION_TTL_SECONDS", 30 * 24 * 3600))
    MARKING_DRAFT_TTL_SECONDS: int = int(os.environ.get("MARKING_DRAFT_TTL_SECONDS", 6 * 3600))

    # Classes and timetable
    CLASS_TABLE_MAP: Dict[str, str] = parse_class_table_map(os.environ.get("CLASS_TABLE_MAP", "IT-A:ita,IT-B:itb"))
    HOURS_PER_DAY: int = int(os.environ.get("HOURS_PER_DAY", 6))
    DEPARTMENTS: List[str] = [d.strip() for d in os.environ.get("DEPARTMENTS", "IT,CS,EC,MECH,CIVIL,EEE").split(",") if d.strip()]

# Single importable instance for the application wiring
settings = Config()
