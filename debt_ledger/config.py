"""Runtime settings read from the environment.

Values may also come from a ``.env`` file in the working directory, loaded
with ``python-dotenv``. Variables already set in the environment win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    store_location: str = "ledger.json"  # JSON file path or SQLAlchemy URL
    log_level: str = "INFO"
    log_file: Optional[str] = None
    currency_symbol: str = "R$"
    secret_key: str = "dev-secret-key"


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file, override=False)
    return Settings(
        store_location=os.environ.get("DEBT_LEDGER_STORE") or "ledger.json",
        log_level=os.environ.get("DEBT_LEDGER_LOG_LEVEL") or "INFO",
        log_file=os.environ.get("DEBT_LEDGER_LOG_FILE") or None,
        currency_symbol=os.environ.get("DEBT_LEDGER_CURRENCY") or "R$",
        secret_key=os.environ.get("FLASK_SECRET_KEY") or "dev-secret-key",
    )
