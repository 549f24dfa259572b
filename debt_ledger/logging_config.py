"""Logging setup shared by the ``debt-ledger`` command and the dashboard.

Modules log through ``logging.getLogger(__name__)``; this module only decides
where those records go. Records always reach stderr, so they never mix with
the ledger output that the command prints on stdout. When
``DEBT_LEDGER_LOG_FILE`` is set they are also appended to that file.
"""

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    """Route ledger logging to stderr and, optionally, to ``file_path``.

    An unknown ``level`` name falls back to ``INFO``. Calling this again
    replaces the handlers installed by the previous call.
    """
    resolved = getattr(logging, (level or "INFO").upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if file_path:
        log_file = Path(file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)

    # statement echo from SqlLedgerStore
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
