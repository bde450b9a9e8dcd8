"""Local file log writer."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from ai_futures_trader.audit.models import DecisionLog, OrderLog


class LocalLogWriter:
    """Writes audit logs to daily JSONL files.

    The trail is diagnostic only; nothing reads it back for control flow.
    """

    def __init__(self, log_dir: Path | None = None) -> None:
        self._log_dir = log_dir or Path("logs/audit")
        self._log_dir.mkdir(parents=True, exist_ok=True)

    def _get_daily_file(self, prefix: str, date: datetime | None = None) -> Path:
        """Get log file path for a date (default: today)."""
        date_str = (date or datetime.now()).strftime("%Y%m%d")
        return self._log_dir / f"{prefix}_{date_str}.jsonl"

    def write_decision_log(self, log: DecisionLog) -> None:
        self._append_json(self._get_daily_file("decisions"), log.to_dict())

    def write_order_log(self, log: OrderLog) -> None:
        self._append_json(self._get_daily_file("orders"), log.to_dict())

    def _append_json(self, file_path: Path, data: dict[str, Any]) -> None:
        """Append JSON line to file."""
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")

    def read_decision_logs(self, date: datetime | None = None) -> list[dict[str, Any]]:
        """Read decision entries for a date (default: today)."""
        file_path = self._get_daily_file("decisions", date)
        if not file_path.exists():
            return []

        entries = []
        with open(file_path, encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    entries.append(json.loads(line))
        return entries
