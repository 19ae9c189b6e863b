"""Trade journal: append entry/exit records and mirror open positions on disk."""

import json
import logging
from pathlib import Path
from typing import Any

from pumpbot.schemas.trading import ClosedTrade, Position

logger = logging.getLogger(__name__)


class TradeJournal:
    def __init__(self, log_dir: str | Path) -> None:
        self._log_dir = Path(log_dir)

    @property
    def index_path(self) -> Path:
        """JSONL index: logs/trades/index.jsonl"""
        return self._log_dir / "index.jsonl"

    @property
    def current_path(self) -> Path:
        """Current open positions: logs/trades/current.json"""
        return self._log_dir / "current.json"

    def _append(self, record: dict[str, Any]) -> None:
        self._log_dir.mkdir(parents=True, exist_ok=True)
        with self.index_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def append_entry(self, position: Position) -> None:
        self._append({
            "type": "entry",
            "tokenId": position.token_id,
            "time": position.opened_at,
            "entryPrice": position.entry_price,
            "amount": position.amount,
        })
        logger.debug("Trade log: entry %s", position.token_id)

    def append_exit(self, trade: ClosedTrade) -> None:
        self._append({
            "type": "exit",
            "tokenId": trade.token_id,
            "time": trade.closed_at,
            "exitPrice": trade.exit_price,
            "pnl": trade.pnl,
            "pnlPct": trade.pnl_pct,
            "reason": trade.reason,
        })
        logger.debug("Trade log: exit %s reason=%s", trade.token_id, trade.reason)

    def save_open_positions(self, positions: list[Position]) -> None:
        self._log_dir.mkdir(parents=True, exist_ok=True)
        payload = {"positions": [p.model_dump() for p in positions]}
        self.current_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def load_open_positions(self) -> list[Position]:
        """Load open positions written by a previous run."""
        path = self.current_path
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            rows = data.get("positions", [])
            return [Position.model_validate(row) for row in rows] if isinstance(rows, list) else []
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning("Trade log: failed to load open positions %s: %s", path, e)
            return []

    def get_trades(self, since: int | None = None) -> list[dict[str, Any]]:
        """Completed trades (an entry followed by an exit) from the index, oldest first.

        A token can be traded more than once; each exit closes the latest entry.
        """
        if not self.index_path.exists():
            return []

        open_entries: dict[str, dict[str, Any]] = {}
        trades: list[dict[str, Any]] = []
        with self.index_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    continue
                token_id = rec.get("tokenId", "")
                if rec.get("type") == "entry":
                    open_entries[token_id] = rec
                elif rec.get("type") == "exit" and token_id in open_entries:
                    entry = open_entries.pop(token_id)
                    if since is not None and rec.get("time", 0) < since:
                        continue
                    trades.append({
                        "tokenId": token_id,
                        "entryTime": entry.get("time"),
                        "entryPrice": entry.get("entryPrice"),
                        "amount": entry.get("amount"),
                        "exitTime": rec.get("time"),
                        "exitPrice": rec.get("exitPrice"),
                        "pnl": rec.get("pnl"),
                        "pnlPct": rec.get("pnlPct"),
                        "reason": rec.get("reason"),
                    })
        return trades
