"""運用者向けイベントログ（`.ringi/events.log`）。

フォールバック利用・整合性エラー・組織の再読み込みなど、
データ不備に気づくべき出来事を1行ずつ追記する。
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

log = logging.getLogger(__name__)


def event_log_path(root: Path) -> Path:
    return root / ".ringi" / "events.log"


def append_event(path: Path | None, msg: str) -> None:
    """Append one timestamped line. Best-effort: a write failure is only logged."""
    if path is None:
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        ts = time.strftime("%Y-%m-%d %H:%M:%S")
        with path.open("a", encoding="utf-8") as f:
            f.write(f"[{ts}] {msg}\n")
    except OSError as e:
        log.warning("could not write event log %s: %s", path, e)
