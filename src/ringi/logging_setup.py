"""logging の初期化。

- 詳細ログ: `.ringi/logs/ringi.log`
- 運用者向けイベント: `.ringi/events.log`（ringi.events）

`ringi.toml` の `[logging.levels]` でモジュール単位のレベルを上書きできる:

```toml
[logging]
level = "INFO"

[logging.levels]
"ringi.builder" = "DEBUG"   # チェーン組み立ての重複スキップまで出す
"ringi.org" = "WARNING"
```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(*, root: Path, level: str = "INFO", levels: Mapping[str, str] | None = None) -> None:
    # 既に設定済みなら二重設定しない
    if getattr(setup_logging, "_configured", False):
        return

    log_dir = root / ".ringi" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_dir / "ringi.log",
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # ringi 以外（rich/typer の依存など）は warning 以上だけ
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    root_logger.addHandler(handler)

    logging.getLogger("ringi").setLevel(_level(level))
    for name, lv in (levels or {}).items():
        logging.getLogger(name).setLevel(_level(lv))

    setup_logging._configured = True  # type: ignore[attr-defined]
