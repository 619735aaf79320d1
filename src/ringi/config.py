"""config: エンジン全体の設定。

設定ファイル: `ringi.toml`（デフォルト）

```toml
[directory]
path = "org.toml"

[policies]
path = "policies.toml"   # なければ [anchors] から標準ポリシーを作る

[anchors]
finance = "ranibell.mambo@example.com"
business_head = "kelvin.eyong@example.com"
it = "marcel.ngong@example.com"
hr = "bruiline.tsitoh@example.com"

[fallback]
department_head = "department.heads@example.com"

[logging]
level = "INFO"

[logging.levels]
"ringi.builder" = "DEBUG"
```

個人のメールアドレスはコードに書かず、この設定で渡す。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from ringi.errors import ConfigError


@dataclass
class AnchorConfig:
    finance: str = ""
    business_head: str = ""
    it: str = ""
    hr: str = ""  # 空なら出張申請の HR 承認を入れない


@dataclass
class FallbackConfig:
    department_head: str = "department.heads@ringi.local"


@dataclass
class RingiConfig:
    root: Path = field(default_factory=lambda: Path("."))
    directory_path: Path = field(default_factory=lambda: Path("org.toml"))
    policies_path: Path = field(default_factory=lambda: Path("policies.toml"))
    anchors: AnchorConfig = field(default_factory=AnchorConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    log_level: str = "INFO"
    log_levels: dict[str, str] = field(default_factory=dict)  # [logging.levels]


def _resolve(base: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else base / p


def load_config(path: Path | None = None) -> RingiConfig:
    if path is None:
        path = Path("ringi.toml")
    base = path.parent
    if not path.exists():
        return RingiConfig(
            root=base,
            directory_path=base / "org.toml",
            policies_path=base / "policies.toml",
        )

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e

    directory = raw.get("directory", {})
    policies = raw.get("policies", {})
    anchors = raw.get("anchors", {})
    fallback = raw.get("fallback", {})
    logging_ = raw.get("logging", {})

    return RingiConfig(
        root=base,
        directory_path=_resolve(base, str(directory.get("path", "org.toml"))),
        policies_path=_resolve(base, str(policies.get("path", "policies.toml"))),
        anchors=AnchorConfig(
            finance=str(anchors.get("finance", "")),
            business_head=str(anchors.get("business_head", "")),
            it=str(anchors.get("it", "")),
            hr=str(anchors.get("hr", "")),
        ),
        fallback=FallbackConfig(
            department_head=str(fallback.get("department_head", "department.heads@ringi.local")),
        ),
        log_level=str(logging_.get("level", "INFO")),
        log_levels={str(k): str(v) for k, v in (logging_.get("levels") or {}).items()},
    )
