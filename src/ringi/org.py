"""組織ディレクトリ: TOMLから「誰が誰に報告するか」の階層グラフを読み込む。

承認チェーンはこのグラフを上にたどって作る。グラフは読み込み後は変更しない
（再読み込みは OrgDirectory が新しいグラフを丸ごと作って差し替える）。

### 推奨TOML（新形式）

```toml
[[employees]]
identity = "kelvin.eyong@example.com"
name = "Mr. E.T Kelvin"
title = "President / Head of Business"
department = "Executive"
reports_to = ""
hierarchy_level = 5

[[employees]]
identity = "ranibell.mambo@example.com"
name = "Ms. Ranibell Mambo"
title = "Finance Officer"
department = "Business Development & Supply Chain"
reports_to = "kelvin.eyong@example.com"
hierarchy_level = 3
capabilities = ["finance"]
```

### 互換TOML（departments形式）

`[[departments]]` の `head` と `[[departments.members]]` を読み込む。
`reports_to` を省略したメンバーは部門長に報告する扱い。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from ringi.errors import ConfigError, NotFound

log = logging.getLogger(__name__)

CAP_BUYER = "buyer"
CAP_FINANCE = "finance"
CAP_HR = "hr"
CAP_IT = "it"


def normalize_identity(identity: str | None) -> str:
    return (identity or "").strip().lower()


@dataclass(frozen=True)
class Employee:
    """組織ディレクトリの1人分。"""

    identity: str  # メール形式の一意キー
    name: str
    title: str = ""
    department: str = ""
    reports_to: str | None = None  # None = 組織の最上位
    hierarchy_level: int = 0
    capabilities: frozenset[str] = field(default_factory=frozenset)
    is_department_head: bool = False

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


class OrgGraph:
    """社員(ノード)と reports-to(辺)の読み取り専用グラフ。"""

    def __init__(self, employees: list[Employee] | None = None) -> None:
        self._by_id: dict[str, Employee] = {}
        for e in employees or []:
            key = normalize_identity(e.identity)
            if not key:
                continue
            if key in self._by_id:
                log.warning("duplicate employee identity ignored: %s", e.identity)
                continue
            self._by_id[key] = e

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and normalize_identity(identity) in self._by_id

    @property
    def employees(self) -> list[Employee]:
        return list(self._by_id.values())

    def identities(self) -> list[str]:
        return [e.identity for e in self._by_id.values()]

    def find(self, identity: str | None) -> Employee | None:
        return self._by_id.get(normalize_identity(identity))

    def get(self, identity: str) -> Employee:
        """find の厳格版。見つからなければ NotFound。"""
        e = self.find(identity)
        if e is None:
            raise NotFound(identity)
        return e

    def upward_path(self, identity: str) -> list[Employee]:
        """identity の1つ上から最上位まで reports-to をたどる。

        - 最初の reports_to 空 / 既出ノード（循環） / 存在しない上長 で止まる
        - 存在しない上長はエラーにせず、そこまでの部分パスを返す
        - identity 自体が未登録なら空リスト
        """
        current = self.find(identity)
        if current is None:
            return []

        path: list[Employee] = []
        seen = {normalize_identity(current.identity)}
        while current.reports_to:
            boss = self.find(current.reports_to)
            if boss is None:
                log.debug(
                    "reports_to of %s points to unknown %s; path truncated",
                    current.identity,
                    current.reports_to,
                )
                break
            key = normalize_identity(boss.identity)
            if key in seen:
                log.warning("reporting cycle detected at %s", boss.identity)
                break
            seen.add(key)
            path.append(boss)
            current = boss
        return path

    def subordinates_of(self, identity: str) -> list[Employee]:
        """直属の部下を返す（reports_toで判定）。"""
        key = normalize_identity(identity)
        return [e for e in self._by_id.values() if normalize_identity(e.reports_to) == key]

    def department_members(self, department: str) -> list[Employee]:
        d = department.strip().lower()
        return [e for e in self._by_id.values() if e.department.strip().lower() == d]

    def department_head(self, department: str) -> Employee | None:
        """部門長。明示フラグ優先、なければ hierarchy_level 最大（同値はファイル順）。"""
        members = self.department_members(department)
        if not members:
            return None
        for e in members:
            if e.is_department_head:
                return e
        return max(members, key=lambda e: e.hierarchy_level)

    def with_capability(self, capability: str) -> list[Employee]:
        return [e for e in self._by_id.values() if e.can(capability)]


def _text(value: object) -> str:
    return str(value).strip() if value is not None else ""


def _parse_employee(data: dict, *, department: str = "", reports_to: str | None = None, head: bool = False) -> Employee:
    manager = _text(data.get("reports_to", reports_to or ""))
    try:
        level = int(data.get("hierarchy_level", 0) or 0)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"hierarchy_level must be an integer: {data.get('identity')}") from e
    return Employee(
        identity=_text(data.get("identity") or data.get("email")),
        name=_text(data.get("name")),
        title=_text(data.get("title") or data.get("position")),
        department=_text(data.get("department", department)) or department,
        reports_to=manager or None,
        hierarchy_level=level,
        capabilities=frozenset(_text(c).lower() for c in data.get("capabilities", []) or []),
        is_department_head=bool(data.get("department_head", head)),
    )


def parse_org(raw: dict) -> OrgGraph:
    # 新形式: [[employees]]
    if "employees" in raw:
        employees = [_parse_employee(e) for e in raw.get("employees", []) or []]
        # identity必須
        return OrgGraph([e for e in employees if e.identity])

    # 互換形式: departments
    return _parse_org_departments(raw)


def _parse_org_departments(raw: dict) -> OrgGraph:
    employees: list[Employee] = []
    for dept in raw.get("departments", []) or []:
        dept_name = _text(dept.get("name"))
        if not dept_name:
            raise ConfigError("department without name")

        head_data = dept.get("head") or {}
        head = _parse_employee(head_data, department=dept_name, head=True)
        if head.identity:
            employees.append(head)

        for m in dept.get("members", []) or []:
            member = _parse_employee(m, department=dept_name, reports_to=head.identity or None)
            if member.identity:
                employees.append(member)

    return OrgGraph([e for e in employees if e.identity])


def load_org(path: Path) -> OrgGraph:
    """TOMLファイルから組織ディレクトリを読み込む。"""
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e
    org = parse_org(raw)
    log.info("loaded org directory: %s (%d employees)", path, len(org))
    return org


class OrgDirectory:
    """OrgGraph の保持と再読み込み。

    reload() は新しいグラフを最後まで読み込んでから参照を差し替える。
    読み込みに失敗した場合は古いグラフのまま ConfigError を投げる。
    差し替えは属性1つの代入なので、読み手は常に古いか新しいかどちらかの完全なグラフを見る。
    """

    def __init__(self, path: Path, *, graph: OrgGraph | None = None) -> None:
        self.path = path
        self._graph = graph if graph is not None else load_org(path)

    @property
    def graph(self) -> OrgGraph:
        return self._graph

    def swap(self, graph: OrgGraph) -> None:
        """読み込み済みのグラフに差し替える。"""
        self._graph = graph
        log.info("org directory swapped: %s (%d employees)", self.path, len(graph))

    def reload(self) -> OrgGraph:
        fresh = load_org(self.path)
        self.swap(fresh)
        return fresh
