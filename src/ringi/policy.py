"""リクエスト種別ごとの承認ポリシー。

ポリシーが決めるもの:
- anchor: 必ず最後に来る承認者（ロール + identity）
- conditional: メタデータ条件を満たしたときだけ入る承認者（例: 出張(mission)の現金申請に HR）
- mandatory: 組織をたどって出てこなくても必ず1回入る承認者

### policies.toml

```toml
[[policies]]
name = "cash"

[policies.anchor]
role = "finance"
identity = "ranibell.mambo@example.com"
name = "Ms. Ranibell Mambo"
department = "Business Development & Supply Chain"

[[policies.conditional]]
role = "hr"
identity = "bruiline.tsitoh@example.com"
when = { field = "category", equals = "mission" }

[[policies.mandatory]]
role = "head_of_business"
identity = "kelvin.eyong@example.com"
```
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from ringi.errors import ConfigError
from ringi.roles import RoleLabel, parse_role

POLICY_CASH = "cash"
POLICY_IT_SUPPORT = "it_support"
POLICY_PURCHASE_ORDER = "purchase_order"

Predicate = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class Participant:
    """ポリシーで名指しされた承認者。name/department は組織にいない場合の表示用。"""

    role: RoleLabel
    identity: str
    name: str = ""
    department: str = ""


@dataclass(frozen=True)
class ConditionalInsertion:
    participant: Participant
    predicate: Predicate
    description: str = ""

    def applies(self, metadata: Mapping[str, Any]) -> bool:
        return bool(self.predicate(metadata))


@dataclass(frozen=True)
class RequestPolicy:
    name: str
    anchor: Participant
    conditional_insertions: tuple[ConditionalInsertion, ...] = ()
    mandatory_insertions: tuple[Participant, ...] = ()
    max_org_depth: int | None = None  # 組織パスから採用する最大段数

    @property
    def anchor_role(self) -> RoleLabel:
        return self.anchor.role


def field_equals(name: str, value: Any) -> Predicate:
    expected = str(value).strip().lower()

    def _pred(metadata: Mapping[str, Any]) -> bool:
        return str(metadata.get(name, "")).strip().lower() == expected

    return _pred


def field_in(name: str, values: list[Any]) -> Predicate:
    expected = {str(v).strip().lower() for v in values}

    def _pred(metadata: Mapping[str, Any]) -> bool:
        return str(metadata.get(name, "")).strip().lower() in expected

    return _pred


def compile_predicate(when: Mapping[str, Any]) -> tuple[Predicate, str]:
    """`{field = "category", equals = "mission"}` / `{field = ..., in = [...]}` を関数にする。"""
    name = str(when.get("field", "")).strip()
    if not name:
        raise ConfigError(f"predicate without field: {dict(when)}")
    if "equals" in when:
        return field_equals(name, when["equals"]), f"{name} == {when['equals']}"
    if "in" in when:
        values = list(when["in"] or [])
        return field_in(name, values), f"{name} in {values}"
    raise ConfigError(f"predicate needs 'equals' or 'in': {dict(when)}")


@dataclass
class PolicyStore:
    policies: list[RequestPolicy] = field(default_factory=list)

    def get(self, name: str) -> RequestPolicy | None:
        for p in self.policies:
            if p.name == name:
                return p
        return None

    def names(self) -> list[str]:
        return [p.name for p in self.policies]


def _parse_participant(data: Mapping[str, Any], *, where: str) -> Participant:
    try:
        role = parse_role(str(data.get("role", "")))
    except ValueError as e:
        raise ConfigError(f"{where}: {e}") from e
    identity = str(data.get("identity", "")).strip()
    if not identity:
        raise ConfigError(f"{where}: identity is required")
    return Participant(
        role=role,
        identity=identity,
        name=str(data.get("name", "")),
        department=str(data.get("department", "")),
    )


def parse_policy(data: Mapping[str, Any]) -> RequestPolicy:
    name = str(data.get("name", "")).strip()
    if not name:
        raise ConfigError("policy without name")

    anchor = _parse_participant(data.get("anchor") or {}, where=f"{name}.anchor")

    conditional: list[ConditionalInsertion] = []
    for idx, c in enumerate(data.get("conditional", []) or [], start=1):
        predicate, desc = compile_predicate(c.get("when") or {})
        conditional.append(
            ConditionalInsertion(
                participant=_parse_participant(c, where=f"{name}.conditional[{idx}]"),
                predicate=predicate,
                description=desc,
            )
        )

    mandatory = [
        _parse_participant(m, where=f"{name}.mandatory[{idx}]")
        for idx, m in enumerate(data.get("mandatory", []) or [], start=1)
    ]

    depth = data.get("max_org_depth")
    return RequestPolicy(
        name=name,
        anchor=anchor,
        conditional_insertions=tuple(conditional),
        mandatory_insertions=tuple(mandatory),
        max_org_depth=int(depth) if depth is not None else None,
    )


def load_policies(path: Path) -> PolicyStore:
    """policies.toml を読み込む。ファイルがなければ空。"""
    if not path.exists():
        return PolicyStore()
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e
    return PolicyStore(policies=[parse_policy(p) for p in raw.get("policies", []) or []])


def default_policies(
    *,
    finance: Participant,
    business_head: Participant,
    it: Participant,
    hr: Participant | None = None,
) -> PolicyStore:
    """標準の3種別（現金申請 / ITサポート / 発注書）。

    - cash: 組織パス → (出張なら HR) → Head of Business → Finance Officer
    - it_support: 組織パス → Head of Business → IT Department
    - purchase_order: 組織パス → Head of Business → Finance Officer
    """
    cash_conditional: tuple[ConditionalInsertion, ...] = ()
    if hr is not None:
        cash_conditional = (
            ConditionalInsertion(
                participant=hr,
                predicate=field_equals("category", "mission"),
                description="category == mission",
            ),
        )

    return PolicyStore(
        policies=[
            RequestPolicy(
                name=POLICY_CASH,
                anchor=finance,
                conditional_insertions=cash_conditional,
                mandatory_insertions=(business_head,),
            ),
            RequestPolicy(
                name=POLICY_IT_SUPPORT,
                anchor=it,
                mandatory_insertions=(business_head,),
            ),
            RequestPolicy(
                name=POLICY_PURCHASE_ORDER,
                anchor=finance,
                mandatory_insertions=(business_head,),
            ),
        ]
    )
