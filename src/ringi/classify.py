"""役職名 → 承認ロールの分類。

判定順（最初に一致したものを採用）:
1. identity の明示指定（アンカー承認者など。役職名があいまいでも必ずこれ）
2. 役職名キーワード（大文字小文字を区別しない部分一致）
3. チェーン上の位置（1 → Supervisor, 2 → DepartmentHead, 3以上 → Approver）
"""

from __future__ import annotations

from collections.abc import Mapping

from ringi.org import Employee, normalize_identity
from ringi.roles import RoleLabel

# 上から順に評価する
_TITLE_KEYWORDS: list[tuple[tuple[str, ...], RoleLabel]] = [
    (("finance",), RoleLabel.FINANCE_OFFICER),
    (("president",), RoleLabel.BUSINESS_HEAD),
    (("head", "director"), RoleLabel.DEPARTMENT_HEAD),
    (("supervisor", "manager", "coordinator"), RoleLabel.SUPERVISOR),
]


def classify_title(title: str) -> RoleLabel | None:
    t = (title or "").strip().lower()
    if not t:
        return None
    if t == "head of business":
        return RoleLabel.BUSINESS_HEAD
    for words, role in _TITLE_KEYWORDS:
        if any(w in t for w in words):
            return role
    return None


def positional_role(level_hint: int) -> RoleLabel:
    if level_hint <= 1:
        return RoleLabel.SUPERVISOR
    if level_hint == 2:
        return RoleLabel.DEPARTMENT_HEAD
    return RoleLabel.APPROVER


class RoleClassifier:
    def __init__(self, overrides: Mapping[str, RoleLabel] | None = None) -> None:
        self._overrides = {normalize_identity(k): v for k, v in (overrides or {}).items()}

    def classify(self, employee: Employee, level_hint: int) -> RoleLabel:
        role = self._overrides.get(normalize_identity(employee.identity))
        if role is not None:
            return role
        role = classify_title(employee.title)
        if role is not None:
            return role
        return positional_role(level_hint)
