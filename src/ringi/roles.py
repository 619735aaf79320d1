"""承認ロールとリクエストステータス。

ロールは閉じた列挙型で持つ。自由記述の役職名から RoleLabel への変換は
`ringi.classify` だけが行い、他のモジュールは列挙型のみを扱う。
"""

from __future__ import annotations

from enum import Enum


class RoleLabel(str, Enum):
    SUPERVISOR = "supervisor"
    DEPARTMENT_HEAD = "departmental_head"
    FINANCE_OFFICER = "finance"
    BUSINESS_HEAD = "head_of_business"
    IT_DEPARTMENT = "it_approval"
    HR = "hr"
    BUYER = "buyer"
    APPROVER = "approver"  # 位置だけで決まった汎用承認者

    @property
    def display(self) -> str:
        return _DISPLAY[self]


_DISPLAY = {
    RoleLabel.SUPERVISOR: "Supervisor",
    RoleLabel.DEPARTMENT_HEAD: "Departmental Head",
    RoleLabel.FINANCE_OFFICER: "Finance Officer",
    RoleLabel.BUSINESS_HEAD: "Head of Business",
    RoleLabel.IT_DEPARTMENT: "IT Department",
    RoleLabel.HR: "HR",
    RoleLabel.BUYER: "Buyer",
    RoleLabel.APPROVER: "Approver",
}


class RequestStatus(str, Enum):
    PENDING_SUPERVISOR = "pending_supervisor"
    PENDING_DEPARTMENT_HEAD = "pending_departmental_head"
    PENDING_FINANCE = "pending_finance"
    PENDING_BUSINESS_HEAD = "pending_head_of_business"
    PENDING_IT = "pending_it_approval"
    PENDING_HR = "pending_hr"
    PENDING_BUYER = "pending_buyer"
    PENDING_APPROVER = "pending_approver"

    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.APPROVED, RequestStatus.REJECTED)


def pending_status_for(role: RoleLabel) -> RequestStatus:
    """ロールが現在の承認待ちになったときのステータス。"""
    return RequestStatus(f"pending_{role.value}")


def parse_role(value: str) -> RoleLabel:
    """設定ファイル上のロール名（value / 列挙名 / 表示名）を RoleLabel にする。"""
    v = (value or "").strip()
    for role in RoleLabel:
        if v.lower() in (role.value, role.name.lower(), role.display.lower()):
            return role
    raise ValueError(f"unknown role: {value!r}")
