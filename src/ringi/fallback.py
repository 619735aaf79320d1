"""フォールバック承認チェーン。

組織ディレクトリで申請者が見つからない/組み立てたチェーンが不正、のときだけ使う。
正規ルートではないので、使うたびに件数を数えて warning + events.log に残す
（ディレクトリ登録漏れに運用者が気づけるように）。

テンプレート（anchor はポリシーから）:
- cash / purchase_order: Departmental Head → Head of Business → Finance Officer
- it_support: Departmental Head → Head of Business → IT Department
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ringi.chain import ApprovalChain, Approver, chain_from_approvers
from ringi.events import append_event
from ringi.org import OrgGraph, normalize_identity
from ringi.policy import (
    POLICY_CASH,
    POLICY_IT_SUPPORT,
    POLICY_PURCHASE_ORDER,
    Participant,
    RequestPolicy,
)
from ringi.roles import RoleLabel
from ringi.validate import is_identity, validate_chain

log = logging.getLogger(__name__)

_TEMPLATES: dict[str, list[RoleLabel]] = {
    POLICY_CASH: [RoleLabel.DEPARTMENT_HEAD, RoleLabel.BUSINESS_HEAD],
    POLICY_IT_SUPPORT: [RoleLabel.DEPARTMENT_HEAD, RoleLabel.BUSINESS_HEAD],
    POLICY_PURCHASE_ORDER: [RoleLabel.DEPARTMENT_HEAD, RoleLabel.BUSINESS_HEAD],
}
_DEFAULT_TEMPLATE = [RoleLabel.DEPARTMENT_HEAD]

DEFAULT_DEPARTMENT = "General"

DEFAULT_DEPARTMENT_HEAD = Participant(
    role=RoleLabel.DEPARTMENT_HEAD,
    identity="department.heads@ringi.local",
    name="Department Head",
    department=DEFAULT_DEPARTMENT,
)


def _approver(p: Participant) -> Approver:
    return Approver(
        name=p.name or p.role.display,
        identity=p.identity,
        role=p.role,
        department=p.department or DEFAULT_DEPARTMENT,
    )


def _usable(a: Approver) -> bool:
    """組織ディレクトリ由来の承認者がチェーンの不変条件を満たすか。"""
    return bool(a.name.strip()) and bool(a.department.strip()) and is_identity(a.identity)


class FallbackChainProvider:
    def __init__(
        self,
        org: OrgGraph | None = None,
        *,
        department_head: Participant = DEFAULT_DEPARTMENT_HEAD,
        event_log_path: Path | None = None,
    ) -> None:
        self.org = org
        self.department_head = department_head
        self.event_log_path = event_log_path
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    @property
    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def _resolve(self, role: RoleLabel, policy: RequestPolicy, metadata: Mapping[str, Any]) -> Approver | None:
        if role == RoleLabel.DEPARTMENT_HEAD:
            department = str(metadata.get("department", "") or "")
            if self.org is not None and department:
                head = self.org.department_head(department)
                if head is not None:
                    a = Approver.from_employee(head, role)
                    if _usable(a):
                        return a
                    log.warning("department head of %s is unusable: %r", department, head.identity)
            return _approver(self.department_head)

        named = [policy.anchor, *policy.mandatory_insertions]
        named += [c.participant for c in policy.conditional_insertions]
        for p in named:
            if p.role == role:
                return self._from_org(p)
        return None

    def _from_org(self, p: Participant) -> Approver:
        if self.org is not None:
            e = self.org.find(p.identity)
            if e is not None:
                a = Approver(
                    name=e.name or p.name or p.role.display,
                    identity=e.identity,
                    role=p.role,
                    department=e.department or p.department or DEFAULT_DEPARTMENT,
                )
                if _usable(a):
                    return a
                log.warning("directory entry for %s is unusable; using policy data", p.identity)
        return _approver(p)

    def fallback(
        self,
        policy: RequestPolicy,
        metadata: Mapping[str, Any] | None = None,
        *,
        reason: str = "",
    ) -> ApprovalChain:
        metadata = metadata or {}
        with self._lock:
            self._counts[policy.name] += 1
            count = self._counts[policy.name]

        log.warning("using fallback approval chain for %s (%s)", policy.name, reason or "no reason")
        append_event(
            self.event_log_path,
            f"fallback_chain: policy={policy.name} count={count} reason={reason or '-'}",
        )

        approvers: list[Approver] = []
        for role in _TEMPLATES.get(policy.name, _DEFAULT_TEMPLATE):
            a = self._resolve(role, policy, metadata)
            if a is not None:
                approvers.append(a)

        for c in policy.conditional_insertions:
            if c.applies(metadata):
                approvers.append(self._from_org(c.participant))

        anchor = self._from_org(policy.anchor)
        anchor_key = normalize_identity(anchor.identity)

        unique: list[Approver] = []
        seen = {anchor_key}
        for a in approvers:
            key = normalize_identity(a.identity)
            if key in seen:
                continue
            seen.add(key)
            unique.append(a)
        unique.append(anchor)

        chain = chain_from_approvers(
            unique,
            policy=policy.name,
            anchor_role=policy.anchor_role,
            fallback=True,
        )
        result = validate_chain(chain)
        if not result.ok:
            # ポリシー設定そのものが壊れている。運用者が直すまで渡さない
            log.error("[%s] fallback chain is invalid: %s", policy.name, result.reason)
            append_event(self.event_log_path, f"fallback_chain_invalid: policy={policy.name} reason={result.reason}")
            result.raise_for_status()
        return chain
