"""承認チェーンの組み立て。

手順:
1. 申請者から組織を上にたどる（見つからなければフォールバック）
2. アンカーの identity をパスから外す（最後に付け直すため）
3. 各ステップをロール分類し、level を 1 から振る（identity 重複はスキップ）
4. 条件付き承認者（メタデータ条件を満たすものだけ）
5. 必須承認者（まだいなければ）
6. アンカーを最後に必ず追加
7. バリデーション。不正ならログを残してフォールバック

アンカーは「既にいればスキップ」ではなく「外してから末尾に付け直す」。
組織上の位置に関係なく、アンカーが必ず最後になる。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ringi.chain import ApprovalChain, Approver, chain_from_approvers
from ringi.classify import RoleClassifier
from ringi.display import chain_line
from ringi.fallback import DEFAULT_DEPARTMENT, FallbackChainProvider
from ringi.org import OrgGraph, normalize_identity
from ringi.policy import Participant, RequestPolicy
from ringi.validate import validate_chain

log = logging.getLogger(__name__)


class ChainBuilder:
    def __init__(
        self,
        org: OrgGraph,
        *,
        classifier: RoleClassifier | None = None,
        fallback: FallbackChainProvider | None = None,
    ) -> None:
        self.org = org
        self.classifier = classifier or RoleClassifier()
        self.fallback = fallback or FallbackChainProvider(org)

    def _participant(self, p: Participant) -> Approver:
        """ポリシーで名指しされた承認者。組織にいればその情報をコピーする。"""
        e = self.org.find(p.identity)
        if e is None:
            return Approver(
                name=p.name or p.role.display,
                identity=p.identity,
                role=p.role,
                department=p.department or DEFAULT_DEPARTMENT,
            )
        return Approver(
            name=e.name or p.name,
            identity=e.identity,
            role=p.role,
            department=e.department or p.department or DEFAULT_DEPARTMENT,
        )

    def build(
        self,
        requester_id: str,
        policy: RequestPolicy,
        metadata: Mapping[str, Any] | None = None,
    ) -> ApprovalChain:
        metadata = metadata or {}

        path = self.org.upward_path(requester_id)
        if not path:
            requester = self.org.find(requester_id)
            reason = "requester not found" if requester is None else "requester has no manager"
            log.warning("[%s] %s: %s", policy.name, reason, requester_id)
            return self.fallback.fallback(policy, metadata, reason=f"{reason}: {requester_id}")

        anchor_key = normalize_identity(policy.anchor.identity)
        path = [e for e in path if normalize_identity(e.identity) != anchor_key]
        if policy.max_org_depth is not None:
            path = path[: policy.max_org_depth]

        approvers: list[Approver] = []
        seen = {normalize_identity(requester_id), anchor_key}

        def _add(a: Approver) -> None:
            key = normalize_identity(a.identity)
            if key in seen:
                log.debug("[%s] skip duplicate approver: %s", policy.name, a.identity)
                return
            seen.add(key)
            approvers.append(a)

        for e in path:
            role = self.classifier.classify(e, len(approvers) + 1)
            _add(Approver.from_employee(e, role))

        for c in policy.conditional_insertions:
            if c.applies(metadata):
                _add(self._participant(c.participant))

        for m in policy.mandatory_insertions:
            _add(self._participant(m))

        approvers.append(self._participant(policy.anchor))

        chain = chain_from_approvers(approvers, policy=policy.name, anchor_role=policy.anchor_role)
        result = validate_chain(chain)
        if not result.ok:
            log.error("[%s] invalid chain for %s: %s", policy.name, requester_id, result.reason)
            return self.fallback.fallback(policy, metadata, reason=f"invalid chain: {result.reason}")

        log.info("[%s] chain for %s: %s", policy.name, requester_id, chain_line(chain))
        return chain
