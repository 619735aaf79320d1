"""承認チェーンの作り直し（組織ディレクトリ修正後など）。

既存チェーンを部分修正せず、新しいチェーンを丸ごと作ってから差し替える。
旧チェーンの決裁（approved/rejected）は、先頭から連続して
「同じ level・同じ承認者」が一致する範囲だけ新チェーンへ引き継ぐ。
一致しなくなった以降は pending のまま（順番に承認し直す）。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from ringi.builder import ChainBuilder
from ringi.chain import ApprovalChain, StepStatus
from ringi.org import normalize_identity
from ringi.policy import RequestPolicy

log = logging.getLogger(__name__)


def carry_forward(old: ApprovalChain, new: ApprovalChain) -> ApprovalChain:
    steps = list(new.steps)
    carried = 0
    for i, step in enumerate(steps):
        prev = old.step_at(step.level)
        if prev is None or prev.status == StepStatus.PENDING:
            break
        if normalize_identity(prev.approver.identity) != normalize_identity(step.approver.identity):
            break
        steps[i] = replace(step, status=prev.status, decision=prev.decision)
        carried += 1
        if prev.status == StepStatus.REJECTED:
            break
    if carried:
        log.info("[%s] carried %d decision(s) into rebuilt chain", new.policy, carried)
    return replace(new, steps=tuple(steps))


def rebuild_chain(
    builder: ChainBuilder,
    old: ApprovalChain,
    requester_id: str,
    policy: RequestPolicy,
    metadata: Mapping[str, Any] | None = None,
) -> ApprovalChain:
    """新チェーンを組み立て、旧チェーンの決裁を引き継いだものを返す。"""
    fresh = builder.build(requester_id, policy, metadata)
    return carry_forward(old, fresh)
