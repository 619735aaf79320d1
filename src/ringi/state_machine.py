"""承認ステートマシン。

状態:
- pending_<role>: 現在のレベルのロールが承認待ち
- approved / rejected: 終端（以降の遷移は受け付けない）

ステータスは保存せず、常に (chain) から導出できる。
decide() は渡されたチェーンを変更せず、新しいチェーンを返す。
同じチェーンへの同時書き込みの直列化は呼び出し側（リクエストストア）の責務。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Protocol

from ringi.chain import ApprovalChain, ApprovalStep, Decision, StepStatus
from ringi.errors import (
    AlreadyDecided,
    ChainConsistencyFault,
    InvalidAction,
    OutOfOrder,
    StepNotFound,
    Unauthorized,
)
from ringi.events import append_event
from ringi.roles import RequestStatus, pending_status_for

log = logging.getLogger(__name__)


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class FaultReporter(Protocol):
    def report(self, fault: ChainConsistencyFault) -> None: ...


class LoggingFaultReporter:
    """整合性エラーを error ログ + events.log に出す。"""

    def __init__(self, event_log_path: Path | None = None) -> None:
        self.event_log_path = event_log_path

    def report(self, fault: ChainConsistencyFault) -> None:
        log.error("%s", fault)
        append_event(self.event_log_path, f"chain_consistency_fault: {fault}")


@dataclass(frozen=True)
class DecisionResult:
    chain: ApprovalChain
    status: RequestStatus
    fault: ChainConsistencyFault | None = None


def initial_status(chain: ApprovalChain) -> RequestStatus:
    first = chain.step_at(1)
    if first is None:
        raise StepNotFound(level=1)
    return pending_status_for(first.role)


def derive_status(chain: ApprovalChain) -> RequestStatus:
    if any(s.status == StepStatus.REJECTED for s in chain.steps):
        return RequestStatus.REJECTED
    step = next_pending_step(chain)
    if step is None:
        if not chain.steps:
            raise StepNotFound(level=1)
        return RequestStatus.APPROVED
    return pending_status_for(step.role)


def next_pending_step(chain: ApprovalChain) -> ApprovalStep | None:
    for s in chain.steps:
        if s.is_pending:
            return s
    return None


def pending_level(chain: ApprovalChain) -> int | None:
    """承認待ちのレベル。終端なら None。"""
    if any(s.status == StepStatus.REJECTED for s in chain.steps):
        return None
    step = next_pending_step(chain)
    return step.level if step else None


def can_decide(chain: ApprovalChain, level: int, actor: str) -> bool:
    """例外を投げない判定版（UIでボタンを出すかどうか等）。"""
    if pending_level(chain) != level:
        return False
    step = chain.step_at(level)
    return step is not None and step.is_pending and step.approver.is_actor(actor)


def pending_for(chains: Iterable[ApprovalChain], actor: str) -> list[ApprovalChain]:
    """actor が今まさに承認すべきチェーンだけを返す。"""
    out: list[ApprovalChain] = []
    for c in chains:
        level = pending_level(c)
        if level is not None and can_decide(c, level, actor):
            out.append(c)
    return out


class ApprovalStateMachine:
    def __init__(self, fault_reporter: FaultReporter | None = None) -> None:
        self.fault_reporter = fault_reporter or LoggingFaultReporter()

    def decide(
        self,
        chain: ApprovalChain,
        current_level: int,
        decision: Action | str,
        actor: str,
        *,
        comments: str = "",
        now: datetime | None = None,
    ) -> DecisionResult:
        try:
            action = Action(decision)
        except ValueError as e:
            raise InvalidAction(level=current_level, action=str(decision)) from e

        step = chain.step_at(current_level)
        if step is None:
            raise StepNotFound(level=current_level)

        overall = derive_status(chain)
        if overall.is_terminal:
            raise AlreadyDecided(level=current_level, status=overall.value)
        if not step.is_pending:
            raise AlreadyDecided(level=current_level, status=step.status.value)
        expected = pending_level(chain)
        if expected != current_level:
            raise OutOfOrder(level=current_level, expected=expected)
        if not step.approver.is_actor(actor):
            raise Unauthorized(level=current_level, actor=actor, expected=step.approver.identity)

        decided = replace(
            step,
            status=StepStatus.APPROVED if action == Action.APPROVE else StepStatus.REJECTED,
            decision=Decision(
                actor=actor,
                decided_at=now or datetime.now(tz=timezone.utc),
                comments=comments,
            ),
        )
        new_chain = chain.with_step(decided)

        if action == Action.REJECT:
            log.info("[%s] level %d rejected by %s", chain.policy, current_level, actor)
            return DecisionResult(chain=new_chain, status=RequestStatus.REJECTED)

        if current_level == chain.last_level:
            log.info("[%s] final level %d approved by %s", chain.policy, current_level, actor)
            return DecisionResult(chain=new_chain, status=RequestStatus.APPROVED)

        nxt = new_chain.step_at(current_level + 1)
        if nxt is None:
            fault = ChainConsistencyFault(
                policy=chain.policy,
                level=current_level + 1,
                detail=f"no step after level {current_level} in a {chain.last_level}-level chain",
            )
            self.fault_reporter.report(fault)
            return DecisionResult(chain=new_chain, status=RequestStatus.APPROVED, fault=fault)

        status = pending_status_for(nxt.role)
        log.info("[%s] level %d approved by %s -> %s", chain.policy, current_level, actor, status.value)
        return DecisionResult(chain=new_chain, status=status)
