"""承認ステートマシンのテスト。"""

from datetime import datetime, timezone

import pytest

from ringi.chain import ApprovalChain, ApprovalStep, Approver, StepStatus, chain_from_approvers, summarize
from ringi.errors import (
    AlreadyDecided,
    ChainConsistencyFault,
    InvalidAction,
    OutOfOrder,
    RingiError,
    StepNotFound,
    Unauthorized,
)
from ringi.roles import RequestStatus, RoleLabel
from ringi.state_machine import (
    Action,
    ApprovalStateMachine,
    LoggingFaultReporter,
    can_decide,
    derive_status,
    initial_status,
    next_pending_step,
    pending_for,
    pending_level,
)

SUP = "sup@example.com"
DH = "dh@example.com"
BH = "bh@example.com"
FIN = "fin@example.com"


class _RecordingReporter:
    def __init__(self) -> None:
        self.faults: list[ChainConsistencyFault] = []

    def report(self, fault: ChainConsistencyFault) -> None:
        self.faults.append(fault)


def _a(identity: str, role: RoleLabel) -> Approver:
    return Approver(name=identity.split("@")[0], identity=identity, role=role, department="Ops")


def _four() -> ApprovalChain:
    return chain_from_approvers(
        [
            _a(SUP, RoleLabel.SUPERVISOR),
            _a(DH, RoleLabel.DEPARTMENT_HEAD),
            _a(BH, RoleLabel.BUSINESS_HEAD),
            _a(FIN, RoleLabel.FINANCE_OFFICER),
        ],
        policy="cash",
        anchor_role=RoleLabel.FINANCE_OFFICER,
    )


def _sm() -> ApprovalStateMachine:
    return ApprovalStateMachine(fault_reporter=_RecordingReporter())


def test_initial_status_is_first_role() -> None:
    chain = _four()
    assert initial_status(chain) == RequestStatus.PENDING_SUPERVISOR
    assert derive_status(chain) == RequestStatus.PENDING_SUPERVISOR
    assert pending_level(chain) == 1


def test_initial_status_of_empty_chain() -> None:
    empty = ApprovalChain(policy="cash", anchor_role=RoleLabel.FINANCE_OFFICER)
    with pytest.raises(StepNotFound):
        initial_status(empty)
    with pytest.raises(StepNotFound):
        derive_status(empty)


def test_approve_advances_to_next_role() -> None:
    sm = _sm()
    chain = _four()
    r1 = sm.decide(chain, 1, Action.APPROVE, SUP)
    r2 = sm.decide(r1.chain, 2, "approve", DH, comments="ok")

    assert r2.status == RequestStatus.PENDING_BUSINESS_HEAD
    assert r2.fault is None
    step = r2.chain.step_at(2)
    assert step is not None
    assert step.status == StepStatus.APPROVED
    assert step.decision is not None
    assert step.decision.actor == DH
    assert step.decision.comments == "ok"
    assert step.decision.decided_at.tzinfo is not None
    assert r2.chain.step_at(1) == r1.chain.step_at(1)
    assert r2.chain.step_at(3) == chain.step_at(3)
    assert r2.chain.step_at(4) == chain.step_at(4)
    # 元のチェーンは変わらない
    assert chain.step_at(1).status == StepStatus.PENDING
    assert r1.chain.step_at(2).status == StepStatus.PENDING


def test_actor_match_is_case_insensitive() -> None:
    r = _sm().decide(_four(), 1, Action.APPROVE, SUP.upper())
    assert r.status == RequestStatus.PENDING_DEPARTMENT_HEAD


def test_final_approval() -> None:
    sm = _sm()
    chain = _four()
    for level, actor in enumerate([SUP, DH, BH], start=1):
        chain = sm.decide(chain, level, Action.APPROVE, actor).chain
    assert derive_status(chain) == RequestStatus.PENDING_FINANCE

    now = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    result = sm.decide(chain, 4, Action.APPROVE, FIN, now=now)
    assert result.status == RequestStatus.APPROVED
    assert result.chain.step_at(4).decision.decided_at == now
    assert derive_status(result.chain) == RequestStatus.APPROVED
    assert pending_level(result.chain) is None
    assert summarize(result.chain).is_complete


def test_reject_is_terminal_and_later_levels_stay_pending() -> None:
    sm = _sm()
    chain = sm.decide(_four(), 1, Action.APPROVE, SUP).chain
    result = sm.decide(chain, 2, Action.REJECT, DH, comments="budget")

    assert result.status == RequestStatus.REJECTED
    assert result.chain.step_at(2).status == StepStatus.REJECTED
    assert result.chain.step_at(3).status == StepStatus.PENDING
    assert result.chain.step_at(4).status == StepStatus.PENDING
    assert derive_status(result.chain) == RequestStatus.REJECTED
    assert pending_level(result.chain) is None

    with pytest.raises(AlreadyDecided) as exc:
        sm.decide(result.chain, 3, Action.APPROVE, BH)
    assert exc.value.status == "rejected"


def test_deciding_twice_is_rejected() -> None:
    sm = _sm()
    first = sm.decide(_four(), 1, Action.APPROVE, SUP)
    snapshot = first.chain
    for action in (Action.APPROVE, Action.APPROVE, Action.REJECT):
        with pytest.raises(AlreadyDecided) as exc:
            sm.decide(first.chain, 1, action, SUP)
        assert exc.value.level == 1
        assert exc.value.status == "approved"
    # 何度呼んでも進まない
    assert first.chain == snapshot
    assert first.chain.step_at(1).decision == snapshot.step_at(1).decision
    assert derive_status(first.chain) == RequestStatus.PENDING_DEPARTMENT_HEAD
    assert pending_level(first.chain) == 2


def test_unauthorized_actor() -> None:
    chain = _four()
    with pytest.raises(Unauthorized) as exc:
        _sm().decide(chain, 1, Action.APPROVE, DH)
    assert exc.value.actor == DH
    assert exc.value.expected == SUP
    assert chain.step_at(1).status == StepStatus.PENDING


def test_out_of_order() -> None:
    with pytest.raises(OutOfOrder) as exc:
        _sm().decide(_four(), 3, Action.APPROVE, BH)
    assert exc.value.expected == 1


def test_step_not_found() -> None:
    with pytest.raises(StepNotFound):
        _sm().decide(_four(), 9, Action.APPROVE, SUP)


def test_unknown_action() -> None:
    chain = _four()
    with pytest.raises(InvalidAction) as exc:
        _sm().decide(chain, 1, "escalate", SUP)
    assert isinstance(exc.value, RingiError)
    assert exc.value.action == "escalate"
    assert exc.value.level == 1
    assert chain.step_at(1).status == StepStatus.PENDING


def test_missing_next_step_reports_fault() -> None:
    reporter = _RecordingReporter()
    sm = ApprovalStateMachine(fault_reporter=reporter)
    chain = ApprovalChain(
        policy="cash",
        anchor_role=RoleLabel.FINANCE_OFFICER,
        steps=(
            ApprovalStep(level=1, approver=_a(SUP, RoleLabel.SUPERVISOR)),
            ApprovalStep(level=3, approver=_a(FIN, RoleLabel.FINANCE_OFFICER)),
        ),
    )
    result = sm.decide(chain, 1, Action.APPROVE, SUP)

    assert result.status == RequestStatus.APPROVED
    assert result.fault is not None
    assert result.fault.level == 2
    assert reporter.faults == [result.fault]


def test_logging_fault_reporter_writes_event(tmp_path) -> None:
    events = tmp_path / "events.log"
    LoggingFaultReporter(events).report(ChainConsistencyFault(policy="cash", level=2, detail="gap"))
    text = events.read_text(encoding="utf-8")
    assert "chain_consistency_fault:" in text
    assert "gap" in text


def test_helpers_follow_progress() -> None:
    sm = _sm()
    chain = _four()
    assert next_pending_step(chain).approver.identity == SUP
    assert can_decide(chain, 1, SUP)
    assert not can_decide(chain, 1, DH)
    assert not can_decide(chain, 2, DH)

    chain = sm.decide(chain, 1, Action.APPROVE, SUP).chain
    assert can_decide(chain, 2, DH)
    assert not can_decide(chain, 1, SUP)

    other = _four()
    assert pending_for([chain, other], DH) == [chain]
    assert pending_for([chain, other], SUP) == [other]
    assert pending_for([chain, other], "nobody@example.com") == []


def test_summarize() -> None:
    sm = _sm()
    chain = sm.decide(_four(), 1, Action.APPROVE, SUP).chain
    s = summarize(chain)
    assert (s.total, s.approved, s.rejected, s.pending) == (4, 1, 0, 3)
    assert s.progress == 25
    assert s.current_level == 2
    assert not s.is_complete

    rejected = sm.decide(chain, 2, Action.REJECT, DH).chain
    s = summarize(rejected)
    assert s.rejected == 1
    assert s.current_level is None
