"""表示用の補助（ログ/CLI）。"""

from __future__ import annotations

from ringi.chain import ApprovalChain, ApprovalStep, StepStatus

_STATUS_MARK = {
    StepStatus.PENDING: "⏳",
    StepStatus.APPROVED: "✅",
    StepStatus.REJECTED: "❌",
}


def step_label(step: ApprovalStep) -> str:
    return f"L{step.level}: {step.approver.name} ({step.role.display})"


def chain_line(chain: ApprovalChain) -> str:
    """`L1: 名前 (ロール) → L2: ...` 形式の1行サマリー。"""
    if not chain.steps:
        return "(empty chain)"
    return " → ".join(step_label(s) for s in chain.steps)


def status_mark(step: ApprovalStep) -> str:
    return _STATUS_MARK.get(step.status, "?")
