"""承認チェーンのデータ構造。

ステップの承認者は組織ディレクトリのコピー（スナップショット）で持つ。
後から組織が変わっても、進行中のチェーンは書き換わらない。

チェーン/ステップは frozen。変更は dataclasses.replace で新しいオブジェクトを作る。
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from ringi.org import Employee, normalize_identity
from ringi.roles import RoleLabel


class StepStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Approver:
    name: str
    identity: str
    role: RoleLabel
    department: str

    @classmethod
    def from_employee(cls, employee: Employee, role: RoleLabel) -> Approver:
        return cls(
            name=employee.name,
            identity=employee.identity,
            role=role,
            department=employee.department,
        )

    def is_actor(self, actor: str) -> bool:
        return bool(self.identity) and normalize_identity(actor) == normalize_identity(self.identity)


@dataclass(frozen=True)
class Decision:
    actor: str
    decided_at: datetime
    comments: str = ""


@dataclass(frozen=True)
class ApprovalStep:
    level: int
    approver: Approver
    status: StepStatus = StepStatus.PENDING
    decision: Decision | None = None

    @property
    def role(self) -> RoleLabel:
        return self.approver.role

    @property
    def is_pending(self) -> bool:
        return self.status == StepStatus.PENDING


@dataclass(frozen=True)
class ApprovalChain:
    policy: str
    anchor_role: RoleLabel
    steps: tuple[ApprovalStep, ...] = field(default_factory=tuple)
    fallback: bool = False  # FallbackChainProvider が作ったチェーン

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def last_level(self) -> int:
        return len(self.steps)

    def step_at(self, level: int) -> ApprovalStep | None:
        for s in self.steps:
            if s.level == level:
                return s
        return None

    def identities(self) -> list[str]:
        return [s.approver.identity for s in self.steps]

    def with_step(self, step: ApprovalStep) -> ApprovalChain:
        """同じ level のステップを差し替えた新しいチェーンを返す。"""
        steps = tuple(step if s.level == step.level else s for s in self.steps)
        return replace(self, steps=steps)


def chain_from_approvers(
    approvers: list[Approver],
    *,
    policy: str,
    anchor_role: RoleLabel,
    fallback: bool = False,
) -> ApprovalChain:
    """承認者の並びから level 1.. を振ったチェーンを作る。"""
    steps = tuple(ApprovalStep(level=i, approver=a) for i, a in enumerate(approvers, start=1))
    return ApprovalChain(policy=policy, anchor_role=anchor_role, steps=steps, fallback=fallback)


@dataclass(frozen=True)
class ChainSummary:
    total: int
    approved: int
    rejected: int
    pending: int
    progress: int  # %
    current_level: int | None

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.approved == self.total


def summarize(chain: ApprovalChain) -> ChainSummary:
    """進捗サマリー（承認済み数/割合/現在レベル）。"""
    total = len(chain.steps)
    approved = sum(1 for s in chain.steps if s.status == StepStatus.APPROVED)
    rejected = sum(1 for s in chain.steps if s.status == StepStatus.REJECTED)
    pending = sum(1 for s in chain.steps if s.status == StepStatus.PENDING)
    current = None
    if rejected == 0:
        current = next((s.level for s in chain.steps if s.is_pending), None)
    return ChainSummary(
        total=total,
        approved=approved,
        rejected=rejected,
        pending=pending,
        progress=round(approved * 100 / total) if total else 0,
        current_level=current,
    )
