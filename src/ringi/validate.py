"""承認チェーンのバリデーション。

最初に見つかった違反だけを理由として返す（短絡評価）。
副作用なしの純粋関数なので、何度・どこから呼んでもよい。
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ringi.chain import ApprovalChain
from ringi.errors import InvalidChain
from ringi.org import normalize_identity

_IDENTITY_RE = re.compile(r"^[^@\s]+@[^@\s]+$")


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""

    def raise_for_status(self) -> None:
        if not self.ok:
            raise InvalidChain(self.reason)


def is_identity(value: str) -> bool:
    return bool(_IDENTITY_RE.match(value or ""))


def _fail(reason: str) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason)


def validate_chain(chain: ApprovalChain) -> ValidationResult:
    steps = chain.steps
    if not steps:
        return _fail("chain is empty")

    last = steps[-1]
    if last.role != chain.anchor_role:
        return _fail(
            f"last step role is {last.role.value}, expected anchor {chain.anchor_role.value}"
        )

    for pos, step in enumerate(steps, start=1):
        if step.level != pos:
            return _fail(f"step {pos} has level {step.level}")

    for step in steps:
        a = step.approver
        for label, value in (
            ("name", a.name),
            ("identity", a.identity),
            ("role", a.role.value if a.role else ""),
            ("department", a.department),
        ):
            if not str(value).strip():
                return _fail(f"level {step.level}: {label} is empty")
        if not is_identity(a.identity):
            return _fail(f"level {step.level}: malformed identity {a.identity!r}")

    seen: set[str] = set()
    for step in steps:
        key = normalize_identity(step.approver.identity)
        if key in seen:
            return _fail(f"level {step.level}: duplicate approver {step.approver.identity}")
        seen.add(key)

    return ValidationResult(ok=True)
