"""エラー分類。

- 回復可能（フォールバックで継続）: NotFound / InvalidChain
- 呼び出し元へ返す: Unauthorized / AlreadyDecided / StepNotFound / OutOfOrder / InvalidAction
- 運用通知が必要: ChainConsistencyFault（raise せず FaultReporter へ渡す）
"""

from __future__ import annotations


class RingiError(Exception):
    """ringi の全エラーの基底。"""


class ConfigError(RingiError):
    """組織/ポリシー/設定ファイルの内容が不正。"""


class NotFound(RingiError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"employee not found: {identity}")
        self.identity = identity


class InvalidChain(RingiError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"invalid approval chain: {reason}")
        self.reason = reason


class DecisionError(RingiError):
    """承認/却下の操作が受け付けられなかった。チェーンは変更されない。"""

    def __init__(self, message: str, *, level: int) -> None:
        super().__init__(message)
        self.level = level


class Unauthorized(DecisionError):
    def __init__(self, *, level: int, actor: str, expected: str) -> None:
        super().__init__(
            f"{actor} is not the approver of level {level} (expected {expected})",
            level=level,
        )
        self.actor = actor
        self.expected = expected


class InvalidAction(DecisionError):
    def __init__(self, *, level: int, action: str) -> None:
        super().__init__(f"unknown decision {action!r} at level {level} (expected approve or reject)", level=level)
        self.action = action


class AlreadyDecided(DecisionError):
    def __init__(self, *, level: int, status: str) -> None:
        super().__init__(f"level {level} is already {status}", level=level)
        self.status = status


class StepNotFound(DecisionError):
    def __init__(self, *, level: int) -> None:
        super().__init__(f"no approval step at level {level}", level=level)


class OutOfOrder(DecisionError):
    def __init__(self, *, level: int, expected: int | None) -> None:
        super().__init__(f"level {level} is not the pending level (pending: {expected})", level=level)
        self.expected = expected


class ChainConsistencyFault(RingiError):
    """次レベルのステップが見つからない等、builder/validator 側の不具合を示す。"""

    def __init__(self, *, policy: str, level: int, detail: str) -> None:
        super().__init__(f"[{policy}] chain consistency fault at level {level}: {detail}")
        self.policy = policy
        self.level = level
        self.detail = detail
