"""ringi CLI エントリポイント。"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ringi.chain import ApprovalChain
from ringi.config import RingiConfig, load_config
from ringi.display import chain_line, status_mark
from ringi.engine import Engine, load_engine
from ringi.errors import InvalidChain, RingiError
from ringi.logging_setup import setup_logging
from ringi.roles import RequestStatus
from ringi.state_machine import Action, initial_status
from ringi.validate import validate_chain

APP_HELP = "📝 ringi: 組織階層から承認チェーンを組み立てる承認エンジン"

app = typer.Typer(add_completion=False, help=APP_HELP)
console = Console()

ConfigOption = typer.Option(Path("ringi.toml"), "--config", help="設定ファイル (ringi.toml)")


def _engine(config: Path) -> tuple[RingiConfig, Engine]:
    try:
        cfg = load_config(config)
        setup_logging(root=cfg.root, level=cfg.log_level, levels=cfg.log_levels)
        return cfg, load_engine(cfg)
    except (RingiError, OSError) as e:
        console.print(f"❌ {escape(str(e))}", style="red")
        raise typer.Exit(code=1) from e


def _print_chain(chain: ApprovalChain) -> None:
    table = Table(title=f"{chain.policy}{' (fallback)' if chain.fallback else ''}")
    table.add_column("L", justify="right")
    table.add_column("承認者")
    table.add_column("identity")
    table.add_column("ロール")
    table.add_column("部門")
    table.add_column("状態")
    for s in chain.steps:
        table.add_row(
            str(s.level),
            s.approver.name,
            s.approver.identity,
            s.role.display,
            s.approver.department,
            f"{status_mark(s)} {s.status.value}",
        )
    console.print(table)


@app.command()
def chain(
    requester: str = typer.Argument(..., help="申請者のidentity（メール）"),
    request_type: str = typer.Option("cash", "--type", help="リクエスト種別 (cash / it_support / purchase_order)"),
    category: str = typer.Option("", "--category", help="申請カテゴリ (例: mission)"),
    department: str = typer.Option("", "--department", help="申請部門（フォールバック時の部門長解決に使う）"),
    config: Path = ConfigOption,
) -> None:
    """申請者の承認チェーンを表示する。"""
    _, engine = _engine(config)
    try:
        policy = engine.policy(request_type)
        built = engine.builder.build(requester, policy, {"category": category, "department": department})
    except RingiError as e:
        console.print(f"❌ {escape(str(e))}", style="red")
        raise typer.Exit(code=1) from e

    _print_chain(built)
    console.print(f"  {chain_line(built)}", style="dim")
    console.print(f"  status: {initial_status(built).value}", style="cyan")


@app.command()
def org(config: Path = ConfigOption) -> None:
    """組織ディレクトリを表示する。"""
    _, engine = _engine(config)
    graph = engine.directory.graph
    table = Table(title=f"org ({len(graph)})")
    table.add_column("identity")
    table.add_column("名前")
    table.add_column("役職")
    table.add_column("部門")
    table.add_column("上長")
    for e in graph.employees:
        table.add_row(e.identity, e.name, e.title, e.department, e.reports_to or "-")
    console.print(table)


@app.command()
def check(config: Path = ConfigOption) -> None:
    """全社員 × 全リクエスト種別でチェーンを組み、フォールバック件数を出す。"""
    _, engine = _engine(config)
    graph = engine.directory.graph

    invalid = 0
    for policy in engine.policies.policies:
        for e in graph.employees:
            try:
                built = engine.builder.build(e.identity, policy, {"department": e.department})
            except InvalidChain as err:
                reason = err.reason
            else:
                reason = validate_chain(built).reason
            if reason:
                invalid += 1
                console.print(f"  ❌ {policy.name} {e.identity}: {escape(reason)}", style="red")

    counts = engine.fallback.counts
    for name, n in sorted(counts.items()):
        console.print(f"  ⚠️  fallback {name}: {n}", style="yellow")
    if invalid:
        raise typer.Exit(code=1)
    console.print("  ✅ すべてのチェーンが有効です。", style="green")


@app.command()
def simulate(
    requester: str = typer.Argument(..., help="申請者のidentity（メール）"),
    request_type: str = typer.Option("cash", "--type", help="リクエスト種別"),
    category: str = typer.Option("", "--category", help="申請カテゴリ"),
    reject_at: int = typer.Option(0, "--reject-at", help="このレベルで却下する（0なら全承認）"),
    config: Path = ConfigOption,
) -> None:
    """各レベルの承認者になりきって順に承認/却下し、ステータス遷移を表示する。"""
    _, engine = _engine(config)
    try:
        policy = engine.policy(request_type)
        current = engine.builder.build(requester, policy, {"category": category})
        status = initial_status(current)
        console.print(f"  start: {status.value}", style="cyan")
        level = 1
        while not status.is_terminal:
            step = current.step_at(level)
            if step is None:
                break
            action = Action.REJECT if level == reject_at else Action.APPROVE
            result = engine.state_machine.decide(current, level, action, step.approver.identity)
            current, status = result.chain, result.status
            console.print(f"  L{level} {action.value} by {step.approver.name} -> {status.value}")
            level += 1
    except RingiError as e:
        console.print(f"❌ {escape(str(e))}", style="red")
        raise typer.Exit(code=1) from e

    _print_chain(current)
    style = "green" if status == RequestStatus.APPROVED else "red"
    console.print(f"  final: {status.value}", style=style)
