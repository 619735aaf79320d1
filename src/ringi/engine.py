"""設定から各コンポーネントを組み立てる。

OrgDirectory → RoleClassifier → FallbackChainProvider → ChainBuilder
ApprovalStateMachine（FaultReporter は events.log へ）
"""

from __future__ import annotations

from dataclasses import dataclass

from ringi.builder import ChainBuilder
from ringi.classify import RoleClassifier
from ringi.config import RingiConfig
from ringi.errors import ConfigError
from ringi.events import append_event, event_log_path
from ringi.fallback import DEFAULT_DEPARTMENT, FallbackChainProvider
from ringi.org import OrgDirectory, OrgGraph, load_org
from ringi.policy import Participant, PolicyStore, RequestPolicy, default_policies, load_policies
from ringi.roles import RoleLabel
from ringi.state_machine import ApprovalStateMachine, LoggingFaultReporter


def _participant(org: OrgGraph, role: RoleLabel, identity: str) -> Participant:
    e = org.find(identity)
    return Participant(
        role=role,
        identity=e.identity if e else identity,
        name=e.name if e else "",
        department=e.department if e else "",
    )


def policies_from_config(cfg: RingiConfig, org: OrgGraph) -> PolicyStore:
    """policies.toml があればそれを、なければ [anchors] から標準ポリシーを作る。"""
    store = load_policies(cfg.policies_path)
    if store.policies:
        return store

    a = cfg.anchors
    missing = [k for k in ("finance", "business_head", "it") if not getattr(a, k)]
    if missing:
        raise ConfigError(f"no policies file and anchors missing: {', '.join(missing)}")
    return default_policies(
        finance=_participant(org, RoleLabel.FINANCE_OFFICER, a.finance),
        business_head=_participant(org, RoleLabel.BUSINESS_HEAD, a.business_head),
        it=_participant(org, RoleLabel.IT_DEPARTMENT, a.it),
        hr=_participant(org, RoleLabel.HR, a.hr) if a.hr else None,
    )


def classifier_for(policies: PolicyStore) -> RoleClassifier:
    """アンカー/必須承認者は、役職名より名指しのロールを優先する。

    条件付き承認者（HR など）は組織上の役職で分類する（部門長を兼ねることがあるため）。
    """
    overrides: dict[str, RoleLabel] = {}
    for p in policies.policies:
        for n in [p.anchor, *p.mandatory_insertions]:
            overrides.setdefault(n.identity, n.role)
    return RoleClassifier(overrides)


@dataclass
class Engine:
    config: RingiConfig
    directory: OrgDirectory
    policies: PolicyStore
    builder: ChainBuilder
    fallback: FallbackChainProvider
    state_machine: ApprovalStateMachine

    def policy(self, name: str) -> RequestPolicy:
        p = self.policies.get(name)
        if p is None:
            raise ConfigError(f"unknown request type: {name} (known: {', '.join(self.policies.names())})")
        return p

    def reload(self) -> OrgGraph:
        """組織ディレクトリを読み直し、ポリシー/分類器/builder/fallback を作り直す。

        すべて組み立ててから差し替える。途中で ConfigError になったら何も変わらない。
        """
        org = load_org(self.directory.path)
        policies = policies_from_config(self.config, org)
        classifier = classifier_for(policies)

        self.directory.swap(org)
        self.policies = policies
        self.fallback.org = org
        self.builder = ChainBuilder(org, classifier=classifier, fallback=self.fallback)
        append_event(self.fallback.event_log_path, f"org_reloaded: {self.directory.path} ({len(org)} employees)")
        return org


def load_engine(cfg: RingiConfig) -> Engine:
    directory = OrgDirectory(cfg.directory_path)
    org = directory.graph
    policies = policies_from_config(cfg, org)
    events = event_log_path(cfg.root)

    fallback = FallbackChainProvider(
        org,
        department_head=Participant(
            role=RoleLabel.DEPARTMENT_HEAD,
            identity=cfg.fallback.department_head,
            name="Department Head",
            department=DEFAULT_DEPARTMENT,
        ),
        event_log_path=events,
    )
    builder = ChainBuilder(org, classifier=classifier_for(policies), fallback=fallback)
    return Engine(
        config=cfg,
        directory=directory,
        policies=policies,
        builder=builder,
        fallback=fallback,
        state_machine=ApprovalStateMachine(LoggingFaultReporter(events)),
    )
