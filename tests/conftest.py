from __future__ import annotations

from pathlib import Path

import pytest

from ringi.builder import ChainBuilder
from ringi.engine import classifier_for
from ringi.fallback import FallbackChainProvider
from ringi.org import OrgGraph, load_org
from ringi.policy import Participant, PolicyStore, default_policies
from ringi.roles import RoleLabel

KELVIN = "kelvin.eyong@example.com"
DIDIER = "didier.oyong@example.com"
PASCAL = "pascal.assam@example.com"
JOSEPH = "joseph.tayou@example.com"
BORIS = "boris.kamgang@example.com"
RANIBELL = "ranibell.mambo@example.com"
LUKONG = "lukong.lambert@example.com"
BRUILINE = "bruiline.tsitoh@example.com"
CARMEL = "carmel.dafny@example.com"
MARCEL = "marcel.ngong@example.com"
TEMP = "temp.worker@example.com"
CONTRACT_LEAD = "contract.lead@example.com"

ORG_TOML = f"""
[[employees]]
identity = "{KELVIN}"
name = "Mr. E.T Kelvin"
title = "President / Head of Business"
department = "Executive"
reports_to = ""
hierarchy_level = 5

[[employees]]
identity = "{DIDIER}"
name = "Mr. Didier Oyong"
title = "Technical Director"
department = "Technical"
reports_to = "{KELVIN}"
hierarchy_level = 4
department_head = true

[[employees]]
identity = "{PASCAL}"
name = "Mr. Pascal Assam"
title = "Operations Manager"
department = "Technical"
reports_to = "{DIDIER}"
hierarchy_level = 3

[[employees]]
identity = "{JOSEPH}"
name = "Mr. Joseph Tayou"
title = "Site Supervisor"
department = "Technical"
reports_to = "{PASCAL}"
hierarchy_level = 2

[[employees]]
identity = "{BORIS}"
name = "Mr. Boris Kamgang"
title = "Field Technician"
department = "Technical"
reports_to = "{JOSEPH}"
hierarchy_level = 1

[[employees]]
identity = "{LUKONG}"
name = "Mr. Lukong Lambert"
title = "Supply Chain Coordinator"
department = "Business Development & Supply Chain"
reports_to = "{KELVIN}"
hierarchy_level = 3
capabilities = ["buyer"]

[[employees]]
identity = "{RANIBELL}"
name = "Ms. Ranibell Mambo"
title = "Finance Officer"
department = "Business Development & Supply Chain"
reports_to = "{KELVIN}"
hierarchy_level = 3
capabilities = ["finance"]

[[employees]]
identity = "{BRUILINE}"
name = "Mrs. Bruiline Tsitoh"
title = "HR & Admin Head"
department = "HR & Admin"
reports_to = "{KELVIN}"
hierarchy_level = 4
capabilities = ["hr"]

[[employees]]
identity = "{CARMEL}"
name = "Ms. Carmel Dafny"
title = "HR Assistant"
department = "HR & Admin"
reports_to = "{BRUILINE}"
hierarchy_level = 2

[[employees]]
identity = "{MARCEL}"
name = "Marcel Ngong"
title = "IT Staff"
department = "IT"
reports_to = "{KELVIN}"
hierarchy_level = 3
capabilities = ["it"]

[[employees]]
identity = "{CONTRACT_LEAD}"
name = "Contract Lead"
title = "Contract Lead"
department = "Technical"
reports_to = "gone@example.com"
hierarchy_level = 2

[[employees]]
identity = "{TEMP}"
name = "Temp Worker"
title = "Field Technician"
department = "Technical"
reports_to = "{CONTRACT_LEAD}"
hierarchy_level = 1
"""


@pytest.fixture()
def org_path(tmp_path: Path) -> Path:
    p = tmp_path / "org.toml"
    p.write_text(ORG_TOML, encoding="utf-8")
    return p


@pytest.fixture()
def org(org_path: Path) -> OrgGraph:
    return load_org(org_path)


@pytest.fixture()
def policies() -> PolicyStore:
    return default_policies(
        finance=Participant(RoleLabel.FINANCE_OFFICER, RANIBELL, "Ms. Ranibell Mambo", "Business Development & Supply Chain"),
        business_head=Participant(RoleLabel.BUSINESS_HEAD, KELVIN, "Mr. E.T Kelvin", "Executive"),
        it=Participant(RoleLabel.IT_DEPARTMENT, MARCEL, "IT Department", "IT"),
        hr=Participant(RoleLabel.HR, BRUILINE, "Mrs. Bruiline Tsitoh", "HR & Admin"),
    )


@pytest.fixture()
def fallback(org: OrgGraph, tmp_path: Path) -> FallbackChainProvider:
    return FallbackChainProvider(org, event_log_path=tmp_path / ".ringi" / "events.log")


@pytest.fixture()
def builder(org: OrgGraph, policies: PolicyStore, fallback: FallbackChainProvider) -> ChainBuilder:
    return ChainBuilder(org, classifier=classifier_for(policies), fallback=fallback)


RINGI_TOML = f"""
[directory]
path = "org.toml"

[anchors]
finance = "{RANIBELL}"
business_head = "{KELVIN}"
it = "{MARCEL}"
hr = "{BRUILINE}"

[logging]
level = "DEBUG"
"""


@pytest.fixture()
def config_path(tmp_path: Path, org_path: Path) -> Path:
    """tmp_path に ringi.toml + org.toml を置く。"""
    p = tmp_path / "ringi.toml"
    p.write_text(RINGI_TOML, encoding="utf-8")
    return p
