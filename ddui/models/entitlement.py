"""
ddui/models/entitlement.py

License entitlements: the edition tier and the feature toggles it grants.

Feature Keys:
- ci_api (bool): streamed CI/deploy runs via POST /api/ci/run
- wizards (bool): guided stack creation in the UI
- history_days (int): how far back run history is kept

License payloads come from external tooling and may use camelCase keys
(maxHosts, demoStacks, ciApi, historyDays); both spellings are accepted.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


COMMUNITY_EDITION = "Community"


class Features(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ci_api: bool = Field(alias="ciApi")
    wizards: bool
    history_days: int = Field(alias="historyDays", ge=0)


class Entitlements(BaseModel):
    """Licensed edition and feature set. Read-only for the process lifetime."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    edition: str = Field(min_length=1)
    max_hosts: Optional[int] = Field(default=None, alias="maxHosts", ge=0)
    demo_stacks: Optional[int] = Field(default=None, alias="demoStacks", ge=0)
    features: Features
    org: Optional[str] = None

    @classmethod
    def community(cls) -> "Entitlements":
        """Hardcoded fallback tier used when no license is available."""
        return cls(
            edition=COMMUNITY_EDITION,
            max_hosts=15,
            demo_stacks=3,
            features=Features(ci_api=True, wizards=True, history_days=30),
            org=None,
        )

    def has_feature(self, name: str) -> bool:
        """True when the named feature toggle is set (non-zero for numeric toggles)."""
        if name not in Features.model_fields:
            return False
        return bool(getattr(self.features, name))
