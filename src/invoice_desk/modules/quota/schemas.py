from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class QuotaInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_quota_exceeded: bool
    retry_after: str | None = None
    suggestions: list[str]
    upgrade_url: str | None = None


class QuotaUsageOut(BaseModel):
    used: int
    limit: int
    remaining: int


class QuotaPlanInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    free_tier_limit: int
    reset_period: str
    upgrade_url: str


class QuotaStatusOut(BaseModel):
    quota: QuotaUsageOut
    info: QuotaPlanInfo
