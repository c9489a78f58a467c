"""Pipeline analytics response schema."""

from pydantic import BaseModel


class ConversionFunnel(BaseModel):
    inquiries: int
    tours_completed: int
    offers_made: int
    offers_accepted: int
    enrolled: int
    conversion_rate_pct: int


class ProgramDemand(BaseModel):
    program: str
    count: int


class ReferralSource(BaseModel):
    source: str
    count: int


class PipelineAnalytics(BaseModel):
    stage_counts: dict[str, int]
    total_active: int
    conversion_funnel: ConversionFunnel
    demand_by_program: list[ProgramDemand]
    referral_sources: list[ReferralSource]
    avg_days_per_stage: dict[str, int]
