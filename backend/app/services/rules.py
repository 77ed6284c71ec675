# backend/app/services/rules.py
"""
Rule tables for risk flags and lead scoring.

Each table is an ordered tuple of ``Rule(name, predicate, contribution)``.
Risk tables collect the contribution of every rule that matches. Score
components take the first matching band and cap it at the component maximum.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from ..models import BusinessTier, ExperienceDistribution, ExperienceLevel, RoleSavings

C = TypeVar("C")


@dataclass(frozen=True)
class Rule(Generic[C]):
    name: str
    predicate: Callable[[C], bool]
    contribution: Any


@dataclass(frozen=True)
class RoleRiskContext:
    role_id: str
    team_size: int
    total_tasks: int
    experience_level: ExperienceLevel
    distribution: Optional[ExperienceDistribution] = None


@dataclass(frozen=True)
class OverallRiskContext:
    portfolio_tier: BusinessTier
    total_team_size: int
    breakdown: Dict[str, RoleSavings]
    high_complexity_threshold: float = 1.1
    large_team_threshold: int = 5


@dataclass(frozen=True)
class LeadScoreContext:
    portfolio_points: int
    total_team_size: int
    total_savings: float
    total_tasks: int


@dataclass(frozen=True)
class ScoreComponent(Generic[C]):
    name: str
    max_points: int
    bands: Tuple[Rule[C], ...] = field(default_factory=tuple)

    def score(self, ctx: C) -> float:
        for band in self.bands:
            if band.predicate(ctx):
                points = band.contribution(ctx) if callable(band.contribution) else band.contribution
                return max(0, min(self.max_points, points))
        return 0


def applied(rules: Tuple[Rule[C], ...], ctx: C) -> List[Any]:
    """Contributions of every rule whose predicate holds, in table order"""
    return [rule.contribution for rule in rules if rule.predicate(ctx)]


def _entry_share(ctx: RoleRiskContext) -> float:
    dist = ctx.distribution
    if dist is None or dist.total == 0:
        return 0.0
    return dist.entry / dist.total * 100


def _experienced_share(ctx: RoleRiskContext) -> float:
    dist = ctx.distribution
    if dist is None or dist.total == 0:
        return 0.0
    return dist.experienced / dist.total * 100


ROLE_RISK_RULES: Tuple[Rule[RoleRiskContext], ...] = (
    Rule("large_team", lambda ctx: ctx.team_size > 3,
         "Large team coordination complexity"),
    Rule("single_person", lambda ctx: ctx.team_size == 1,
         "Single point of failure risk"),
    Rule("many_tasks", lambda ctx: ctx.total_tasks > 6,
         "High task complexity requires extensive training"),
    Rule("no_tasks", lambda ctx: ctx.total_tasks == 0,
         "Undefined scope may lead to underutilization"),
    Rule("entry_level",
         lambda ctx: ctx.distribution is None and ctx.experience_level == ExperienceLevel.ENTRY,
         "Entry-level staff require more supervision"),
    Rule("mostly_entry", lambda ctx: _entry_share(ctx) > 70,
         "High percentage of entry-level staff requires extensive supervision"),
    Rule("no_seniors",
         lambda ctx: ctx.distribution is not None and ctx.distribution.entry > 0
         and ctx.distribution.experienced == 0,
         "No senior staff for mentoring and guidance"),
    Rule("mostly_senior", lambda ctx: _experienced_share(ctx) > 80,
         "Over-investment in senior staff may increase costs"),
    Rule("missing_mid_level",
         lambda ctx: ctx.distribution is not None and ctx.distribution.entry > 0
         and ctx.distribution.moderate == 0 and ctx.distribution.experienced > 0,
         "Missing mid-level staff for knowledge transfer"),
)

ROLE_SPECIFIC_RISKS: Dict[str, str] = {
    "assistantPropertyManager": "Compliance requirements vary by location",
    "leasingCoordinator": "Customer interaction requires cultural training",
    "marketingSpecialist": "Brand consistency requires clear guidelines",
}


def role_risk_factors(ctx: RoleRiskContext) -> List[str]:
    risks = applied(ROLE_RISK_RULES, ctx)
    note = ROLE_SPECIFIC_RISKS.get(ctx.role_id)
    if note:
        risks.append(note)
    return risks


def _any_entry_level(ctx: OverallRiskContext) -> bool:
    return any(role.experience_level == ExperienceLevel.ENTRY for role in ctx.breakdown.values())


def _any_complex_role(ctx: OverallRiskContext) -> bool:
    return any(role.complexity_factor > ctx.high_complexity_threshold for role in ctx.breakdown.values())


# Contribution is a (risk factor, mitigation) pair
OVERALL_RISK_RULES: Tuple[Rule[OverallRiskContext], ...] = (
    Rule("enterprise_scale", lambda ctx: ctx.portfolio_tier == BusinessTier.ENTERPRISE,
         ("Large-scale implementation complexity",
          "Phased rollout approach with pilot teams")),
    Rule("large_offshore_team", lambda ctx: ctx.total_team_size > ctx.large_team_threshold,
         ("Large offshore team management challenges",
          "Dedicated offshore team lead and regular communication protocols")),
    Rule("entry_level_staff", _any_entry_level,
         ("Entry-level staff require more oversight",
          "Enhanced training program and mentorship structure")),
    Rule("complex_handover", _any_complex_role,
         ("Complex task requirements need careful handover",
          "Detailed process documentation and extended training period")),
)


PORTFOLIO_TIER_POINTS: Dict[BusinessTier, int] = {
    BusinessTier.GROWING: 15,
    BusinessTier.LARGE: 25,
    BusinessTier.MAJOR: 30,
    BusinessTier.ENTERPRISE: 30,
}


def _at_least(attr: str, threshold: float) -> Callable[[LeadScoreContext], bool]:
    return lambda ctx: getattr(ctx, attr) >= threshold


def _always(ctx: Any) -> bool:
    return True


LEAD_SCORE_COMPONENTS: Tuple[ScoreComponent[LeadScoreContext], ...] = (
    ScoreComponent("portfolio_size", 30, (
        Rule("portfolio", _always, lambda ctx: ctx.portfolio_points),
    )),
    ScoreComponent("team_size", 25, (
        Rule("team_5_plus", _at_least("total_team_size", 5), 25),
        Rule("team_3_plus", _at_least("total_team_size", 3), 20),
        Rule("team_2_plus", _at_least("total_team_size", 2), 15),
        Rule("team_baseline", _always, 10),
    )),
    ScoreComponent("savings", 25, (
        Rule("savings_300k", _at_least("total_savings", 300000), 25),
        Rule("savings_200k", _at_least("total_savings", 200000), 20),
        Rule("savings_100k", _at_least("total_savings", 100000), 15),
        Rule("savings_50k", _at_least("total_savings", 50000), 10),
        Rule("savings_baseline", _always, 5),
    )),
    ScoreComponent("tasks", 20, (
        Rule("two_per_task", _always, lambda ctx: ctx.total_tasks * 2),
    )),
)


def lead_score_breakdown(ctx: LeadScoreContext) -> Dict[str, float]:
    return {component.name: component.score(ctx) for component in LEAD_SCORE_COMPONENTS}
