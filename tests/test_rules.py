from __future__ import annotations

from backend.app.models import BusinessTier, ExperienceDistribution, ExperienceLevel, RoleSavings
from backend.app.services.rules import (
    LEAD_SCORE_COMPONENTS,
    OVERALL_RISK_RULES,
    ROLE_RISK_RULES,
    LeadScoreContext,
    OverallRiskContext,
    RoleRiskContext,
    applied,
    lead_score_breakdown,
    role_risk_factors,
)


def _rule(rules, name):
    return next(r for r in rules if r.name == name)


def _ctx(**overrides) -> RoleRiskContext:
    values = dict(
        role_id="leasingCoordinator",
        team_size=2,
        total_tasks=3,
        experience_level=ExperienceLevel.MODERATE,
        distribution=None,
    )
    values.update(overrides)
    return RoleRiskContext(**values)


def _role(**overrides) -> RoleSavings:
    values = dict(
        role_id="assistantPropertyManager",
        role_name="Assistant Property Manager",
        team_size=1,
        experience_level=ExperienceLevel.MODERATE,
        local_cost=93000.0,
        offshore_cost=14000.0,
        savings=79000.0,
        savings_percentage=84.9,
        selected_tasks_count=1,
        custom_tasks_count=0,
        complexity_factor=1.0,
        estimated_implementation_days=39,
        risk_factors=[],
    )
    values.update(overrides)
    return RoleSavings(**values)


def test_team_size_rules() -> None:
    large = _rule(ROLE_RISK_RULES, "large_team")
    single = _rule(ROLE_RISK_RULES, "single_person")

    assert large.predicate(_ctx(team_size=4))
    assert not large.predicate(_ctx(team_size=3))
    assert single.predicate(_ctx(team_size=1))
    assert not single.predicate(_ctx(team_size=2))


def test_task_count_rules() -> None:
    many = _rule(ROLE_RISK_RULES, "many_tasks")
    none = _rule(ROLE_RISK_RULES, "no_tasks")

    assert many.predicate(_ctx(total_tasks=7))
    assert not many.predicate(_ctx(total_tasks=6))
    assert none.predicate(_ctx(total_tasks=0))
    assert not none.predicate(_ctx(total_tasks=1))


def test_entry_level_rule_only_without_distribution() -> None:
    entry = _rule(ROLE_RISK_RULES, "entry_level")

    assert entry.predicate(_ctx(experience_level=ExperienceLevel.ENTRY))
    assert not entry.predicate(_ctx(experience_level=ExperienceLevel.EXPERIENCED))
    assert not entry.predicate(_ctx(
        experience_level=ExperienceLevel.ENTRY,
        distribution=ExperienceDistribution(entry=2),
    ))


def test_distribution_rules() -> None:
    mostly_entry = _rule(ROLE_RISK_RULES, "mostly_entry")
    no_seniors = _rule(ROLE_RISK_RULES, "no_seniors")
    mostly_senior = _rule(ROLE_RISK_RULES, "mostly_senior")
    missing_mid = _rule(ROLE_RISK_RULES, "missing_mid_level")

    all_entry = _ctx(distribution=ExperienceDistribution(entry=4))
    assert mostly_entry.predicate(all_entry)
    assert no_seniors.predicate(all_entry)

    seniors = _ctx(distribution=ExperienceDistribution(moderate=1, experienced=9))
    assert mostly_senior.predicate(seniors)
    assert not no_seniors.predicate(seniors)

    barbell = _ctx(distribution=ExperienceDistribution(entry=1, experienced=1))
    assert missing_mid.predicate(barbell)
    assert not missing_mid.predicate(_ctx(distribution=ExperienceDistribution(entry=1, moderate=1, experienced=1)))


def test_role_risk_factors_appends_role_note_last() -> None:
    risks = role_risk_factors(_ctx(team_size=1, total_tasks=0, experience_level=ExperienceLevel.ENTRY))

    assert risks == [
        "Single point of failure risk",
        "Undefined scope may lead to underutilization",
        "Entry-level staff require more supervision",
        "Customer interaction requires cultural training",
    ]


def test_role_risk_factors_unknown_role_has_no_note() -> None:
    assert role_risk_factors(_ctx(role_id="somethingElse")) == []


def test_overall_risk_rules_pair_factor_with_mitigation() -> None:
    ctx = OverallRiskContext(
        portfolio_tier=BusinessTier.ENTERPRISE,
        total_team_size=6,
        breakdown={
            "assistantPropertyManager": _role(experience_level=ExperienceLevel.ENTRY, complexity_factor=1.2),
        },
    )

    triggered = applied(OVERALL_RISK_RULES, ctx)

    assert len(triggered) == 4
    assert all(isinstance(pair, tuple) and len(pair) == 2 for pair in triggered)
    assert triggered[0] == ("Large-scale implementation complexity", "Phased rollout approach with pilot teams")


def test_overall_risk_complexity_threshold_is_exclusive() -> None:
    ctx = OverallRiskContext(
        portfolio_tier=BusinessTier.GROWING,
        total_team_size=1,
        breakdown={"assistantPropertyManager": _role(complexity_factor=1.1)},
    )

    assert applied(OVERALL_RISK_RULES, ctx) == []


def test_lead_score_bands() -> None:
    ctx = LeadScoreContext(portfolio_points=25, total_team_size=2, total_savings=158000, total_tasks=2)

    assert lead_score_breakdown(ctx) == {
        "portfolio_size": 25,
        "team_size": 15,
        "savings": 15,
        "tasks": 4,
    }


def test_lead_score_band_edges() -> None:
    low = LeadScoreContext(portfolio_points=0, total_team_size=0, total_savings=-5000, total_tasks=0)
    high = LeadScoreContext(portfolio_points=30, total_team_size=5, total_savings=300000, total_tasks=10)

    assert lead_score_breakdown(low) == {"portfolio_size": 0, "team_size": 10, "savings": 5, "tasks": 0}
    assert lead_score_breakdown(high) == {"portfolio_size": 30, "team_size": 25, "savings": 25, "tasks": 20}


def test_score_components_are_capped() -> None:
    ctx = LeadScoreContext(portfolio_points=80, total_team_size=40, total_savings=5_000_000, total_tasks=50)

    for component in LEAD_SCORE_COMPONENTS:
        assert component.score(ctx) <= component.max_points
    assert sum(lead_score_breakdown(ctx).values()) == 100
