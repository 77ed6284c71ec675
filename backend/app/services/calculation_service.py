# backend/app/services/calculation_service.py
import logging
import math
from typing import Dict, List, Optional, Sequence
from ..errors import ComputationError, NotFoundError, ValidationError
from ..models import (
    BusinessTier, CalculationResult, CalculationRules, CalculatorInput, CustomTask,
    ExperienceDistribution, ExperienceLevel, ImplementationTimeline, Market,
    RiskAssessment, RiskLevel, RoleSavings, TaskComplexity
)
from .data_service import ReferenceDataService
from .rules import (
    OVERALL_RISK_RULES, PORTFOLIO_TIER_POINTS, LeadScoreContext, OverallRiskContext,
    RoleRiskContext, applied, lead_score_breakdown, role_risk_factors
)

logger = logging.getLogger(__name__)

TASK_KEY_SEPARATOR = ":"

_LEVEL_WEIGHT = {
    ExperienceLevel.ENTRY: 1,
    ExperienceLevel.MODERATE: 2,
    ExperienceLevel.EXPERIENCED: 3,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def task_key(role_id: str, task_id: str) -> str:
    return f"{role_id}{TASK_KEY_SEPARATOR}{task_id}"


def parse_experience_level(value) -> ExperienceLevel:
    if isinstance(value, ExperienceLevel):
        return value
    try:
        return ExperienceLevel(value)
    except ValueError:
        raise NotFoundError("experience level", str(value))


class CalculationService:
    def __init__(self, data_service: Optional[ReferenceDataService] = None,
                 rules: Optional[CalculationRules] = None):
        self.data_service = data_service or ReferenceDataService()
        self.rules = rules or CalculationRules()

    def with_data_service(self, data_service: ReferenceDataService) -> "CalculationService":
        return CalculationService(data_service=data_service, rules=self.rules)

    def calculate_savings(self, input_data: CalculatorInput) -> CalculationResult:
        """Aggregate per-role savings into the full calculator result"""
        default_level = self._resolve_default_level(input_data)

        breakdown: Dict[str, RoleSavings] = {}
        for role_id in input_data.selected_role_ids():
            team_size = input_data.team_size.get(role_id)
            if team_size is None:
                raise ValidationError(f"teamSize.{role_id}", "MissingTeamSize",
                                      f"Team size is required for selected role {role_id}")
            breakdown[role_id] = self.calculate_role_savings(
                role_id=role_id,
                team_size=team_size,
                experience_level=default_level,
                selected_task_ids=self._selected_task_ids(role_id, input_data.selected_tasks),
                custom_tasks=input_data.custom_tasks.get(role_id, []),
                distribution=input_data.role_experience_distribution.get(role_id),
            )

        # Totals come from the breakdown only
        total_local_cost = sum(role.local_cost for role in breakdown.values())
        total_offshore_cost = sum(role.offshore_cost for role in breakdown.values())
        total_savings = sum(role.savings for role in breakdown.values())
        total_selected_tasks = sum(role.selected_tasks_count for role in breakdown.values())
        total_custom_tasks = sum(role.custom_tasks_count for role in breakdown.values())
        total_team_size = sum(role.team_size for role in breakdown.values())

        average_savings_percentage = (
            total_savings / total_local_cost * 100 if total_local_cost > 0 else 0.0
        )

        portfolio_tier = self.data_service.portfolio_tier(input_data.portfolio_size)

        lead_score = self._calculate_lead_score(
            input_data.portfolio_size, total_savings, total_team_size,
            total_selected_tasks + total_custom_tasks
        )
        estimated_roi = self._calculate_roi(total_savings, total_offshore_cost)
        timeline = self._calculate_implementation_timeline(total_team_size, portfolio_tier)
        risk_assessment = self._assess_overall_risk(breakdown, portfolio_tier, total_team_size)

        return CalculationResult(
            total_savings=total_savings,
            total_local_cost=total_local_cost,
            total_offshore_cost=total_offshore_cost,
            breakdown=breakdown,
            portfolio_tier=portfolio_tier,
            lead_score=lead_score,
            selected_tasks_count=total_selected_tasks,
            custom_tasks_count=total_custom_tasks,
            total_team_size=total_team_size,
            average_savings_percentage=average_savings_percentage,
            estimated_roi=estimated_roi,
            implementation_timeline=timeline,
            risk_assessment=risk_assessment,
        )

    def calculate_role_savings(
        self,
        role_id: str,
        team_size: int,
        experience_level: Optional[ExperienceLevel],
        selected_task_ids: Sequence[str] = (),
        custom_tasks: Sequence[CustomTask] = (),
        distribution: Optional[ExperienceDistribution] = None,
    ) -> RoleSavings:
        """Cost comparison, implementation time and risks for one role"""
        role = self.data_service.require_role(role_id)
        if isinstance(team_size, bool) or not isinstance(team_size, int) or team_size < 1:
            raise ValidationError(f"teamSize.{role_id}", "InvalidTeamSize",
                                  f"Team size must be a whole number of at least 1, got {team_size!r}")

        if distribution is not None:
            if min(distribution.count(level) for level in ExperienceLevel) < 0:
                raise ValidationError(f"roleExperienceDistribution.{role_id}", "InvalidExperienceDistribution",
                                      "Experience split counts cannot be negative")
            if distribution.total != team_size:
                raise ValidationError(
                    f"roleExperienceDistribution.{role_id}", "ExperienceDistributionMismatch",
                    f"Experience split adds up to {distribution.total}, team size is {team_size}"
                )
            local_cost, offshore_base = self._distributed_costs(role_id, distribution)
            time_multiplier = self._weighted_time_multiplier(distribution)
            level = self._weighted_experience_level(distribution)
        else:
            if experience_level is None:
                raise ValidationError("experienceLevel", "MissingExperienceLevel",
                                      "Experience level is required")
            level = parse_experience_level(experience_level)
            local_cost = self.data_service.salary(role_id, Market.LOCAL, level).total * team_size
            offshore_base = self.data_service.salary(role_id, Market.OFFSHORE, level).total * team_size
            time_multiplier = self.rules.experience_time_multiplier[level]

        catalog_tasks = [role.get_task(task_id) for task_id in selected_task_ids]
        catalog_tasks = [task for task in catalog_tasks if task is not None]
        catalog_count = len(catalog_tasks)
        custom_count = len(custom_tasks)
        total_tasks = catalog_count + custom_count

        complexity_factor = self._complexity_factor(catalog_tasks, custom_count)
        offshore_cost = offshore_base * complexity_factor

        savings = local_cost - offshore_cost
        savings_percentage = savings / local_cost * 100 if local_cost > 0 else 0.0

        implementation_days = round_half_up(
            (self.rules.base_implementation_days
             + math.log(team_size + 1) * self.rules.team_size_day_scale
             + total_tasks * self.rules.days_per_task) * time_multiplier
        )

        risk_factors = role_risk_factors(RoleRiskContext(
            role_id=role_id,
            team_size=team_size,
            total_tasks=total_tasks,
            experience_level=level,
            distribution=distribution,
        ))

        self._check_costs(role_id, local_cost, offshore_cost)
        logger.debug(
            "Role %s: team=%d level=%s tasks=%d factor=%.3f savings=%.2f",
            role_id, team_size, level.value, total_tasks, complexity_factor, savings
        )

        return RoleSavings(
            role_id=role_id,
            role_name=role.title,
            team_size=team_size,
            experience_level=level,
            local_cost=local_cost,
            offshore_cost=offshore_cost,
            savings=savings,
            savings_percentage=savings_percentage,
            selected_tasks_count=catalog_count,
            custom_tasks_count=custom_count,
            complexity_factor=complexity_factor,
            estimated_implementation_days=implementation_days,
            risk_factors=risk_factors,
        )

    def _complexity_factor(self, catalog_tasks, custom_count: int) -> float:
        """Weighted mean of catalog and custom task weights; 1.0 without tasks"""
        catalog_count = len(catalog_tasks)
        total_tasks = catalog_count + custom_count
        if total_tasks == 0:
            return 1.0

        average_catalog = (
            sum(self.data_service.complexity_weight(task.complexity) for task in catalog_tasks) / catalog_count
            if catalog_count > 0 else 1.0
        )
        custom_weight = (
            self.data_service.complexity_weight(TaskComplexity.CUSTOM) if custom_count > 0 else 1.0
        )
        return (average_catalog * catalog_count + custom_weight * custom_count) / total_tasks

    def _distributed_costs(self, role_id: str, distribution: ExperienceDistribution):
        local_cost = 0.0
        offshore_cost = 0.0
        for level in ExperienceLevel:
            count = distribution.count(level)
            if count <= 0:
                continue
            local_cost += self.data_service.salary(role_id, Market.LOCAL, level).total * count
            offshore_cost += self.data_service.salary(role_id, Market.OFFSHORE, level).total * count
        return local_cost, offshore_cost

    def _weighted_time_multiplier(self, distribution: ExperienceDistribution) -> float:
        multipliers = self.rules.experience_time_multiplier
        return sum(multipliers[level] * distribution.count(level) for level in ExperienceLevel) / distribution.total

    def _weighted_experience_level(self, distribution: ExperienceDistribution) -> ExperienceLevel:
        average = sum(_LEVEL_WEIGHT[level] * distribution.count(level) for level in ExperienceLevel) / distribution.total
        if average <= 1.5:
            return ExperienceLevel.ENTRY
        if average <= 2.5:
            return ExperienceLevel.MODERATE
        return ExperienceLevel.EXPERIENCED

    def _check_costs(self, role_id: str, local_cost: float, offshore_cost: float) -> None:
        for name, value in (("local cost", local_cost), ("offshore cost", offshore_cost)):
            if not math.isfinite(value) or value < 0:
                raise ComputationError(f"Invalid {name} for role {role_id}: {value!r}")

    def _resolve_default_level(self, input_data: CalculatorInput) -> Optional[ExperienceLevel]:
        if input_data.experience_level:
            return parse_experience_level(input_data.experience_level)
        needs_level = [
            role_id for role_id in input_data.selected_role_ids()
            if role_id not in input_data.role_experience_distribution
        ]
        if needs_level:
            raise ValidationError("experienceLevel", "MissingExperienceLevel",
                                  "Experience level is required")
        return None

    def _selected_task_ids(self, role_id: str, selected_tasks: Dict[str, bool]) -> List[str]:
        prefix = f"{role_id}{TASK_KEY_SEPARATOR}"
        return [
            key[len(prefix):] for key, selected in selected_tasks.items()
            if selected and key.startswith(prefix)
        ]

    def _calculate_lead_score(self, portfolio_size: str, total_savings: float,
                              total_team_size: int, total_tasks: int) -> int:
        """Lead score (0-100) from four capped bands"""
        indicator = self.data_service.portfolio_indicator(portfolio_size)
        portfolio_points = PORTFOLIO_TIER_POINTS[indicator.tier] if indicator else 0
        components = lead_score_breakdown(LeadScoreContext(
            portfolio_points=portfolio_points,
            total_team_size=total_team_size,
            total_savings=total_savings,
            total_tasks=total_tasks,
        ))
        score = round_half_up(sum(components.values()))
        return max(0, min(100, score))

    def _calculate_roi(self, total_savings: float, total_offshore_cost: float) -> int:
        """ROI percentage against offshore cost plus setup loading"""
        investment = total_offshore_cost * self.rules.setup_cost_loading
        if investment == 0:
            return 0
        return round_half_up(total_savings / investment * 100)

    def _calculate_implementation_timeline(self, total_team_size: int,
                                           portfolio_tier: BusinessTier) -> ImplementationTimeline:
        multiplier = min(
            self.rules.max_team_size_multiplier,
            1 + (total_team_size - 1) * self.rules.team_size_week_step
        )
        base_planning = self.rules.planning_weeks[portfolio_tier]
        base_hiring = self.rules.hiring_weeks[portfolio_tier]
        base_training = self.rules.training_weeks[portfolio_tier]

        # Total scales the unrounded base weeks, so it can differ from the sum of rounded phases
        return ImplementationTimeline(
            planning=round_half_up(base_planning * multiplier),
            hiring=round_half_up(base_hiring * multiplier),
            training=round_half_up(base_training * multiplier),
            full_implementation=round_half_up((base_planning + base_hiring + base_training) * multiplier),
        )

    def _assess_overall_risk(self, breakdown: Dict[str, RoleSavings],
                             portfolio_tier: BusinessTier, total_team_size: int) -> RiskAssessment:
        triggered = applied(OVERALL_RISK_RULES, OverallRiskContext(
            portfolio_tier=portfolio_tier,
            total_team_size=total_team_size,
            breakdown=breakdown,
            high_complexity_threshold=self.rules.high_complexity_threshold,
            large_team_threshold=self.rules.large_offshore_team,
        ))
        factors = [factor for factor, _ in triggered]
        mitigations = [mitigation for _, mitigation in triggered]

        if len(factors) >= 3:
            level = RiskLevel.HIGH
        elif len(factors) == 2:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.LOW
        return RiskAssessment(level=level, factors=factors, mitigation_strategies=mitigations)

    def validate_input(self, input_data: CalculatorInput) -> List[str]:
        """Validate calculator input and return any warnings"""
        warnings = []

        if self.data_service.portfolio_indicator(input_data.portfolio_size) is None:
            warnings.append(
                f"Portfolio size '{input_data.portfolio_size}' not recognised, using the growing tier"
            )

        selected = input_data.selected_role_ids()
        if not selected:
            warnings.append("No roles selected")

        for key, is_selected in input_data.selected_tasks.items():
            if not is_selected:
                continue
            role_id, sep, task_id = key.partition(TASK_KEY_SEPARATOR)
            role = self.data_service.get_role(role_id)
            if not sep or role is None or role.get_task(task_id) is None:
                warnings.append(f"Task '{key}' not found in the role catalog")
            elif role_id not in selected:
                warnings.append(f"Task '{key}' is selected but role '{role.title}' is not")

        for role_id in selected:
            role = self.data_service.get_role(role_id)
            if role is None:
                warnings.append(f"Role {role_id} not found")
                continue
            task_count = len(self._selected_task_ids(role_id, input_data.selected_tasks))
            task_count += len(input_data.custom_tasks.get(role_id, []))
            if task_count == 0:
                warnings.append(f"No tasks selected for '{role.title}'")

            team_size = input_data.team_size.get(role_id)
            recommended = self.data_service.recommended_team_size(input_data.portfolio_size, role_id)
            if isinstance(team_size, int) and team_size >= 1 and team_size != recommended:
                warnings.append(
                    f"'{role.title}' team of {team_size} differs from the recommended {recommended} "
                    f"for this portfolio size"
                )

        return warnings
