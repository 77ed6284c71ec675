# backend/app/services/data_service.py
import logging
from typing import Any, Dict, List, Mapping, Optional
from ..errors import NotFoundError, ReferenceDataError, ValidationError
from ..models import (
    BusinessTier, ExperienceLevel, Market, PortfolioIndicator,
    Role, SalaryBand, Task, TaskComplexity
)

logger = logging.getLogger(__name__)

DEFAULT_TIER = BusinessTier.GROWING

SalaryTable = Dict[str, Dict[Market, Dict[ExperienceLevel, SalaryBand]]]


class ReferenceDataService:
    """Static reference tables for the savings calculator.

    Every table can be replaced through the constructor. Injected tables are
    copied, so a provider behaves as a frozen snapshot for as long as it lives.
    """

    def __init__(
        self,
        roles: Optional[Mapping[str, Role]] = None,
        salaries: Optional[SalaryTable] = None,
        portfolio_indicators: Optional[Mapping[str, PortfolioIndicator]] = None,
        complexity_weights: Optional[Mapping[TaskComplexity, float]] = None,
    ):
        self._roles = dict(roles) if roles is not None else self._initialize_roles()
        self._salaries = _copy_salaries(salaries) if salaries is not None else self._initialize_salaries()
        self._portfolio_indicators = (
            dict(portfolio_indicators) if portfolio_indicators is not None
            else self._initialize_portfolio_indicators()
        )
        self._complexity_weights = (
            dict(complexity_weights) if complexity_weights is not None
            else self._initialize_complexity_weights()
        )
        self._check_complexity_coverage()

    def _initialize_roles(self) -> Dict[str, Role]:
        """Initialize the role and task catalog"""
        return {
            "assistantPropertyManager": Role(
                id="assistantPropertyManager",
                title="Assistant Property Manager",
                tasks=(
                    Task("apm-tenant-screening", "Tenant Application Screening",
                         TaskComplexity.MEDIUM, 3, "administrative"),
                    Task("apm-maintenance-coordination", "Maintenance Coordination",
                         TaskComplexity.MEDIUM, 3, "coordination"),
                    Task("apm-lease-renewals", "Lease Renewal Processing",
                         TaskComplexity.LOW, 2, "administrative"),
                    Task("apm-compliance-tracking", "Compliance Documentation",
                         TaskComplexity.HIGH, 4, "administrative"),
                ),
                required_skills=("Property Management", "Tenant Relations",
                                 "Administrative Skills", "Communication"),
                optional_skills=("Maintenance Coordination", "Compliance Knowledge", "Basic Accounting"),
            ),
            "leasingCoordinator": Role(
                id="leasingCoordinator",
                title="Leasing Coordinator",
                tasks=(
                    Task("lc-inquiry-management", "Inquiry Response Management",
                         TaskComplexity.LOW, 2, "communication"),
                    Task("lc-property-tours", "Virtual Tour Coordination",
                         TaskComplexity.MEDIUM, 3, "coordination"),
                    Task("lc-application-processing", "Application Processing",
                         TaskComplexity.MEDIUM, 3, "administrative"),
                    Task("lc-market-analysis", "Market Research & Pricing",
                         TaskComplexity.HIGH, 4, "analysis"),
                ),
                required_skills=("Sales Skills", "Customer Service",
                                 "Application Processing", "Market Knowledge"),
                optional_skills=("Marketing Skills", "CRM Software", "Negotiation Skills"),
            ),
            "marketingSpecialist": Role(
                id="marketingSpecialist",
                title="Marketing Specialist",
                tasks=(
                    Task("ms-content-creation", "Property Marketing Content",
                         TaskComplexity.MEDIUM, 3, "marketing"),
                    Task("ms-social-media", "Social Media Management",
                         TaskComplexity.LOW, 2, "marketing"),
                    Task("ms-ad-campaigns", "Digital Advertising Campaigns",
                         TaskComplexity.HIGH, 4, "marketing"),
                    Task("ms-analytics-reporting", "Marketing Analytics",
                         TaskComplexity.HIGH, 4, "analysis"),
                ),
                required_skills=("Digital Marketing", "Content Creation", "Analytics", "Social Media"),
                optional_skills=("Graphic Design", "SEO/SEM", "Video Production", "Data Analysis"),
            ),
        }

    def _initialize_salaries(self) -> SalaryTable:
        """Annual salary bands, 2024 market rates"""
        def bands(entry, moderate, experienced):
            return {
                ExperienceLevel.ENTRY: SalaryBand(*entry),
                ExperienceLevel.MODERATE: SalaryBand(*moderate),
                ExperienceLevel.EXPERIENCED: SalaryBand(*experienced),
            }

        return {
            "assistantPropertyManager": {
                Market.LOCAL: bands((45000, 72000), (58000, 93000), (75000, 120000)),
                Market.OFFSHORE: bands((8000, 10000), (12000, 14000), (18000, 22000)),
            },
            "leasingCoordinator": {
                Market.LOCAL: bands((52000, 83000), (68000, 109000), (85000, 136000)),
                Market.OFFSHORE: bands((10000, 12000), (15000, 18000), (22000, 26000)),
            },
            "marketingSpecialist": {
                Market.LOCAL: bands((55000, 88000), (72000, 115000), (95000, 152000)),
                Market.OFFSHORE: bands((12000, 14000), (18000, 22000), (28000, 34000)),
            },
        }

    def _initialize_portfolio_indicators(self) -> Dict[str, PortfolioIndicator]:
        """Portfolio size ranges (managed units) and what they imply"""
        return {
            "500-999": PortfolioIndicator(
                key="500-999", min_units=500, max_units=999,
                tier=BusinessTier.GROWING,
                description="Perfect for testing offshore teams",
                recommended_team_size={
                    "assistantPropertyManager": 1,
                    "leasingCoordinator": 1,
                    "marketingSpecialist": 1
                },
                revenue_min=500000, revenue_max=1500000,
                implementation_complexity="basic"
            ),
            "1000-1999": PortfolioIndicator(
                key="1000-1999", min_units=1000, max_units=1999,
                tier=BusinessTier.LARGE,
                description="Ideal for full team implementation",
                recommended_team_size={
                    "assistantPropertyManager": 2,
                    "leasingCoordinator": 2,
                    "marketingSpecialist": 1
                },
                revenue_min=1500000, revenue_max=4000000,
                implementation_complexity="intermediate"
            ),
            "2000-4999": PortfolioIndicator(
                key="2000-4999", min_units=2000, max_units=4999,
                tier=BusinessTier.MAJOR,
                description="Multiple teams across departments",
                recommended_team_size={
                    "assistantPropertyManager": 3,
                    "leasingCoordinator": 2,
                    "marketingSpecialist": 2
                },
                revenue_min=4000000, revenue_max=15000000,
                implementation_complexity="advanced"
            ),
            "5000+": PortfolioIndicator(
                key="5000+", min_units=5000, max_units=99999,
                tier=BusinessTier.ENTERPRISE,
                description="Full offshore operation",
                recommended_team_size={
                    "assistantPropertyManager": 5,
                    "leasingCoordinator": 3,
                    "marketingSpecialist": 3
                },
                revenue_min=15000000, revenue_max=100000000,
                implementation_complexity="enterprise"
            ),
        }

    def _initialize_complexity_weights(self) -> Dict[TaskComplexity, float]:
        return {
            TaskComplexity.LOW: 0.9,
            TaskComplexity.MEDIUM: 1.0,
            TaskComplexity.HIGH: 1.2,
            TaskComplexity.CUSTOM: 1.15,
        }

    def _check_complexity_coverage(self) -> None:
        missing = [c.value for c in TaskComplexity if c not in self._complexity_weights]
        if missing:
            raise ReferenceDataError(f"Complexity weights missing for: {', '.join(missing)}")

    def with_portfolio_indicators(self, indicators: Mapping[str, PortfolioIndicator]) -> "ReferenceDataService":
        """Return a new provider that uses the given portfolio indicators"""
        return ReferenceDataService(
            roles=self._roles,
            salaries=self._salaries,
            portfolio_indicators=indicators,
            complexity_weights=self._complexity_weights,
        )

    def salary(self, role_id: str, market: Market, level: ExperienceLevel) -> SalaryBand:
        """Salary band for a role in a market at an experience level"""
        role_salaries = self._salaries.get(role_id)
        if role_salaries is None:
            raise NotFoundError("role", role_id)
        market_salaries = role_salaries.get(market)
        if market_salaries is None:
            raise NotFoundError("market", str(market))
        band = market_salaries.get(level)
        if band is None:
            raise NotFoundError("experience level", str(level))
        return band

    def complexity_weight(self, complexity: TaskComplexity) -> float:
        """Offshore cost multiplier for a task complexity"""
        return self._complexity_weights[complexity]

    def portfolio_indicator(self, size_key: str) -> Optional[PortfolioIndicator]:
        """Get the indicator for a portfolio size key"""
        return self._portfolio_indicators.get(size_key)

    def portfolio_tier(self, size_key: str) -> BusinessTier:
        """Tier for a portfolio size key; unknown keys fall back to the growing tier"""
        indicator = self._portfolio_indicators.get(size_key)
        if indicator is None:
            logger.info("Unknown portfolio size %r, defaulting to %s tier", size_key, DEFAULT_TIER.value)
            return DEFAULT_TIER
        return indicator.tier

    def default_portfolio_indicator(self) -> Optional[PortfolioIndicator]:
        for indicator in self._portfolio_indicators.values():
            if indicator.tier == DEFAULT_TIER:
                return indicator
        return None

    def recommended_team_size(self, size_key: str, role_id: str) -> int:
        """Recommended head count for a role at a portfolio size"""
        indicator = self.portfolio_indicator(size_key) or self.default_portfolio_indicator()
        if indicator is None:
            return 1
        return int(indicator.recommended_team_size.get(role_id, 1))

    def get_role(self, role_id: str) -> Optional[Role]:
        """Get a specific role by ID"""
        return self._roles.get(role_id)

    def require_role(self, role_id: str) -> Role:
        role = self._roles.get(role_id)
        if role is None:
            raise NotFoundError("role", role_id)
        return role

    def get_all_roles(self) -> Dict[str, Role]:
        """Get all roles"""
        return self._roles.copy()

    def get_all_portfolio_indicators(self) -> Dict[str, PortfolioIndicator]:
        """Get all portfolio indicators"""
        return self._portfolio_indicators.copy()


def _copy_salaries(salaries: SalaryTable) -> SalaryTable:
    return {
        role_id: {market: dict(levels) for market, levels in markets.items()}
        for role_id, markets in salaries.items()
    }


def portfolio_indicators_from_payload(payload: Mapping[str, Any]) -> Dict[str, PortfolioIndicator]:
    """Parse portfolio indicators from the locale data JSON shape.

    The payload maps a size key to an object with ``min``, ``max``, ``tier``,
    ``description``, ``recommendedTeamSize``, ``averageRevenue`` and
    ``implementationComplexity``.
    """
    indicators: Dict[str, PortfolioIndicator] = {}
    for key, item in payload.items():
        tier_value = item.get("tier", DEFAULT_TIER.value)
        try:
            tier = BusinessTier(tier_value)
        except ValueError:
            raise NotFoundError("business tier", str(tier_value))
        revenue = _payload_mapping(key, "averageRevenue", item.get("averageRevenue"))
        team_sizes = _payload_mapping(key, "recommendedTeamSize", item.get("recommendedTeamSize"))
        indicators[key] = PortfolioIndicator(
            key=key,
            min_units=_payload_number(key, "min", item.get("min", 0), int),
            max_units=_payload_number(key, "max", item.get("max", 0), int),
            tier=tier,
            description=str(item.get("description", "")),
            recommended_team_size={
                role_id: _payload_number(key, f"recommendedTeamSize.{role_id}", size, int)
                for role_id, size in team_sizes.items()
            },
            revenue_min=_payload_number(key, "averageRevenue.min", revenue.get("min", 0), float),
            revenue_max=_payload_number(key, "averageRevenue.max", revenue.get("max", 0), float),
            implementation_complexity=str(item.get("implementationComplexity", "basic")),
        )
    return indicators


def _payload_mapping(key: str, name: str, value: Any) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"portfolioIndicators.{key}.{name}", "InvalidPortfolioIndicator",
                              f"Expected an object, got {value!r}")
    return value


def _payload_number(key: str, name: str, value: Any, cast):
    try:
        if isinstance(value, bool):
            raise TypeError(value)
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"portfolioIndicators.{key}.{name}", "InvalidPortfolioIndicator",
                              f"Expected a number, got {value!r}")


def indicator_to_payload(indicator: PortfolioIndicator) -> Dict[str, Any]:
    return {
        "key": indicator.key,
        "min": indicator.min_units,
        "max": indicator.max_units,
        "tier": indicator.tier.value,
        "description": indicator.description,
        "recommendedTeamSize": dict(indicator.recommended_team_size),
        "averageRevenue": {"min": indicator.revenue_min, "max": indicator.revenue_max},
        "implementationComplexity": indicator.implementation_complexity,
    }


def list_role_payloads(roles: Dict[str, Role]) -> List[Dict[str, Any]]:
    return [
        {
            "id": role.id,
            "title": role.title,
            "required_skills": list(role.required_skills),
            "optional_skills": list(role.optional_skills),
            "tasks": [
                {
                    "id": task.id,
                    "name": task.name,
                    "complexity": task.complexity.value,
                    "skill_level": task.skill_level,
                    "category": task.category,
                }
                for task in role.tasks
            ],
        }
        for role in roles.values()
    ]
