from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

class ExperienceLevel(str, Enum):
    ENTRY = "entry"
    MODERATE = "moderate"
    EXPERIENCED = "experienced"

class Market(str, Enum):
    LOCAL = "local"
    OFFSHORE = "offshore"

class TaskComplexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    # Synthetic tag for user-authored tasks
    CUSTOM = "custom"

class BusinessTier(str, Enum):
    GROWING = "growing"
    LARGE = "large"
    MAJOR = "major"
    ENTERPRISE = "enterprise"

class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

@dataclass(frozen=True)
class SalaryBand:
    base: float
    total: float

@dataclass(frozen=True)
class Task:
    id: str
    name: str
    complexity: TaskComplexity
    skill_level: int
    category: str = "administrative"

@dataclass(frozen=True)
class Role:
    id: str
    title: str
    tasks: Tuple[Task, ...]
    required_skills: Tuple[str, ...] = ()
    optional_skills: Tuple[str, ...] = ()

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

@dataclass(frozen=True)
class CustomTask:
    id: str
    description: str
    estimated_complexity: TaskComplexity = TaskComplexity.MEDIUM

@dataclass(frozen=True)
class PortfolioIndicator:
    key: str
    min_units: int
    max_units: int
    tier: BusinessTier
    description: str
    recommended_team_size: Dict[str, int]
    revenue_min: float
    revenue_max: float
    implementation_complexity: str

@dataclass(frozen=True)
class ExperienceDistribution:
    """Head-count split of one role's team across experience levels"""
    entry: int = 0
    moderate: int = 0
    experienced: int = 0

    @property
    def total(self) -> int:
        return self.entry + self.moderate + self.experienced

    def count(self, level: ExperienceLevel) -> int:
        return {
            ExperienceLevel.ENTRY: self.entry,
            ExperienceLevel.MODERATE: self.moderate,
            ExperienceLevel.EXPERIENCED: self.experienced,
        }[level]

@dataclass(frozen=True)
class CalculationRules:
    setup_cost_loading: float = 1.2
    base_implementation_days: float = 30.0
    team_size_day_scale: float = 10.0
    days_per_task: float = 2.0
    experience_time_multiplier: Dict[ExperienceLevel, float] = field(default_factory=lambda: {
        ExperienceLevel.ENTRY: 1.3,
        ExperienceLevel.MODERATE: 1.0,
        ExperienceLevel.EXPERIENCED: 0.8
    })
    planning_weeks: Dict[BusinessTier, int] = field(default_factory=lambda: {
        BusinessTier.GROWING: 2,
        BusinessTier.LARGE: 3,
        BusinessTier.MAJOR: 4,
        BusinessTier.ENTERPRISE: 6
    })
    hiring_weeks: Dict[BusinessTier, int] = field(default_factory=lambda: {
        BusinessTier.GROWING: 3,
        BusinessTier.LARGE: 4,
        BusinessTier.MAJOR: 6,
        BusinessTier.ENTERPRISE: 8
    })
    training_weeks: Dict[BusinessTier, int] = field(default_factory=lambda: {
        BusinessTier.GROWING: 2,
        BusinessTier.LARGE: 3,
        BusinessTier.MAJOR: 4,
        BusinessTier.ENTERPRISE: 6
    })
    team_size_week_step: float = 0.2
    max_team_size_multiplier: float = 2.0
    high_complexity_threshold: float = 1.1
    large_offshore_team: int = 5

@dataclass(frozen=True)
class CalculatorInput:
    """Immutable input snapshot; the mappings are copied into read-only views"""
    portfolio_size: str
    selected_roles: Mapping[str, bool]
    experience_level: Optional[str] = None
    selected_tasks: Mapping[str, bool] = field(default_factory=dict)
    custom_tasks: Mapping[str, Tuple[CustomTask, ...]] = field(default_factory=dict)
    team_size: Mapping[str, int] = field(default_factory=dict)
    # Optional per-role split; overrides experience_level for that role
    role_experience_distribution: Mapping[str, ExperienceDistribution] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "selected_roles", MappingProxyType(dict(self.selected_roles)))
        object.__setattr__(self, "selected_tasks", MappingProxyType(dict(self.selected_tasks)))
        object.__setattr__(self, "custom_tasks", MappingProxyType(
            {role_id: tuple(tasks) for role_id, tasks in self.custom_tasks.items()}
        ))
        object.__setattr__(self, "team_size", MappingProxyType(dict(self.team_size)))
        object.__setattr__(self, "role_experience_distribution",
                           MappingProxyType(dict(self.role_experience_distribution)))

    def selected_role_ids(self) -> List[str]:
        return [role_id for role_id, selected in self.selected_roles.items() if selected]

@dataclass
class RoleSavings:
    role_id: str
    role_name: str
    team_size: int
    experience_level: ExperienceLevel
    local_cost: float
    offshore_cost: float
    savings: float
    savings_percentage: float
    selected_tasks_count: int
    custom_tasks_count: int
    complexity_factor: float
    estimated_implementation_days: int
    risk_factors: List[str]

@dataclass
class ImplementationTimeline:
    planning: int
    hiring: int
    training: int
    full_implementation: int

@dataclass
class RiskAssessment:
    level: RiskLevel
    factors: List[str]
    mitigation_strategies: List[str]

@dataclass
class CalculationResult:
    total_savings: float
    total_local_cost: float
    total_offshore_cost: float
    breakdown: Dict[str, RoleSavings]
    portfolio_tier: BusinessTier
    lead_score: int
    selected_tasks_count: int
    custom_tasks_count: int
    total_team_size: int
    average_savings_percentage: float
    estimated_roi: int
    implementation_timeline: ImplementationTimeline
    risk_assessment: RiskAssessment
