from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Optional, Any
from dataclasses import asdict
import logging
import uvicorn

from .config import Settings, configure_logging, load_environment

load_environment()
settings = Settings.from_env()
configure_logging(settings.log_level)

# Import our services
from .errors import ComputationError, NotFoundError, ReferenceDataError, ValidationError
from .models import CalculatorInput, CustomTask, ExperienceDistribution, TaskComplexity
from .services.calculation_service import CalculationService
from .services.data_service import (
    ReferenceDataService, indicator_to_payload, list_role_payloads,
    portfolio_indicators_from_payload
)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
data_service = ReferenceDataService()
calculation_service = CalculationService(data_service=data_service, rules=settings.calculation_rules())


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(NotFoundError)
def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content=exc.to_dict())


@app.exception_handler(ComputationError)
@app.exception_handler(ReferenceDataError)
def handle_computation_error(request: Request, exc: Exception):
    logger.error("Calculation failed: %s", exc)
    return JSONResponse(status_code=500, content={"error": type(exc).__name__, "message": str(exc)})


@app.get("/")
def read_root():
    return {"message": f"{settings.app_name} v{settings.version} is running", "status": "ready"}

@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "setup_cost_loading": settings.setup_cost_loading,
    }

@app.get("/api/v1/roles")
def get_roles():
    """Get the role and task catalog"""
    return list_role_payloads(data_service.get_all_roles())

@app.get("/api/v1/portfolio-tiers")
def get_portfolio_tiers():
    """Get all portfolio size ranges and their tiers"""
    return [indicator_to_payload(i) for i in data_service.get_all_portfolio_indicators().values()]


class CustomTaskModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    description: str = ""
    estimated_complexity: str = Field(default="medium", alias="estimatedComplexity")


class ExperienceDistributionModel(BaseModel):
    entry: int = 0
    moderate: int = 0
    experienced: int = 0


class CalculationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    portfolio_size: str = Field(alias="portfolioSize")
    selected_roles: Dict[str, bool] = Field(default_factory=dict, alias="selectedRoles")
    selected_tasks: Dict[str, bool] = Field(default_factory=dict, alias="selectedTasks")
    custom_tasks: Dict[str, List[CustomTaskModel]] = Field(default_factory=dict, alias="customTasks")
    experience_level: Optional[str] = Field(default=None, alias="experienceLevel")
    team_size: Dict[str, int] = Field(default_factory=dict, alias="teamSize")
    role_experience_distribution: Dict[str, ExperienceDistributionModel] = Field(
        default_factory=dict, alias="roleExperienceDistribution"
    )
    # Locale-specific portfolio indicators, same shape as /api/v1/portfolio-tiers items
    portfolio_indicators: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="portfolioIndicators")


def _to_custom_task(role_id: str, index: int, task: CustomTaskModel) -> CustomTask:
    try:
        complexity = TaskComplexity(task.estimated_complexity)
    except ValueError:
        raise ValidationError(f"customTasks.{role_id}[{index}].estimatedComplexity",
                              "InvalidComplexity", f"Unknown complexity {task.estimated_complexity!r}")
    return CustomTask(id=task.id, description=task.description, estimated_complexity=complexity)


def _to_calculator_input(req: CalculationRequest) -> CalculatorInput:
    return CalculatorInput(
        portfolio_size=req.portfolio_size,
        selected_roles=dict(req.selected_roles),
        experience_level=req.experience_level,
        selected_tasks=dict(req.selected_tasks),
        custom_tasks={
            role_id: [_to_custom_task(role_id, i, t) for i, t in enumerate(tasks)]
            for role_id, tasks in req.custom_tasks.items()
        },
        team_size=dict(req.team_size),
        role_experience_distribution={
            role_id: ExperienceDistribution(entry=d.entry, moderate=d.moderate, experienced=d.experienced)
            for role_id, d in req.role_experience_distribution.items()
        },
    )


def _service_for(req: CalculationRequest) -> CalculationService:
    if not req.portfolio_indicators:
        return calculation_service
    indicators = portfolio_indicators_from_payload(req.portfolio_indicators)
    return calculation_service.with_data_service(data_service.with_portfolio_indicators(indicators))


@app.post("/api/v1/validate")
def validate(req: CalculationRequest):
    """Non-fatal warnings for a calculator input"""
    service = _service_for(req)
    return {"warnings": service.validate_input(_to_calculator_input(req))}


@app.post("/api/v1/calculate")
def calculate(req: CalculationRequest):
    """Savings, lead score, timeline and risk for a calculator input"""
    service = _service_for(req)
    calc_input = _to_calculator_input(req)

    warnings = service.validate_input(calc_input)
    result = service.calculate_savings(calc_input)

    return {
        "warnings": warnings,
        "calculation_result": asdict(result),
    }


if __name__ == "__main__":
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000, reload=False)
