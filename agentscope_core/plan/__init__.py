from agentscope_core.plan.hint import DefaultPlanToHint, PlanToHint
from agentscope_core.plan.notebook import PlanNotebook
from agentscope_core.plan.schemas import Plan, SubTask
from agentscope_core.plan.storage import InMemoryPlanStorage, PlanStorageBase

__all__ = [
    "DefaultPlanToHint",
    "InMemoryPlanStorage",
    "Plan",
    "PlanNotebook",
    "PlanStorageBase",
    "PlanToHint",
    "SubTask",
]
