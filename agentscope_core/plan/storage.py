"""
历史计划存储：finish_plan 归档的计划可被查看和恢复
"""

from abc import ABC, abstractmethod

from agentscope_core.plan.schemas import Plan
from agentscope_core.session.state import StateModule


class PlanStorageBase(ABC):
    @abstractmethod
    async def add_plan(self, plan: Plan) -> None:
        ...

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Plan | None:
        ...

    @abstractmethod
    async def get_plans(self) -> list[Plan]:
        ...

    @abstractmethod
    async def delete_plan(self, plan_id: str) -> None:
        ...


class InMemoryPlanStorage(PlanStorageBase, StateModule):
    """进程内历史计划存储，随会话状态一起持久化"""

    def __init__(self) -> None:
        super().__init__()
        self.plans: dict[str, Plan] = {}
        self.register_state(
            "plans",
            custom_to_json=lambda plans: {pid: p.model_dump(mode="json") for pid, p in plans.items()},
            custom_from_json=lambda data: {pid: Plan.model_validate(p) for pid, p in data.items()},
        )

    async def add_plan(self, plan: Plan) -> None:
        self.plans[plan.id] = plan

    async def get_plan(self, plan_id: str) -> Plan | None:
        return self.plans.get(plan_id)

    async def get_plans(self) -> list[Plan]:
        return list(self.plans.values())

    async def delete_plan(self, plan_id: str) -> None:
        self.plans.pop(plan_id, None)
