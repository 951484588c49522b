"""
PlanNotebook：智能体的计划笔记本

向智能体提供一组计划工具（create_plan / revise_current_plan / finish_subtask ...），
并在每轮推理前根据计划状态生成提示。所有工具返回 ToolResponse 文本，
前置条件不满足（尚未创建计划）时抛出 PlanNotebookError，由 Toolkit 转为错误结果。
"""

import inspect
from collections.abc import Callable
from typing import Any

import structlog

from agentscope_core.exceptions import PlanNotebookError
from agentscope_core.message import Msg
from agentscope_core.plan.hint import DefaultPlanToHint, PlanToHint
from agentscope_core.plan.schemas import FINISHED_STATES, Plan, SubTask
from agentscope_core.plan.storage import InMemoryPlanStorage, PlanStorageBase
from agentscope_core.session.state import StateModule
from agentscope_core.tool.response import ToolResponse

log = structlog.get_logger()

PlanChangeHook = Callable[["PlanNotebook", Plan | None], Any]


class PlanNotebook(StateModule):
    """计划笔记本"""

    DESCRIPTION = (
        "The plan-related tools. Activate this tool when you need to execute complex task, "
        "e.g. building a website or a game. Once activated, you'll enter the plan mode, where "
        "you will be guided to complete the given query by creating and following a plan, and "
        "hint message wrapped by <system-hint></system-hint> will guide you to complete the task. "
        "If you think the user no longer wants to perform the current task, you need to confirm "
        "with the user and call the 'finish_plan' function."
    )

    def __init__(
        self,
        max_subtasks: int | None = None,
        need_user_confirm: bool = True,
        plan_to_hint: PlanToHint | None = None,
        storage: PlanStorageBase | None = None,
    ):
        super().__init__()
        self.max_subtasks = max_subtasks
        self.need_user_confirm = need_user_confirm
        self.plan_to_hint = plan_to_hint or DefaultPlanToHint()
        self.storage = storage or InMemoryPlanStorage()
        self.current_plan: Plan | None = None
        self._plan_change_hooks: dict[str, PlanChangeHook] = {}

        self.register_state(
            "current_plan",
            custom_to_json=lambda plan: plan.model_dump(mode="json") if plan else None,
            custom_from_json=lambda data: Plan.model_validate(data) if data else None,
        )

    # ── 变更钩子 ──

    def register_plan_change_hook(self, hook_name: str, hook: PlanChangeHook) -> None:
        """注册计划变更钩子，签名 hook(notebook, plan)，可为同步或异步函数"""
        self._plan_change_hooks[hook_name] = hook

    def remove_plan_change_hook(self, hook_name: str) -> None:
        if self._plan_change_hooks.pop(hook_name, None) is None:
            log.warning("计划变更钩子不存在", hook=hook_name)

    async def _trigger_plan_change_hooks(self) -> None:
        for name, hook in self._plan_change_hooks.items():
            result = hook(self, self.current_plan)
            if inspect.isawaitable(result):
                await result
            log.debug("计划变更钩子已执行", hook=name)

    def _validate_current_plan(self) -> Plan:
        if self.current_plan is None:
            raise PlanNotebookError(
                "The current plan is None, you need to create a plan by calling create_plan() first."
            )
        return self.current_plan

    # ── 提示 ──

    async def get_current_hint(self) -> Msg | None:
        """根据当前计划状态生成提示消息"""
        hint = self.plan_to_hint(self.current_plan, self)
        if not hint:
            return None
        return Msg("user", hint, "user", metadata={"is_hint": True})

    def list_tools(self) -> list[Callable]:
        return [
            self.create_plan,
            self.update_plan_info,
            self.revise_current_plan,
            self.update_subtask_state,
            self.finish_subtask,
            self.view_subtasks,
            self.get_subtask_count,
            self.finish_plan,
            self.view_historical_plans,
            self.recover_historical_plan,
        ]

    # ── 计划工具 ──

    async def create_plan(
        self,
        name: str,
        description: str,
        expected_outcome: str,
        subtasks: list[SubTask],
    ) -> ToolResponse:
        """Create a plan by given name and subtasks.

        Args:
            name (str): The plan name, should be concise, descriptive and not exceed 10 words.
            description (str): The plan description, including the constraints, target and
                outcome to be achieved. The description should be clear, specific and concise,
                and all the constraints, target and outcome should be specific and measurable.
            expected_outcome (str): The expected outcome of the plan, which should be specific,
                concrete and measurable.
            subtasks (list[SubTask]): A list of sequential subtasks that make up the plan.
        """
        if self.max_subtasks is not None and len(subtasks) > self.max_subtasks:
            return ToolResponse.text(
                f"Cannot create plan: the number of subtasks ({len(subtasks)}) exceeds the "
                f"maximum limit of {self.max_subtasks}. Please reduce the number of subtasks."
            )

        plan = Plan(
            name=name,
            description=description,
            expected_outcome=expected_outcome,
            subtasks=subtasks,
        )
        if self.current_plan is None:
            text = f"Plan '{name}' created successfully."
        else:
            text = (
                f"The current plan named '{self.current_plan.name}' is replaced by the newly "
                f"created plan named '{name}'."
            )

        self.current_plan = plan
        log.info("计划已创建", plan=name, subtasks=len(subtasks))
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(text)

    async def update_plan_info(
        self,
        name: str | None = None,
        description: str | None = None,
        expected_outcome: str | None = None,
    ) -> ToolResponse:
        """Update the name, description or expected outcome of the current plan. Only the
        provided non-empty fields are changed.

        Args:
            name (str | None): The new plan name.
            description (str | None): The new plan description.
            expected_outcome (str | None): The new expected outcome of the plan.
        """
        plan = self._validate_current_plan()
        changes: list[str] = []

        if name and name.strip():
            old_name = plan.name
            plan.name = name.strip()
            changes.append(f"name: '{old_name}' -> '{plan.name}'")
        if description and description.strip():
            plan.description = description.strip()
            changes.append("description updated")
        if expected_outcome and expected_outcome.strip():
            plan.expected_outcome = expected_outcome.strip()
            changes.append("expected_outcome updated")

        if not changes:
            return ToolResponse.text("No changes were made. Please provide at least one field to update.")

        await self._trigger_plan_change_hooks()
        return ToolResponse.text(f"Plan '{plan.name}' updated successfully: {', '.join(changes)}.")

    async def revise_current_plan(
        self,
        subtask_idx: int,
        action: str,
        subtask: SubTask | None = None,
    ) -> ToolResponse:
        """Revise the current plan by adding, revising or deleting a subtask.

        Args:
            subtask_idx (int): The index of the subtask to be revised, starting from 0.
            action (str): The action to be performed on the subtask, one of 'add', 'revise'
                and 'delete'.
            subtask (SubTask | None): The subtask to be added or revised. Required if action
                is 'add' or 'revise'.
        """
        plan = self._validate_current_plan()
        if action not in ("add", "revise", "delete"):
            return ToolResponse.text(
                f"Invalid action '{action}'. Must be one of 'add', 'revise', 'delete'."
            )

        n_subtasks = len(plan.subtasks)
        if action == "add":
            if not 0 <= subtask_idx <= n_subtasks:
                return ToolResponse.text(
                    f"Invalid subtask_idx '{subtask_idx}' for action 'add'. "
                    f"Must be between 0 and {n_subtasks}."
                )
            if self.max_subtasks is not None and n_subtasks >= self.max_subtasks:
                return ToolResponse.text(
                    "Cannot add more subtasks: the current plan has reached the maximum limit "
                    f"of {self.max_subtasks} subtasks. Please delete some existing subtasks first."
                )
            if subtask is None:
                return ToolResponse.text("The subtask must be provided when action is 'add'.")

            plan.subtasks.insert(subtask_idx, subtask)
            text = f"New subtask is added successfully at index {subtask_idx}."
        else:
            if not 0 <= subtask_idx < n_subtasks:
                return ToolResponse.text(
                    f"Invalid subtask_idx '{subtask_idx}' for action '{action}'. "
                    f"Must be between 0 and {n_subtasks - 1}."
                )
            if action == "delete":
                removed = plan.subtasks.pop(subtask_idx)
                text = f"Subtask (named '{removed.name}') at index {subtask_idx} is deleted successfully."
            else:
                if subtask is None:
                    return ToolResponse.text("The subtask must be provided when action is 'revise'.")
                plan.subtasks[subtask_idx] = subtask
                text = f"Subtask at index {subtask_idx} is revised successfully."

        plan.refresh_state()
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(text)

    def _validate_subtask_idx(self, plan: Plan, subtask_idx: int) -> str | None:
        if 0 <= subtask_idx < len(plan.subtasks):
            return None
        return f"Invalid subtask_idx '{subtask_idx}'. Must be between 0 and {len(plan.subtasks) - 1}."

    async def update_subtask_state(self, subtask_idx: int, state: str) -> ToolResponse:
        """Update the state of a subtask by given index and state. Note if you want to mark a
        subtask as done, you SHOULD call `finish_subtask` instead with the specific outcome.

        Args:
            subtask_idx (int): The index of the subtask to be updated, starting from 0.
            state (str): The new state of the subtask, one of 'todo', 'in_progress' and
                'abandoned'.
        """
        plan = self._validate_current_plan()
        error = self._validate_subtask_idx(plan, subtask_idx)
        if error:
            return ToolResponse.text(error)

        if state == "done":
            return ToolResponse.text(
                "To mark a subtask as done, you SHOULD call 'finish_subtask' instead with the "
                "specific outcome."
            )
        if state not in ("todo", "in_progress", "abandoned"):
            return ToolResponse.text(
                f"Invalid state '{state}'. Must be one of 'todo', 'in_progress', 'abandoned'."
            )

        if state == "in_progress":
            for idx, st in enumerate(plan.subtasks[:subtask_idx]):
                if st.state not in FINISHED_STATES:
                    return ToolResponse.text(
                        f"Subtask (at index {idx}) named '{st.name}' is not done yet. You should "
                        "finish the previous subtasks first."
                    )
            for idx, st in enumerate(plan.subtasks):
                if st.state == "in_progress":
                    return ToolResponse.text(
                        f"Subtask (at index {idx}) named '{st.name}' is already 'in_progress'. You "
                        "should finish it first before starting another subtask."
                    )

        subtask = plan.subtasks[subtask_idx]
        subtask.state = state
        plan.refresh_state()
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(
            f"Subtask at index {subtask_idx}, named '{subtask.name}' is marked as '{state}' successfully."
        )

    async def finish_subtask(self, subtask_idx: int, subtask_outcome: str) -> ToolResponse:
        """Label the subtask as done by given index and outcome.

        Args:
            subtask_idx (int): The index of the subtask to be marked as done, starting from 0.
            subtask_outcome (str): The specific outcome of the subtask, e.g. the generated
                file path, the obtained information or the conclusion.
        """
        plan = self._validate_current_plan()
        error = self._validate_subtask_idx(plan, subtask_idx)
        if error:
            return ToolResponse.text(error)

        for idx, st in enumerate(plan.subtasks[:subtask_idx]):
            if st.state not in FINISHED_STATES:
                return ToolResponse.text(
                    f"Cannot finish subtask at index {subtask_idx} because the previous subtask "
                    f"(at index {idx}) named '{st.name}' is not done yet. You should finish the "
                    "previous subtasks first."
                )

        subtask = plan.subtasks[subtask_idx]
        subtask.finish(subtask_outcome)
        text = f"Subtask (at index {subtask_idx}) named '{subtask.name}' is marked as done successfully."

        next_idx = subtask_idx + 1
        if next_idx < len(plan.subtasks):
            next_subtask = plan.subtasks[next_idx]
            next_subtask.state = "in_progress"
            text += f" The next subtask (at index {next_idx}) named '{next_subtask.name}' is activated."

        plan.refresh_state()
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(text)

    async def view_subtasks(self, subtask_idx: list[int]) -> ToolResponse:
        """View the details of the subtasks by given indexes.

        Args:
            subtask_idx (list[int]): The indexes of the subtasks to be viewed, starting from 0.
        """
        plan = self._validate_current_plan()
        parts: list[str] = []
        for idx in subtask_idx:
            if 0 <= idx < len(plan.subtasks):
                parts.append(f"Subtask at index {idx}:\n```\n{plan.subtasks[idx].to_markdown(detailed=True)}\n```\n\n")
            else:
                parts.append(f"Invalid subtask_idx '{idx}'. Must be between 0 and {len(plan.subtasks) - 1}.\n")
        return ToolResponse.text("".join(parts))

    async def get_subtask_count(self) -> ToolResponse:
        """Get the number of subtasks in the current plan, grouped by state."""
        plan = self.current_plan
        if plan is None:
            return ToolResponse.text("There is no active plan. Please create a plan first.")
        if not plan.subtasks:
            return ToolResponse.text(f"Current plan '{plan.name}' has 0 subtask(s).")

        states = [st.state for st in plan.subtasks]
        return ToolResponse.text(
            f"Current plan '{plan.name}' has {len(states)} subtask(s): "
            f"{states.count('done')} done, {states.count('in_progress')} in_progress, "
            f"{states.count('todo')} todo, {states.count('abandoned')} abandoned."
        )

    async def finish_plan(self, state: str, outcome: str) -> ToolResponse:
        """Finish the current plan by given outcome, or abandon it when the user no longer
        wants to perform it.

        Args:
            state (str): The state to finish the plan, one of 'done' and 'abandoned'.
            outcome (str): The specific outcome of the plan if done, or the reason if abandoned.
        """
        plan = self.current_plan
        if plan is None:
            return ToolResponse.text("There is no plan to finish.")
        if state not in FINISHED_STATES:
            return ToolResponse.text(f"Invalid state '{state}'. Must be 'done' or 'abandoned'.")

        plan.finish(state, outcome)
        await self.storage.add_plan(plan)
        self.current_plan = None
        log.info("计划已结束", plan=plan.name, state=state)
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(f"The current plan is finished successfully as '{state}'.")

    async def view_historical_plans(self) -> ToolResponse:
        """View the historical plans."""
        plans = await self.storage.get_plans()
        if not plans:
            return ToolResponse.text("No historical plans found.")
        return ToolResponse.text("".join(
            f"Plan named '{p.name}':\n- ID: {p.id}\n- Created at: {p.created_at}\n"
            f"- Description: {p.description}\n- State: {p.state}\n\n"
            for p in plans
        ))

    async def recover_historical_plan(self, plan_id: str) -> ToolResponse:
        """Recover a historical plan by given plan ID. The current plan, if unfinished, is
        abandoned and stored into the historical plans.

        Args:
            plan_id (str): The ID of the historical plan to recover.
        """
        historical = await self.storage.get_plan(plan_id)
        if historical is None:
            return ToolResponse.text(f"Cannot find the plan with ID '{plan_id}'.")

        current = self.current_plan
        if current is not None:
            if current.state != "done":
                current.finish(
                    "abandoned",
                    f"The plan execution is interrupted by a new plan with ID '{plan_id}'.",
                )
            await self.storage.add_plan(current)
            text = (
                f"The current plan named '{current.name}' is replaced by the historical plan "
                f"named '{historical.name}' with ID '{plan_id}'."
            )
        else:
            text = f"Historical plan named '{historical.name}' with ID '{plan_id}' is recovered successfully."

        self.current_plan = historical
        await self._trigger_plan_change_hooks()
        return ToolResponse.text(text)
