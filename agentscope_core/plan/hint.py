"""
计划提示生成：根据当前计划所处阶段，生成注入给模型的 <system-hint>

五个阶段：
1. 没有计划：提示复杂任务先 create_plan
2. 全部子任务 todo：提示开始第一个子任务
3. 某个子任务 in_progress：给出该子任务详情
4. 没有进行中的子任务，但已有完成的：提示开始下一个
5. 全部完成/放弃：提示 finish_plan
"""

from typing import TYPE_CHECKING

from agentscope_core.plan.schemas import Plan

if TYPE_CHECKING:
    from agentscope_core.plan.notebook import PlanNotebook

HINT_PREFIX = "<system-hint>"
HINT_SUFFIX = "</system-hint>"
IMPORTANT_RULES_SEPARATOR = "Important Rules: \n"

RULE_WAIT_FOR_CONFIRMATION = (
    "⚠️ WAIT FOR USER CONFIRMATION:\n"
    "- Present the plan and confirm with user before execution\n"
    "- If user's request already implies execution intent (e.g., \"execute\","
    " \"execute the plan\"), proceed directly without asking\n"
    "- Otherwise, ask: \"Should I proceed with this plan?\"\n"
    "- Start execution only after user confirms (e.g., \"yes\", \"go ahead\","
    " \"proceed\", \"do it\")\n"
    "- If user says anything else (questions, modifications, unrelated topics),"
    " respond accordingly but DO NOT start execution\n"
)

RULE_SUBTASK_LIMIT = "- Subtask Limit: Ensure the plan consists of no more than {max_subtasks} subtasks\n"

RULE_COMMON = (
    "- Update before processing each subtask: When processing each subtask, call"
    " get_subtask_count and view_subtasks to confirm the latest information:"
    " get_subtask_count is used to confirm the total number of subtasks to avoid"
    " omissions;view_subtasks is used to query subtask information, execute subtasks"
    " strictly according to the latest information, and pay attention to ignoring the"
    " original request.\n"
    "- User May Modify Plan: Users can directly add, edit, or delete subtasks without"
    " going through you.\n"
    "- Only focus on the current content: Always follow the latest plan content,"
    " especially when the original plan conflicts with the latest queried plan,"
    " follow the latest queried plan without considering the initial requirements.\n"
    "- Do not modify plan: Do not modify or amend the plan without a clear plan"
    " modification instruction from user\n"
    "- Language consistency: Respond to users in the same language as the plan\n"
)

NO_PLAN = (
    "If the user's query is complex (e.g. programming a website, game or app), or requires"
    " a long chain of steps to complete (e.g. conduct research on a certain topic"
    " from different sources), you NEED to create a plan first by calling"
    " 'create_plan'. Otherwise, you can directly execute the user's query without"
    " planning.\n"
)

AT_THE_BEGINNING = (
    "The current plan:\n"
    "```\n"
    "{plan}\n"
    "```\n"
    "Your options include:\n"
    "- Mark the first subtask as 'in_progress' by calling 'update_subtask_state' with"
    " subtask_idx=0 and state='in_progress', and start executing it.\n"
    "- If the first subtask is not executable, analyze why and what you can do to"
    " advance the plan, e.g. ask user for more information, revise the plan by"
    " calling 'revise_current_plan'.\n"
    "- If the user asks you to do something unrelated to the plan, prioritize the"
    " completion of user's query first, and then return to the plan afterward.\n"
    "- If the user no longer wants to perform the current plan, confirm with the user"
    " and call the 'finish_plan' function.\n"
)

WHEN_A_SUBTASK_IN_PROGRESS = (
    "The current plan:\n"
    "```\n"
    "{plan}\n"
    "```\n"
    "Now the subtask at index {subtask_idx}, named '{subtask_name}', is "
    "'in_progress'. Its details are as follows:\n"
    "```\n"
    "{subtask}\n"
    "```\n"
    "Your options include:\n"
    "- Go on execute the subtask and get the outcome.\n"
    "- Call 'finish_subtask' with the specific outcome if the subtask is "
    "finished.\n"
    "- Ask the user for more information if you need.\n"
    "- Revise the plan by calling 'revise_current_plan' if necessary.\n"
    "- If the user asks you to do something unrelated to the plan, "
    "prioritize the completion of user's query first, and then return to "
    "the plan afterward.\n"
)

WHEN_NO_SUBTASK_IN_PROGRESS = (
    "The current plan:\n"
    "```\n"
    "{plan}\n"
    "```\n"
    "The first {index} subtasks are done, and there is no subtask "
    "'in_progress'. Now Your options include:\n"
    "- Mark the next subtask as 'in_progress' by calling "
    "'update_subtask_state', and start executing it.\n"
    "- Ask the user for more information if you need.\n"
    "- Revise the plan by calling 'revise_current_plan' if necessary.\n"
    "- If the user asks you to do something unrelated to the plan, "
    "prioritize the completion of user's query first, and then return to "
    "the plan afterward.\n"
)

AT_THE_END = (
    "The current plan:\n"
    "```\n"
    "{plan}\n"
    "```\n"
    "All the subtasks are done. Now your options are:\n"
    "- Finish the plan by calling 'finish_plan' with the specific "
    "outcome, and summarize the whole process and outcome to the user.\n"
    "- Revise the plan by calling 'revise_current_plan' if necessary.\n"
    "- If the user asks you to do something unrelated to the plan, "
    "prioritize the completion of user's query first, and then return to "
    "the plan afterward.\n"
)


class PlanToHint:
    """提示生成器协议：返回 None 表示本轮不注入提示"""

    def __call__(self, plan: Plan | None, notebook: "PlanNotebook") -> str | None:
        raise NotImplementedError


class DefaultPlanToHint(PlanToHint):
    """默认提示生成器"""

    def __call__(self, plan: Plan | None, notebook: "PlanNotebook") -> str | None:
        confirmation_rule = RULE_WAIT_FOR_CONFIRMATION if notebook.need_user_confirm else ""

        if plan is None:
            rules = confirmation_rule
            if notebook.max_subtasks is not None:
                rules += RULE_SUBTASK_LIMIT.replace("{max_subtasks}", str(notebook.max_subtasks))
            hint = NO_PLAN + IMPORTANT_RULES_SEPARATOR + rules if rules else NO_PLAN
            return HINT_PREFIX + hint + HINT_SUFFIX

        states = [st.state for st in plan.subtasks]
        n_in_progress = states.count("in_progress")
        n_done = states.count("done")
        n_abandoned = states.count("abandoned")
        plan_md = plan.to_markdown(detailed=False)

        if n_done + n_abandoned == len(states):
            hint = AT_THE_END.replace("{plan}", plan_md)
        elif n_in_progress == 0 and n_done == 0:
            hint = (
                AT_THE_BEGINNING.replace("{plan}", plan_md)
                + IMPORTANT_RULES_SEPARATOR
                + confirmation_rule
                + RULE_COMMON
            )
        elif n_in_progress > 0:
            idx = states.index("in_progress")
            subtask = plan.subtasks[idx]
            hint = (
                WHEN_A_SUBTASK_IN_PROGRESS.replace("{plan}", plan_md)
                .replace("{subtask_idx}", str(idx))
                .replace("{subtask_name}", subtask.name)
                .replace("{subtask}", subtask.to_markdown(detailed=True))
                + IMPORTANT_RULES_SEPARATOR
                + RULE_COMMON
            )
        elif n_done > 0:
            hint = (
                WHEN_NO_SUBTASK_IN_PROGRESS.replace("{plan}", plan_md).replace("{index}", str(n_done))
                + IMPORTANT_RULES_SEPARATOR
                + RULE_COMMON
            )
        else:
            return None

        return HINT_PREFIX + hint + HINT_SUFFIX
