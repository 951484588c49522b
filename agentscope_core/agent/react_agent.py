"""
ReActAgent：推理（Reasoning）→ 行动（Acting）循环

每轮迭代：
    检查中断 → 推理（模型调用） → 检查中断 → 最新回复里没有可执行的工具调用则结束，否则执行工具

达到 max_iters 仍未结束：不带工具再调用一次模型，让其总结当前进展。

可选能力：
- plan_notebook：计划工具注册到 plan_related 分组，每轮推理前追加计划提示
- knowledge：generic 模式自动检索注入（GenericRAGHook），agentic 模式注册 retrieve_knowledge 工具
- skill_box：Skill 目录拼接到系统提示词，并注册 load_skill_through_path
- structured_model：临时注册 generate_response 工具并强制 tool_choice="required"
"""

import json
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ValidationError

from agentscope_core.agent.base import INTERRUPT_REPLY, AgentBase
from agentscope_core.config import get_settings
from agentscope_core.exceptions import AgentInterruptedError
from agentscope_core.formatter.base import FormatterBase
from agentscope_core.hooks import (
    Hook,
    PostActingEvent,
    PostReasoningEvent,
    PreActingEvent,
    PreReasoningEvent,
    ReasoningChunkEvent,
)
from agentscope_core.memory import InMemoryMemory, MemoryBase
from agentscope_core.message import Msg, TextBlock, ToolResultBlock, ToolUseBlock
from agentscope_core.model.base import ChatModelBase, ChatResponse, GenerateOptions
from agentscope_core.plan import PlanNotebook
from agentscope_core.rag import GenericRAGHook, KnowledgeBase, KnowledgeRetrievalTools, RetrieveConfig
from agentscope_core.skill import SkillBox
from agentscope_core.tool.base import BaseTool
from agentscope_core.tool.response import ToolResponse
from agentscope_core.tool.toolkit import Toolkit

log = structlog.get_logger()

PLAN_GROUP = "plan_related"
GENERATE_RESPONSE = "generate_response"

SUMMARY_HINT = (
    "You have failed to generate response within the maximum iterations. "
    "Now respond directly by summarizing the current situation."
)
SUMMARY_FALLBACK = "Maximum iterations (%d) reached. Unable to generate summary."
STRUCTURED_REMINDER = (
    "To complete this request, call the 'generate_response' function "
    "with your answer formatted according to the specified schema."
)
TOOL_INTERRUPTED = "The tool call has been interrupted by the user."


class _GenerateResponseTool(BaseTool):
    """结构化输出工具：参数即目标模型的字段"""

    def __init__(self, structured_model: type[BaseModel]):
        self._structured_model = structured_model

    @property
    def name(self) -> str:
        return GENERATE_RESPONSE

    @property
    def description(self) -> str:
        return (
            "Generate the final response in the required structured format. Call this function "
            "when you are ready to give the final answer."
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return self._structured_model

    async def execute(self, args: dict) -> ToolResponse:
        try:
            response = self._structured_model.model_validate(args)
        except ValidationError as e:
            error = str(e).split("\n")[0][:200]
            log.warning("结构化输出校验失败", error=error)
            return ToolResponse.fail(
                f"Schema validation failed: {error}\n\nPlease review the expected structure and "
                f"call '{GENERATE_RESPONSE}' again with a correctly formatted response object."
            )
        return ToolResponse.text(
            "Successfully generated response.",
            response=response.model_dump(mode="json"),
        )


class ReActAgent(AgentBase):
    """ReAct 智能体"""

    def __init__(
        self,
        name: str,
        sys_prompt: str,
        model: ChatModelBase,
        formatter: FormatterBase,
        toolkit: Toolkit | None = None,
        memory: MemoryBase | None = None,
        max_iters: int | None = None,
        parallel_tool_calls: bool = True,
        plan_notebook: PlanNotebook | None = None,
        knowledge: KnowledgeBase | None = None,
        rag_mode: Literal["generic", "agentic"] = "generic",
        retrieve_config: RetrieveConfig | None = None,
        skill_box: SkillBox | None = None,
        generate_options: GenerateOptions | None = None,
        hooks: list[Hook] | None = None,
        description: str = "",
    ):
        super().__init__(name, description, hooks)
        self.sys_prompt = sys_prompt
        self.model = model
        self.formatter = formatter
        self.toolkit = toolkit or Toolkit()
        self.memory = memory or InMemoryMemory()
        self.max_iters = max_iters or get_settings().REACT_MAX_ITERS
        self.parallel_tool_calls = parallel_tool_calls
        self.generate_options = generate_options
        self.skill_box = skill_box
        self.plan_notebook = plan_notebook

        if max_iters is not None and max_iters <= 0:
            raise ValueError("max_iters must be positive")

        if plan_notebook is not None:
            self._equip_plan_notebook(plan_notebook)

        if knowledge is not None:
            if rag_mode == "generic":
                self.add_hook(GenericRAGHook(knowledge, retrieve_config))
            elif rag_mode == "agentic":
                tools = KnowledgeRetrievalTools(knowledge, retrieve_config)
                self.toolkit.register_tool_function(tools.retrieve_knowledge)
            else:
                raise ValueError(f"Unknown rag_mode '{rag_mode}', expected 'generic' or 'agentic'")

        if skill_box is not None:
            skill_box.register_skill_load_tool(self.toolkit)

        self.register_state("sys_prompt")

    def _equip_plan_notebook(self, notebook: PlanNotebook) -> None:
        if PLAN_GROUP not in self.toolkit.groups:
            self.toolkit.create_tool_group(PLAN_GROUP, PlanNotebook.DESCRIPTION, active=True)
        for func in notebook.list_tools():
            if not self.toolkit.has_tool(func.__name__):
                self.toolkit.register_tool_function(func, group_name=PLAN_GROUP)

    # ── 提示词 ──

    def build_sys_prompt(self) -> str:
        """系统提示词 + Skill 目录 + 已激活工具分组说明"""
        parts = [self.sys_prompt]
        if self.skill_box is not None:
            parts.append(self.skill_box.get_skill_prompt())
        parts.append(self.toolkit.get_activated_notes())
        return "\n\n".join(p for p in parts if p)

    async def _build_prompt(self) -> list[Msg]:
        prompt: list[Msg] = []
        sys_prompt = self.build_sys_prompt()
        if sys_prompt:
            prompt.append(Msg("system", sys_prompt, "system"))
        prompt.extend(await self.memory.get_memory())
        return prompt

    # ── 主循环 ──

    async def reply(
        self,
        msgs: list[Msg],
        structured_model: type[BaseModel] | None = None,
        **kwargs: Any,
    ) -> Msg:
        await self.memory.add(msgs)

        tool_choice: str | None = None
        if structured_model is not None:
            if self.toolkit.has_tool(GENERATE_RESPONSE):
                self.toolkit.remove_tool_function(GENERATE_RESPONSE)
            self.toolkit.register_tool(_GenerateResponseTool(structured_model))
            tool_choice = "required"

        try:
            for iteration in range(self.max_iters):
                self._check_interrupted()
                reasoning_msg, stop_agent = await self._reasoning(
                    tool_choice,
                    remind_structured=structured_model is not None and iteration > 0,
                )
                self._check_interrupted()

                tool_uses = reasoning_msg.get_content_blocks("tool_use")
                if stop_agent:
                    log.info("钩子要求停止，跳过工具执行", agent=self.name, iteration=iteration)
                    return reasoning_msg
                if not any(self.toolkit.has_tool(t.name) for t in tool_uses):
                    if structured_model is None:
                        return reasoning_msg
                    continue

                results = await self._acting(tool_uses)
                final = self._extract_structured_output(results)
                if final is not None:
                    await self.memory.add(final)
                    return final

            if structured_model is not None:
                message = (
                    f"Failed to generate structured output within maximum iterations "
                    f"({self.max_iters}). The model did not call the '{GENERATE_RESPONSE}' function."
                )
                log.error("结构化输出失败", agent=self.name, max_iters=self.max_iters)
                raise RuntimeError(message)

            return await self._summarizing()
        finally:
            if structured_model is not None:
                self.toolkit.remove_tool_function(GENERATE_RESPONSE)

    async def _call_model(
        self,
        messages: list[Msg],
        tools: list[dict] | None,
        tool_choice: str | None,
        msg_id: str | None = None,
    ) -> list:
        """调用模型并返回最终内容块；流式时逐块检查中断并触发 ReasoningChunkEvent"""
        result = await self.model(
            self.formatter.format(messages),
            tools=tools,
            tool_choice=tool_choice if tools else None,
            options=self.generate_options,
        )
        if isinstance(result, ChatResponse):
            return result.content

        content: list = []
        async for chunk in result:
            self._check_interrupted()
            content = chunk.content
            if msg_id is not None:
                chunk_msg = Msg(self.name, list(content), "assistant", id=msg_id)
                await self._notify(ReasoningChunkEvent(self, chunk_msg))
        return content

    async def _reasoning(self, tool_choice: str | None, remind_structured: bool = False) -> tuple[Msg, bool]:
        prompt = await self._build_prompt()
        if self.plan_notebook is not None:
            hint = await self.plan_notebook.get_current_hint()
            if hint is not None:
                prompt.append(hint)
        if remind_structured:
            prompt.append(Msg("user", STRUCTURED_REMINDER, "user", metadata={"is_hint": True}))

        event = await self._notify(PreReasoningEvent(self, prompt))
        tools = self.formatter.format_tools(self.toolkit.get_json_schemas()) or None

        msg = Msg(self.name, [], "assistant")
        msg.content = await self._call_model(event.input_messages, tools, tool_choice, msg_id=msg.id)

        post_event = await self._notify(PostReasoningEvent(self, msg))
        msg = post_event.reasoning_message or msg
        await self.memory.add(msg)
        log.debug(
            "推理完成",
            agent=self.name,
            tool_calls=[t.name for t in msg.get_content_blocks("tool_use")],
        )
        return msg, post_event.stop_agent

    async def _acting(self, tool_uses: list[ToolUseBlock]) -> list[ToolResultBlock]:
        prepared: list[ToolUseBlock] = []
        for tool_use in tool_uses:
            event = await self._notify(PreActingEvent(self, tool_use))
            prepared.append(event.tool_use or tool_use)

        responses = await self.toolkit.call_tools(prepared, parallel=self.parallel_tool_calls)

        results: list[ToolResultBlock] = []
        for tool_use, response in zip(prepared, responses):
            block = ToolResultBlock(
                id=tool_use.id,
                name=tool_use.name,
                output=response.content,
                metadata=response.metadata,
            )
            event = await self._notify(PostActingEvent(self, tool_use, block))
            block = event.tool_result or block
            await self.memory.add(Msg("system", [block], "tool"))
            results.append(block)
        return results

    def _extract_structured_output(self, results: list[ToolResultBlock]) -> Msg | None:
        for block in results:
            if block.name == GENERATE_RESPONSE and block.metadata.get("success") and "response" in block.metadata:
                response = block.metadata["response"]
                return Msg(
                    self.name,
                    json.dumps(response, ensure_ascii=False),
                    "assistant",
                    metadata=dict(response),
                )
        return None

    async def _summarizing(self) -> Msg:
        log.info("达到最大迭代次数，生成总结", agent=self.name, max_iters=self.max_iters)
        self._check_interrupted()
        prompt = await self._build_prompt()
        prompt.append(Msg("user", SUMMARY_HINT, "user", metadata={"is_hint": True}))

        msg = Msg(self.name, [], "assistant")
        try:
            content = await self._call_model(prompt, tools=None, tool_choice=None, msg_id=msg.id)
            self._check_interrupted()
        except AgentInterruptedError:
            raise
        except Exception as e:
            log.error("总结生成失败", agent=self.name, error=str(e), exc_info=True)
            content = []

        # 总结阶段不执行工具，只保留文本与思考内容
        content = [b for b in content if b.type in ("text", "thinking")]
        if not any(b.type == "text" for b in content):
            content = [TextBlock(text=SUMMARY_FALLBACK % self.max_iters)]

        msg.content = content
        await self.memory.add(msg)
        return msg

    # ── 中断与观察 ──

    async def handle_interrupt(self, msgs: list[Msg]) -> Msg:
        """为未完成的工具调用补齐结果，再返回恢复提示"""
        memory = await self.memory.get_memory()
        answered = {
            b.id for m in memory for b in m.get_content_blocks("tool_result")
        }
        for msg in reversed(memory):
            if msg.role != "assistant":
                continue
            for tool_use in msg.get_content_blocks("tool_use"):
                if tool_use.id not in answered:
                    block = ToolResultBlock.text(TOOL_INTERRUPTED, id=tool_use.id, name=tool_use.name)
                    await self.memory.add(Msg("system", [block], "tool"))
            break

        recovery = Msg(self.name, INTERRUPT_REPLY, "assistant", metadata={"interrupted": True})
        await self.memory.add(recovery)
        return recovery

    async def observe(self, msg: Msg | list[Msg] | None) -> None:
        await self.memory.add(msg)
