"""
工具参数 JSON 修复：模型输出的 arguments 字符串常见畸形

- Markdown 代码块包裹 (```json ... ```)
- 流式输出未闭合的半截 JSON
- 尾部多余逗号、单引号等（由 json-repair 处理）

修复失败时返回空 dict，原始字符串由调用方保存在 ToolUseBlock.raw_input。
"""

import json

import structlog
from json_repair import repair_json

log = structlog.get_logger()


def _strip_markdown(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = [line for line in cleaned.split("\n") if not line.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def parse_tool_arguments(raw: str | dict | None) -> dict:
    """arguments 字符串 → dict；无法修复为 JSON 对象时返回 {}"""
    if isinstance(raw, dict):
        return raw
    if not raw or not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        repaired = repair_json(_strip_markdown(raw), return_objects=False)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError:
            log.warning("工具参数 JSON 修复失败", raw_preview=raw[:200])
            return {}

    if not isinstance(data, dict):
        log.warning("工具参数不是 JSON 对象", type=type(data).__name__)
        return {}
    return data
