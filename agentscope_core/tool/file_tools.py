"""
内置文本文件工具：查看 / 覆写 / 插入

行号均从 1 开始，ranges 为 [start, end] 闭区间。
"""

from pathlib import Path

import structlog

from agentscope_core.tool.response import ToolResponse

log = structlog.get_logger()


def _validate_range(ranges: list[int] | None, total: int) -> tuple[int, int] | str:
    if ranges is None:
        return 1, total
    if len(ranges) != 2:
        return f"ranges must be a list of two integers [start, end], got {ranges}"
    start, end = ranges
    if end == -1:
        end = total
    if start < 1 or end < start or end > total:
        return f"Invalid ranges {ranges}, the file has {total} lines"
    return start, end


def view_text_file(file_path: str, ranges: list[int] | None = None) -> ToolResponse:
    """View the content of a text file with line numbers.

    Args:
        file_path (str): The path of the file to view.
        ranges (list[int] | None): The line range [start, end] to view, 1-based and
            inclusive. Use -1 as end to read to the end of the file. View the whole
            file when omitted.
    """
    path = Path(file_path).expanduser()
    if not path.is_file():
        return ToolResponse.fail(f"The file {file_path} does not exist.")

    lines = path.read_text(encoding="utf-8").splitlines()
    if not lines:
        return ToolResponse.text(f"The file {file_path} is empty.")

    bounds = _validate_range(ranges, len(lines))
    if isinstance(bounds, str):
        return ToolResponse.fail(bounds)
    start, end = bounds

    numbered = "\n".join(f"{i}: {lines[i - 1]}" for i in range(start, end + 1))
    return ToolResponse.text(f"The content of {file_path} (lines {start}-{end}):\n```\n{numbered}\n```")


def write_text_file(file_path: str, content: str, ranges: list[int] | None = None) -> ToolResponse:
    """Create or overwrite a text file, or replace the given line range with new content.

    Args:
        file_path (str): The path of the file to write.
        content (str): The content to write.
        ranges (list[int] | None): The line range [start, end] to replace, 1-based and
            inclusive. Overwrite the whole file when omitted.
    """
    path = Path(file_path).expanduser()
    if ranges is None or not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        log.debug("文件已写入", path=str(path), chars=len(content))
        return ToolResponse.text(f"Write {file_path} successfully.")

    lines = path.read_text(encoding="utf-8").splitlines()
    bounds = _validate_range(ranges, len(lines))
    if isinstance(bounds, str):
        return ToolResponse.fail(bounds)
    start, end = bounds

    new_lines = lines[: start - 1] + content.splitlines() + lines[end:]
    path.write_text("\n".join(new_lines) + "\n", encoding="utf-8")
    return ToolResponse.text(f"Replace lines {start}-{end} of {file_path} successfully.")


def insert_text_file(file_path: str, content: str, line_number: int) -> ToolResponse:
    """Insert content before the given line of a text file.

    Args:
        file_path (str): The path of the file.
        content (str): The content to insert.
        line_number (int): The 1-based line number to insert before. Use the number of
            lines plus one to append to the end of the file.
    """
    path = Path(file_path).expanduser()
    if not path.is_file():
        return ToolResponse.fail(f"The file {file_path} does not exist.")

    lines = path.read_text(encoding="utf-8").splitlines()
    if not 1 <= line_number <= len(lines) + 1:
        return ToolResponse.fail(
            f"Invalid line_number {line_number}, it must be between 1 and {len(lines) + 1}"
        )

    new_lines = lines[: line_number - 1] + content.splitlines() + lines[line_number - 1:]
    path.write_text("\n".join(new_lines) + "\n", encoding="utf-8")
    return ToolResponse.text(f"Insert content at line {line_number} of {file_path} successfully.")
