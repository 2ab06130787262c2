"""正文内嵌标签提取。

模型会在 content 增量里夹带两类成对标签：

- <think>...</think>: 深度思考内容，所有区段按文档顺序直接拼接（不加分隔符）。
- <tool>...</tool>: 工具调用，区段内每行一个工具名；去空白、去空行、
  按首次出现去重后得到工具名列表。

每次更新都对完整的累积文本重新提取，而不是增量解析：标签被拆到两个数据块时，
只要两半都已到达，提取结果就与一次性收到完全一致。
未闭合的标签不提取，原样留在正文里；流结束时仍未闭合的标签作为普通文本保留，不自动补全。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple


THINK_PATTERN = re.compile(r"<think>(.*?)</think>", re.DOTALL)
TOOL_PATTERN = re.compile(r"<tool>(.*?)</tool>", re.DOTALL)


@dataclass(frozen=True)
class ExtractedContent:
    display_content: str
    thinking: str = ""
    tool_names: Tuple[str, ...] = ()


def extract_thinking(content: str) -> Tuple[str, str]:
    """返回 (思考文本, 去掉 think 区段后的文本)。"""

    parts = THINK_PATTERN.findall(content)
    if not parts:
        return "", content
    return "".join(parts), THINK_PATTERN.sub("", content)


def extract_tools(content: str) -> Tuple[List[str], str]:
    """返回 (去重后的工具名列表, 去掉 tool 区段后的文本)。"""

    regions = TOOL_PATTERN.findall(content)
    if not regions:
        return [], content
    names: List[str] = []
    seen: set[str] = set()
    for region in regions:
        for name in parse_tool_names(region):
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names, TOOL_PATTERN.sub("", content)


def parse_tool_names(tool_text: str) -> List[str]:
    """把一段工具文本按行拆成工具名（不去重）。"""

    if not tool_text:
        return []
    return [line.strip() for line in tool_text.split("\n") if line.strip()]


class EmbeddedTagExtractor:
    def extract(self, content: str) -> ExtractedContent:
        thinking, working = extract_thinking(content)
        tool_names, working = extract_tools(working)
        # 只有确实移除过标签时才去掉首尾空白，保证对已剥离文本再次提取是空操作
        if working != content:
            working = working.strip()
        return ExtractedContent(
            display_content=working,
            thinking=thinking,
            tool_names=tuple(tool_names),
        )
