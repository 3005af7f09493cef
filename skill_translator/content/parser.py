# skill_translator/content/parser.py
"""
本模块负责 SKILL.md 文档的结构化转换。

- 拆分 YAML frontmatter 与正文，并将 frontmatter 解析为字段映射（只读）。
- 用惰性占位符替换正文中的围栏代码块，翻译完成后再原样还原。
- 在 frontmatter 原文中逐行改写单个字段的值，其余行保持字节级不变。

frontmatter 被视为不透明文本：这里不做任何结构化的重新序列化。
"""

import re
from typing import Any

import structlog
import yaml

from skill_translator.core.types import CodeBlock, ParsedDocument

logger = structlog.get_logger(__name__)

FRONTMATTER_PATTERN = re.compile(r"\A---\s*\n(.*?)\n---\s*\n", re.DOTALL)
CODE_BLOCK_PATTERN = re.compile(r"```(\w*)\n(.*?)```", re.DOTALL)
PLACEHOLDER_TEMPLATE = "___CODE_BLOCK_{index}___"

TRANSLATABLE_FIELDS = frozenset({"description"})

# 块标量指示符，允许附带保留/截断指示符与缩进指示符，例如 ">-"、"|+"、">2"。
_BLOCK_INDICATOR_PATTERN = re.compile(r"^[>|](?:[+-]?\d?|\d[+-]?)$")


class _TagTolerantLoader(yaml.SafeLoader):
    """安全加载器的变体：自定义标签（如 ``!secret``）被忽略，按节点内部的值构造。"""


def _construct_untagged(
    loader: _TagTolerantLoader, tag_suffix: str, node: yaml.Node
) -> Any:
    if isinstance(node, yaml.ScalarNode):
        implicit = (node.style is None, node.style is not None)
        tag = loader.resolve(yaml.ScalarNode, node.value, implicit)
        plain = yaml.ScalarNode(
            tag, node.value, node.start_mark, node.end_mark, node.style
        )
        return loader.construct_object(plain, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_mapping(node, deep=True)  # type: ignore[arg-type]


_TagTolerantLoader.add_multi_constructor("!", _construct_untagged)


def parse_header_fields(header_text: str) -> dict[str, Any]:
    """
    将 frontmatter 文本解析为字段映射。

    解析失败或顶层不是映射时返回空字典，从不抛出异常。非字符串的键会被丢弃。
    """
    try:
        data = yaml.load(header_text, Loader=_TagTolerantLoader)  # noqa: S506
    except yaml.YAMLError as e:
        logger.debug("frontmatter 无法解析，按无字段处理。", error=str(e))
        return {}
    if not isinstance(data, dict):
        return {}
    return {key: value for key, value in data.items() if isinstance(key, str)}


def _split_line_ending(line: str) -> tuple[str, str]:
    """把一行拆成 (内容, 行尾符)。"""
    stripped = line.rstrip("\r\n")
    return stripped, line[len(stripped) :]


def _non_blank_lines(value: str) -> list[str]:
    return [line for line in value.splitlines() if line.strip()]


def _continuation_end(lines: list[str], start: int) -> int:
    """返回 ``start`` 起连续续行之后的下标；空行只有后面仍有缩进行时才算续行。"""
    end = index = start
    while index < len(lines):
        text, _ = _split_line_ending(lines[index])
        if text.strip():
            if not text[:1].isspace():
                break
            end = index + 1
        index += 1
    return end


class ContentTransformer:
    """文档解析、代码块保护与 frontmatter 字段改写。本类不持有可变状态。"""

    def parse(self, content: str) -> ParsedDocument:
        """把文档拆成 frontmatter 原文、字段映射、正文与按出现顺序排列的代码块。"""
        match = FRONTMATTER_PATTERN.match(content)
        if match:
            raw_header = match.group(0)
            fields = parse_header_fields(match.group(1))
            body = content[match.end() :]
        else:
            raw_header = ""
            fields = {}
            body = content

        code_blocks = [
            CodeBlock(
                language=block.group(1),
                code=block.group(2),
                placeholder=PLACEHOLDER_TEMPLATE.format(index=index),
            )
            for index, block in enumerate(CODE_BLOCK_PATTERN.finditer(body))
        ]
        return ParsedDocument(
            raw_header=raw_header, fields=fields, body=body, code_blocks=code_blocks
        )

    def substitute(self, body: str, code_blocks: list[CodeBlock]) -> str:
        """
        用占位符替换每个代码块在正文中的第一次出现。

        匹配模式由转义后的语言标记与代码文本构造；无法匹配的代码块保持原样，
        仅记录一条警告。
        """
        for block in code_blocks:
            pattern = re.compile(
                "```" + re.escape(block.language) + "\n" + re.escape(block.code) + "```"
            )
            body, count = pattern.subn(lambda _: block.placeholder, body, count=1)
            if not count:
                logger.warning(
                    "代码块未能匹配，保留原文。",
                    placeholder=block.placeholder,
                    language=block.language,
                )
        return body

    def restore(self, body: str, code_blocks: list[CodeBlock]) -> str:
        """把占位符按字面替换回原始的围栏代码块。"""
        for block in code_blocks:
            body = body.replace(block.placeholder, block.fenced)
        return body

    @staticmethod
    def is_translatable_field(name: str) -> bool:
        return name in TRANSLATABLE_FIELDS

    @staticmethod
    def get_string_field(fields: dict[str, Any], name: str) -> str | None:
        """仅当字段值为字符串时返回该值，其他类型一律视为不存在。"""
        value = fields.get(name)
        return value if isinstance(value, str) else None

    def rewrite_field(self, raw_header: str, field: str, new_value: str) -> str:
        """
        在 frontmatter 原文中改写顶层字段 ``field`` 的值。

        支持四种原值形态：双引号、单引号、同行普通标量和块标量（``>`` 或 ``|``）。
        块标量的所有续行（缩进行与空行）都会被替换。新值去掉空行后若只剩一行，
        输出为 ``field: <line>``；多于一行时输出 ``field: >`` 加两空格缩进的各行。
        普通标量的新值跨多行时遵循同样的规则。
        折行的普通标量与引号标量的缩进续行同样被替换，其余行保持原样。
        """
        prefix = f"{field}:"
        lines = raw_header.splitlines(keepends=True)
        result: list[str] = []
        index = 0
        replaced = False

        while index < len(lines):
            line = lines[index]
            text, ending = _split_line_ending(line)
            index += 1

            if replaced or not text.startswith(prefix):
                result.append(line)
                continue

            current = text[len(prefix) :].strip()
            if not current:
                result.append(line)
                continue

            replaced = True
            if _BLOCK_INDICATOR_PATTERN.match(current):
                while index < len(lines):
                    following, _ = _split_line_ending(lines[index])
                    if following.strip() and not following[:1].isspace():
                        break
                    index += 1
                result.append(self._render_multiline(field, new_value, ending))
                continue

            index = _continuation_end(lines, index)
            if len(current) >= 2 and current[0] == current[-1] == '"':
                escaped = new_value.replace("\\", "\\\\").replace('"', '\\"')
                result.append(f'{prefix} "{escaped}"{ending}')
            elif len(current) >= 2 and current[0] == current[-1] == "'":
                escaped = new_value.replace("'", "''")
                result.append(f"{prefix} '{escaped}'{ending}")
            elif "\n" in new_value:
                result.append(self._render_multiline(field, new_value, ending))
            else:
                result.append(f"{prefix} {new_value}{ending}")

        return "".join(result)

    @staticmethod
    def _render_multiline(field: str, new_value: str, ending: str) -> str:
        ending = ending or "\n"
        content_lines = _non_blank_lines(new_value)
        if not content_lines:
            return f'{field}: ""{ending}'
        if len(content_lines) == 1:
            return f"{field}: {content_lines[0]}{ending}"
        block = "".join(f"  {line}{ending}" for line in content_lines)
        return f"{field}: >{ending}{block}"
