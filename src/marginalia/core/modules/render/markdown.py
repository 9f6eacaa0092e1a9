"""Block-level markdown rendering into anchorable content nodes.

Markdown is parsed with markdown-it (CommonMark with tables and
strikethrough). Headings, paragraphs, list items, blockquotes and code
blocks become nodes. The outermost of these takes in the text of the blocks
nested inside it, except list items, which always get a node of their own.
Tables, thematic breaks and raw HTML blocks produce no nodes.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from markdown_it import MarkdownIt
from markdown_it.token import Token

from marginalia.core.modules.anchor.models import ContentNode, NodeKind

Renderer = Callable[[str], list[ContentNode]]

_parser = MarkdownIt("commonmark").enable(["table", "strikethrough"])

_BLOCK_KINDS = {
    "paragraph_open": NodeKind.PARAGRAPH,
    "list_item_open": NodeKind.LIST_ITEM,
    "blockquote_open": NodeKind.BLOCKQUOTE,
}
_CODE_TOKENS = ("fence", "code_block")
_TEXT_TOKENS = ("text", "code_inline", "image")  # image content is its alt text
_SPACE_TOKENS = ("softbreak", "hardbreak", "html_inline")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class _Block:
    kind: NodeKind
    level: int
    parts: list[str] = field(default_factory=list)


def inline_text(token: Token) -> str:
    """Visible text of an inline token with all markup removed."""
    parts: list[str] = []
    for child in token.children or []:
        if child.type in _TEXT_TOKENS:
            parts.append(child.content)
        elif child.type in _SPACE_TOKENS:
            parts.append(" ")
    return "".join(parts)


def _block_kind(token: Token) -> NodeKind | None:
    if token.type == "heading_open":
        return NodeKind.heading(int(token.tag[1:]))
    return _BLOCK_KINDS.get(token.type)


def render_markdown(raw_text: str) -> list[ContentNode]:
    """Render markdown into the ordered list of anchorable content nodes."""
    blocks: list[_Block] = []
    open_blocks: list[_Block] = []

    for token in _parser.parse(raw_text):
        if token.type == "inline":
            if open_blocks:
                open_blocks[-1].parts.append(inline_text(token))
        elif token.type in _CODE_TOKENS:
            if open_blocks:
                open_blocks[-1].parts.append(token.content)
            else:
                blocks.append(_Block(NodeKind.CODEBLOCK, token.level, [token.content]))
        elif token.nesting == 1:
            kind = _block_kind(token)
            if kind is not None and (not open_blocks or kind == NodeKind.LIST_ITEM):
                block = _Block(kind, token.level)
                blocks.append(block)
                open_blocks.append(block)
        elif token.nesting == -1 and open_blocks and open_blocks[-1].level == token.level:
            open_blocks.pop()

    return [
        ContentNode(kind=block.kind, text=_WHITESPACE_RE.sub(" ", " ".join(block.parts)).strip(), position=position)
        for position, block in enumerate(blocks)
    ]


def extract_title(markdown: str) -> str | None:
    """Return the text of the first level-one heading, if any."""
    for node in render_markdown(markdown):
        if node.kind == NodeKind.HEADING1:
            return node.text or None
    return None
