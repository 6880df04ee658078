"""
message_render.py
-----------------
Utility for rendering assistant markdown to safe HTML for UI display.

- Code fences are split out first and rendered verbatim (escaped only).
- Everything else is parsed line-by-line into headings, rules, lists and
  paragraphs; inline bold/italic/code spans are rewritten after escaping.
- Every piece of input text passes through `escape_html` exactly once, so the
  only markup in the output is the fixed set of tags emitted here.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

ALLOWED_TAGS = [
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "ul", "ol", "li", "p", "br",
    "pre", "code", "strong", "em"
]

FENCE = "```"

_HTML_ESCAPES = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
})

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")

# Opening fence: backticks, optional language word, optional newline.
_FENCE_OPEN_RE = re.compile(r"```([A-Za-z0-9_]*)(\n?)")

# Captured text stops at a carriage return or Unicode line separator.
_LINE_TEXT = r"([^\r\u2028\u2029]*)"
_HEADING_RE = re.compile(r"\s*(#{1,6})\s+" + _LINE_TEXT)
_RULE_RE = re.compile(r"\s*(---|\*\*\*|___)\s*")
_UL_ITEM_RE = re.compile(r"\s*[-*]\s+" + _LINE_TEXT)
_OL_ITEM_RE = re.compile(r"\s*[0-9]+\.\s+" + _LINE_TEXT)


def escape_html(text: str) -> str:
    """Escape the five HTML-significant characters (& < > " ')."""
    # str.translate maps each character once, so "&" is never re-escaped.
    return text.translate(_HTML_ESCAPES)


def format_inline(line: str) -> str:
    """
    Escape one raw line, then rewrite bold, italic and inline-code spans.

    Bold runs before italic so `**x**` is never read as two italics.
    Unmatched delimiters are left in place as literal text.
    """
    html = escape_html(line)
    html = _BOLD_RE.sub(r"<strong>\1</strong>", html)
    html = _ITALIC_RE.sub(r"<em>\1</em>", html)
    return _INLINE_CODE_RE.sub(r"<code>\1</code>", html)


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------

class SegmentKind(str, Enum):
    CODE = "code"
    TEXT = "text"


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    body: str
    language: Optional[str] = None


def _code_segment(raw: str, closed: bool) -> Segment:
    """Build a code segment from the raw fenced text (fences included)."""
    opening = _FENCE_OPEN_RE.match(raw)
    # The language word is a class hint only when the fence line ends there.
    language = opening.group(1) if opening and opening.group(2) else None
    body = raw[opening.end():] if opening else raw[len(FENCE):]
    if closed and body.endswith(FENCE):
        body = body[: -len(FENCE)]
    return Segment(SegmentKind.CODE, body, language or None)


def split_segments(markdown: str) -> List[Segment]:
    """
    Partition `markdown` into ordered code / text segments.

    A fence closes at the next triple backtick. An unterminated fence turns
    the remainder of the input into one code segment.
    """
    segments: List[Segment] = []
    pos = 0
    while True:
        start = markdown.find(FENCE, pos)
        if start == -1:
            segments.append(Segment(SegmentKind.TEXT, markdown[pos:]))
            return segments

        segments.append(Segment(SegmentKind.TEXT, markdown[pos:start]))
        close = markdown.find(FENCE, start + len(FENCE))
        if close == -1:
            segments.append(_code_segment(markdown[start:], closed=False))
            return segments

        end = close + len(FENCE)
        segments.append(_code_segment(markdown[start:end], closed=True))
        pos = end


def render_code_segment(segment: Segment) -> str:
    lang_class = f' class="language-{segment.language}"' if segment.language else ""
    return f"<pre><code{lang_class}>{escape_html(segment.body.strip())}</code></pre>"


# ---------------------------------------------------------------------------
# Line state machine
# ---------------------------------------------------------------------------

class ListKind(str, Enum):
    UNORDERED = "ul"
    ORDERED = "ol"


class BlockState:
    """
    Accumulates the HTML for one text segment.

    At most one list is open at a time and the paragraph buffer is flushed
    before any other block element is written.
    """

    def __init__(self) -> None:
        self.open_list: Optional[ListKind] = None
        self.paragraph: List[str] = []
        self._parts: List[str] = []

    def flush_paragraph(self) -> None:
        if self.paragraph:
            self._parts.append(f"<p>{'<br>'.join(self.paragraph)}</p>")
            self.paragraph = []

    def close_list(self) -> None:
        if self.open_list is not None:
            self._parts.append(f"</{self.open_list.value}>")
            self.open_list = None

    def start_block(self) -> None:
        self.flush_paragraph()
        self.close_list()

    def emit(self, html: str) -> None:
        self.start_block()
        self._parts.append(html)

    def add_list_item(self, kind: ListKind, html: str) -> None:
        self.flush_paragraph()
        if self.open_list is not kind:
            self.close_list()
            self._parts.append(f"<{kind.value}>")
            self.open_list = kind
        self._parts.append(f"<li>{html}</li>")

    def add_paragraph_line(self, html: str) -> None:
        self.close_list()
        self.paragraph.append(html)

    def end_paragraph(self) -> None:
        self.close_list()
        self.flush_paragraph()

    def finish(self) -> str:
        self.start_block()
        return "".join(self._parts)


def _feed_line(state: BlockState, line: str) -> None:
    heading = _HEADING_RE.match(line)
    if heading:
        level = len(heading.group(1))
        state.emit(f"<h{level}>{format_inline(heading.group(2))}</h{level}>")
        return

    if _RULE_RE.fullmatch(line):
        state.emit("<hr>")
        return

    item = _UL_ITEM_RE.match(line)
    if item:
        state.add_list_item(ListKind.UNORDERED, format_inline(item.group(1)))
        return

    item = _OL_ITEM_RE.match(line)
    if item:
        state.add_list_item(ListKind.ORDERED, format_inline(item.group(1)))
        return

    if line.strip():
        state.add_paragraph_line(format_inline(line))
    else:
        state.end_paragraph()


def render_text_segment(text: str) -> str:
    state = BlockState()
    for line in text.strip().split("\n"):
        _feed_line(state, line)
    return state.finish()


def _render_segments(segments: List[Segment]) -> Iterator[str]:
    for segment in segments:
        if segment.kind is SegmentKind.CODE:
            yield render_code_segment(segment)
        else:
            yield render_text_segment(segment.body)


def markdown_to_html(markdown) -> str:
    """
    Convert the supported markdown subset to an HTML fragment.

    Never raises: malformed markup degrades to escaped literal text.
    `None` renders as an empty string; other non-string values are coerced
    with `str()`.
    """
    text = "" if markdown is None else str(markdown)
    return "".join(_render_segments(split_segments(text)))
