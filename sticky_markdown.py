"""
A small, line-oriented markdown renderer for note content.

Supports headers (#, ##, ###), block quotes, fenced and inline code, bold,
italic, strikethrough, links, unordered/ordered lists and horizontal rules.
It is a fixed sequence of substitutions, not a parser: unbalanced markup is
left as-is or formatted oddly, but never raises.
"""

import re
from enum import Enum

# Code is swapped out for these tokens while the inline rules run so markup
# characters inside code are never reinterpreted. NUL is stripped from the
# source before tokens are inserted, so they cannot collide with user text.
_TOKEN = "\x00{}\x00"
_TOKEN_RE = re.compile(r"\x00(\d+)\x00")

_FENCED_RE = re.compile(r"```(?:[^\n`]*\n)?([\s\S]*?)```")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")

_HEADER_RULES = (
    (re.compile(r"^### (.+)$", re.MULTILINE), r"<h3>\1</h3>"),
    (re.compile(r"^## (.+)$", re.MULTILINE), r"<h2>\1</h2>"),
    (re.compile(r"^# (.+)$", re.MULTILINE), r"<h1>\1</h1>"),
)
_BLOCKQUOTE_RE = re.compile(r"^&gt; (.+)$", re.MULTILINE)

_INLINE_RULES = (
    (re.compile(r"\*\*(.+?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"__(.+?)__"), r"<strong>\1</strong>"),
    (re.compile(r"\*([^*\n]+)\*"), r"<em>\1</em>"),
    (re.compile(r"_([^_\n]+)_"), r"<em>\1</em>"),
    (re.compile(r"~~(.+?)~~"), r"<del>\1</del>"),
)
_LINK_RE = re.compile(r"\[([^\]\n]+)\]\(([^)\s]+)\)")

_BULLET_RE = re.compile(r"^[-*] (.+)$", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^\d+\. (.+)$", re.MULTILINE)
_RULE_RE = re.compile(r"^---$", re.MULTILINE)

# Ordered items carry a temporary tag until they are grouped into <ol>.
_UL_ITEMS_RE = re.compile(r"((?:<li>.*?</li>)+)")
_OL_ITEMS_RE = re.compile(r"((?:<oli>.*?</oli>)+)")
_ITEM_BREAK_RE = re.compile(r"(</o?li>)<br>")

_BLOCK_OPEN = r"(?:<h[1-3]>|<blockquote>|<ul>|<ol>|<pre>|<hr>)"
_BLOCK_CLOSE = r"(?:</h[1-3]>|</blockquote>|</ul>|</ol>|</pre>|<hr>)"
_BREAK_BEFORE_BLOCK_RE = re.compile(r"<br>(" + _BLOCK_OPEN + ")")
_BREAK_AFTER_BLOCK_RE = re.compile(r"(" + _BLOCK_CLOSE + ")<br>")


class ContentMode(Enum):
    """Which form of a note's text the content area shows."""
    VIEW = "view"
    EDIT = "edit"


def escape_html(text):
    """Escapes the three characters that would otherwise inject markup."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _link(match):
    label, url = match.group(1), match.group(2).replace('"', "&quot;")
    return f'<a href="{url}" target="_blank" rel="noopener">{label}</a>'


def _unstash(stash, match):
    index = int(match.group(1))
    return stash[index] if index < len(stash) else match.group(0)


def render(text):
    """
    Converts raw note text into the HTML subset shown in view mode.

    Always computed from the raw source; feeding rendered output back in is
    not supported.

    Args:
        text (str): The raw markdown source.

    Returns:
        str: Display-ready HTML.
    """
    if not text:
        return ""

    html = escape_html(text.replace("\x00", ""))

    # Pull code out first so nothing inside it is treated as markup.
    stash = []

    def _stash(fragment):
        stash.append(fragment)
        return _TOKEN.format(len(stash) - 1)

    html = _FENCED_RE.sub(lambda m: _stash(f"<pre><code>{m.group(1)}</code></pre>"), html)
    html = _INLINE_CODE_RE.sub(lambda m: _stash(f"<code>{m.group(1)}</code>"), html)

    for pattern, replacement in _HEADER_RULES:
        html = pattern.sub(replacement, html)
    html = _BLOCKQUOTE_RE.sub(r"<blockquote>\1</blockquote>", html)

    for pattern, replacement in _INLINE_RULES:
        html = pattern.sub(replacement, html)
    html = _LINK_RE.sub(_link, html)

    html = _BULLET_RE.sub(r"<li>\1</li>", html)
    html = _NUMBERED_RE.sub(r"<oli>\1</oli>", html)
    html = _RULE_RE.sub("<hr>", html)

    html = html.replace("\n", "<br>")
    html = _TOKEN_RE.sub(lambda m: _unstash(stash, m), html)

    # Consecutive items collapse into one list each.
    html = _ITEM_BREAK_RE.sub(r"\1", html)
    html = _UL_ITEMS_RE.sub(r"<ul>\1</ul>", html)
    html = _OL_ITEMS_RE.sub(
        lambda m: "<ol>" + m.group(1).replace("<oli>", "<li>").replace("</oli>", "</li>") + "</ol>",
        html,
    )

    html = _BREAK_BEFORE_BLOCK_RE.sub(r"\1", html)
    html = _BREAK_AFTER_BLOCK_RE.sub(r"\1", html)
    return html


def content_for(text, mode):
    """
    Returns what the content area should display for a note.

    Args:
        text (str): The note's raw text.
        mode (ContentMode): EDIT shows the raw text, VIEW the rendered HTML.
    """
    if mode is ContentMode.EDIT:
        return text or ""
    return render(text)
