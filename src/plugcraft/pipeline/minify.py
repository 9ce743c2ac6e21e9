"""Best-effort textual minifiers for HTML, CSS and JavaScript.

These are regex passes, not parsers. Each content kind is a :class:`Minifier`
whose :meth:`~Minifier.transform` applies its passes in a fixed order; later
passes assume the earlier ones already ran, so the order must not change.
Callers obtain a minifier through :func:`get_minifier` or
:func:`minifier_for_path` and never call the passes directly, which keeps a
parser-based replacement a drop-in change.

All three transforms are idempotent: running one on its own output leaves it
unchanged.

Known limitations (accepted, not bugs):

* JavaScript line comments are detected heuristically. A ``//`` comment is
  kept when a quote character appears later on the same line (so
  ``// don't`` survives), and ``//`` inside a string is only protected when
  a quote follows it on that line.
* Block-comment delimiters inside string literals (``"/* x */"``) are
  stripped as if they were comments, in all three languages.
* Comments do not nest: in ``/* a /* b */ c */`` the first ``*/`` ends the
  comment and `` c */`` is left behind.
* The HTML passes collapse whitespace everywhere, including inside
  ``<pre>``, ``<textarea>`` and inline ``<script>`` blocks.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

_HTML_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_BETWEEN_TAGS = re.compile(r">\s+<")
_MULTI_SPACE = re.compile(r"\s{2,}")

_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_WHITESPACE = re.compile(r"\s+")
_CSS_PUNCTUATION = re.compile(r"\s*([{:;,}])\s*")
_CSS_TRAILING_SEMICOLONS = re.compile(r";+}")

_JS_LINE_COMMENT = re.compile(r"//(?![^\n]*['\"`]).*$", re.MULTILINE)
_MULTI_NEWLINE = re.compile(r"\n{2,}")
_LEADING_WHITESPACE = re.compile(r"^\s+", re.MULTILINE)


class Minifier(ABC):
    """A ``text -> text`` transform for one content kind."""

    kind: str = ""
    suffixes: tuple[str, ...] = ()

    @abstractmethod
    def transform(self, text: str) -> str:
        """Return the minified form of *text*."""
        ...

    def __call__(self, text: str) -> str:
        return self.transform(text)


class HtmlMinifier(Minifier):
    kind = "html"
    suffixes = (".html", ".htm")

    def transform(self, text: str) -> str:
        text = _HTML_COMMENT.sub("", text)
        text = _BETWEEN_TAGS.sub("><", text)
        text = _MULTI_SPACE.sub(" ", text)
        return text.strip()


class CssMinifier(Minifier):
    kind = "css"
    suffixes = (".css",)

    def transform(self, text: str) -> str:
        text = _BLOCK_COMMENT.sub("", text)
        text = _WHITESPACE.sub(" ", text)
        text = _CSS_PUNCTUATION.sub(r"\1", text)
        text = _CSS_TRAILING_SEMICOLONS.sub("}", text)
        return text.strip()


class ScriptMinifier(Minifier):
    kind = "js"
    suffixes = (".js", ".mjs")

    def transform(self, text: str) -> str:
        text = _JS_LINE_COMMENT.sub("", text)
        text = _BLOCK_COMMENT.sub("", text)
        text = _MULTI_NEWLINE.sub("\n", text)
        text = _LEADING_WHITESPACE.sub("", text)
        return text.strip()


_MINIFIERS: dict[str, Minifier] = {
    m.kind: m for m in (HtmlMinifier(), CssMinifier(), ScriptMinifier())
}


def get_minifier(kind: str) -> Minifier:
    """Return the minifier registered for *kind* (``"html"``, ``"css"`` or ``"js"``).

    Raises:
        KeyError: If no minifier handles *kind*.
    """
    return _MINIFIERS[kind]


def minifier_for_path(path: str | Path) -> Minifier | None:
    """Return the minifier for a file's suffix, or ``None`` for other files."""
    suffix = Path(path).suffix.lower()
    for minifier in _MINIFIERS.values():
        if suffix in minifier.suffixes:
            return minifier
    return None


def minify_html(text: str) -> str:
    return _MINIFIERS["html"].transform(text)


def minify_css(text: str) -> str:
    return _MINIFIERS["css"].transform(text)


def minify_js(text: str) -> str:
    return _MINIFIERS["js"].transform(text)
