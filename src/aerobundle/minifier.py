# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Heuristic bundle minification.

Three regex passes:
1. Strip /* block */ and // line comments
2. Collapse every whitespace run (newlines included) to one space
3. Trim leading and trailing whitespace of each line

Known Limitations:
- Comment delimiters inside string, template or regex literals are treated as
  comments ("http://x" survives because "//" preceded by ":" is skipped, but
  "'a//b'" loses everything after "//" on that line)
- Code relying on automatic semicolon insertion across newlines can break
  once newlines are collapsed
"""

import re

# "//" preceded by ":" or "\" is left alone so URLs and escaped slashes survive
_COMMENT_PATTERN = re.compile(r"/\*[\s\S]*?\*/|([^\\:]|^)//.*$", re.MULTILINE)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_LINE_EDGE_PATTERN = re.compile(r"^\s+|\s+$", re.MULTILINE)


def strip_comments(code: str) -> str:
    """Remove block and line comments, keeping the character before "//"."""
    return _COMMENT_PATTERN.sub(lambda match: match.group(1) or "", code)


def minify_bundle(code: str) -> str:
    """Minify bundle text.

    Args:
        code: Concatenated bundle source.

    Returns:
        Minified text.
    """
    code = strip_comments(code)
    code = _WHITESPACE_PATTERN.sub(" ", code)
    return _LINE_EDGE_PATTERN.sub("", code)
