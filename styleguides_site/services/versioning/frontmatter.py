"""
Minimal `key: value` frontmatter handling for style guide markdown files.

Only flat string values are supported; values are written double-quoted.
"""

import re
from pathlib import Path

from styleguides_site.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

FRONTMATTER_RE = re.compile(r"^---\n([\s\S]*?)\n---")
_FRONTMATTER_BLOCK_RE = re.compile(r"^---\n[\s\S]*?\n---\n?\n?")


def parse_frontmatter(text: str) -> dict[str, str] | None:
    """Frontmatter fields of `text`, or None if it has no frontmatter block."""
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None

    fields: dict[str, str] = {}
    for line in match.group(1).split("\n"):
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        fields[key.strip()] = value
    return fields


def strip_frontmatter(text: str) -> str:
    return _FRONTMATTER_BLOCK_RE.sub("", text, count=1)


def render_frontmatter(fields: dict[str, str]) -> str:
    lines = [f'{key}: "{value}"' for key, value in fields.items()]
    return "---\n" + "\n".join(lines) + "\n---"


def update_frontmatter(path: str | Path, updates: dict[str, str]) -> bool:
    """
    Merge `updates` into the frontmatter of the file at `path`.

    Returns:
        False if the file has no frontmatter block
    """
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    existing = parse_frontmatter(content)
    if existing is None:
        logger.warning("No frontmatter found", path=str(path))
        return False

    rendered = render_frontmatter({**existing, **updates})
    path.write_text(FRONTMATTER_RE.sub(lambda _: rendered, content, count=1), encoding="utf-8")
    return True


def with_frontmatter(text: str, updates: dict[str, str]) -> str:
    """`text` with its frontmatter replaced by the merged fields, body kept below a blank line."""
    fields = {**(parse_frontmatter(text) or {}), **updates}
    return render_frontmatter(fields) + "\n\n" + strip_frontmatter(text)
