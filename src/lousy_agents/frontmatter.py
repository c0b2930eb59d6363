"""YAML frontmatter parsing for agent and skill Markdown files."""

import re
from dataclasses import dataclass, field

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

DELIMITER = "---"

_FIELD_LINE_RE = re.compile(r"^([^\s:#][^:]*?):(?:\s|$)")


class FrontmatterError(Exception):
    """Raised when the text between the --- delimiters is not valid YAML."""


@dataclass
class ParsedFrontmatter:
    data: dict
    field_lines: dict[str, int] = field(default_factory=dict)  # top-level key -> 1-based line
    start_line: int = 1


def _closing_index(lines: list[str]) -> int | None:
    if not lines or lines[0].strip() != DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            return index
    return None


def parse_frontmatter(content: str) -> ParsedFrontmatter | None:
    """Parse leading `---` delimited YAML.

    Returns None when the file has no frontmatter block. A block that is
    not a mapping parses to empty data. Raises FrontmatterError on YAML
    syntax errors.
    """
    lines = content.splitlines()
    end = _closing_index(lines)
    if end is None:
        return None

    try:
        parsed = YAML(typ="safe").load("\n".join(lines[1:end]))
    except YAMLError as exc:
        raise FrontmatterError(str(exc).strip()) from exc

    field_lines = {}
    for index in range(1, end):
        match = _FIELD_LINE_RE.match(lines[index])
        if match:
            field_lines.setdefault(match.group(1).strip(), index + 1)

    return ParsedFrontmatter(
        data=parsed if isinstance(parsed, dict) else {},
        field_lines=field_lines,
        start_line=1,
    )
