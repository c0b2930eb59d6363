"""Round-trip view of a GitHub Actions workflow document.

Backed by ruamel.yaml's round-trip loader. New steps are rendered on their
own and spliced into the original text at the line ruamel recorded, so the
rest of the file is written back exactly as read. Only the parts the
updater needs are exposed: the jobs, the first job's steps, and every
step across all jobs.
"""

from io import StringIO

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.util import load_yaml_guess_indent

from lousy_agents.candidates import action_identity, run_key

# GitHub's own examples indent sequences under their key ("steps:\n  - name").
DEFAULT_MAPPING_INDENT = 2
DEFAULT_BLOCK_SEQ_INDENT = 2


def make_yaml(
    mapping_indent: int = DEFAULT_MAPPING_INDENT,
    block_seq_indent: int = DEFAULT_BLOCK_SEQ_INDENT,
    explicit_start: bool = True,
) -> YAML:
    """Create a round-trip YAML instance with the given indentation."""
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.width = 4096  # never fold long run: lines
    yaml.indent(
        mapping=mapping_indent,
        sequence=mapping_indent + block_seq_indent,
        offset=block_seq_indent,
    )
    yaml.explicit_start = explicit_start
    return yaml


def dump_yaml(data, yaml: YAML) -> str:
    sio = StringIO()
    yaml.dump(data, sio)
    return sio.getvalue()


def _has_explicit_start(text: str) -> bool:
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        return stripped == "---" or stripped.startswith("--- ")
    return False


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _shift(line: str, delta: int) -> str:
    if not line:
        return line
    if delta >= 0:
        return " " * delta + line
    return line[-delta:]


class WorkflowDocument:
    """A parsed workflow plus the formatting needed to write it back unchanged."""

    def __init__(self, data, source: str = "", mapping_indent: int = DEFAULT_MAPPING_INDENT,
                 block_seq_indent: int = DEFAULT_BLOCK_SEQ_INDENT, explicit_start: bool = True,
                 newline: str = "\n"):
        self.data = data
        self.source = source
        self.mapping_indent = mapping_indent
        self.block_seq_indent = block_seq_indent
        self.explicit_start = explicit_start
        self.newline = newline

    @classmethod
    def parse(cls, text: str) -> "WorkflowDocument":
        """Parse workflow text. Raises ruamel.yaml.error.YAMLError on invalid YAML."""
        _, seq_indent, block_seq_indent = load_yaml_guess_indent(text)
        if block_seq_indent is None:
            block_seq_indent = DEFAULT_BLOCK_SEQ_INDENT
            mapping_indent = seq_indent or DEFAULT_MAPPING_INDENT
        else:
            mapping_indent = (seq_indent or 0) - block_seq_indent
            if mapping_indent <= 0:
                mapping_indent = DEFAULT_MAPPING_INDENT
        explicit_start = _has_explicit_start(text)
        yaml = make_yaml(mapping_indent, block_seq_indent, explicit_start)
        return cls(
            yaml.load(text),
            source=text,
            mapping_indent=mapping_indent,
            block_seq_indent=block_seq_indent,
            explicit_start=explicit_start,
            newline="\r\n" if "\r\n" in text else "\n",
        )

    @property
    def jobs(self) -> CommentedMap | None:
        if not isinstance(self.data, dict):
            return None
        jobs = self.data.get("jobs")
        return jobs if isinstance(jobs, dict) else None

    def first_job_steps(self) -> CommentedSeq | None:
        """Return the first job's steps sequence, or None if the document has none."""
        jobs = self.jobs
        if not jobs:
            return None
        first_job = jobs[next(iter(jobs))]
        if not isinstance(first_job, dict):
            return None
        steps = first_job.get("steps")
        return steps if isinstance(steps, list) else None

    def iter_steps(self):
        """Yield every step mapping in every job."""
        for job in (self.jobs or {}).values():
            if not isinstance(job, dict):
                continue
            steps = job.get("steps")
            if not isinstance(steps, list):
                continue
            for step in steps:
                if isinstance(step, dict):
                    yield step

    def dump(self) -> str:
        yaml = make_yaml(self.mapping_indent, self.block_seq_indent, self.explicit_start)
        text = dump_yaml(self.data, yaml)
        if self.newline != "\n":
            text = text.replace("\n", self.newline)
        return text

    def insert_steps(self, steps: CommentedSeq, index: int, new_steps: list) -> str:
        """Insert *new_steps* into *steps* at *index* and return the updated text.

        The new items are rendered on their own and spliced into the source
        at the line ruamel recorded for the step they go in front of (or
        after the last step), so every existing line, line ending included,
        is written back as read. Flow-style sequences and documents without
        source text are re-dumped whole.
        """
        splice = self._splice_point(steps, index)
        for offset, step in enumerate(new_steps):
            steps.insert(index + offset, step)
        if splice is None:
            return self.dump()

        # Split on \n only so CRLF lines keep their \r and rejoin unchanged.
        lines = self.source.split("\n")
        at, dash_col, gap = splice
        block = self._render_items(new_steps, dash_col, gap)
        return "\n".join(lines[:at] + block + lines[at:])

    def _splice_point(self, steps: CommentedSeq, index: int) -> tuple[int, int, int] | None:
        """(line to insert at, dash column, dash-to-content gap), or None when splicing can't work."""
        if not self.source or not steps or steps.fa.flow_style():
            return None
        lines = self.source.split("\n")
        ref = min(index, len(steps) - 1)
        item_line, item_col = steps.lc.item(ref)
        dash_line = item_line
        while dash_line > 0 and not lines[dash_line].lstrip().startswith("-"):
            dash_line -= 1
        if not lines[dash_line].lstrip().startswith("-"):
            return None
        dash_col = _indent_of(lines[dash_line])
        gap = item_col - dash_col if item_line == dash_line else self.mapping_indent
        gap = max(gap, 2)

        if index < len(steps):
            return dash_line, dash_col, gap

        # Appending: skip past the last item's more-indented lines, not its trailing blanks.
        end = dash_line
        for number in range(dash_line + 1, len(lines)):
            line = lines[number].rstrip("\r")
            if not line.strip():
                continue
            if _indent_of(line) <= dash_col:
                break
            end = number
        return end + 1, dash_col, gap

    def _render_items(self, items: list, dash_col: int, gap: int) -> list[str]:
        yaml = YAML(typ="rt")
        yaml.preserve_quotes = True
        yaml.width = 4096
        yaml.indent(mapping=self.mapping_indent, sequence=self.block_seq_indent + gap,
                    offset=self.block_seq_indent)
        seq = CommentedSeq()
        seq.extend(items)
        rendered = dump_yaml(seq, yaml).rstrip("\n").split("\n")
        delta = dash_col - _indent_of(rendered[0])
        suffix = "\r" if self.newline == "\r\n" else ""
        return [_shift(line, delta) + suffix for line in rendered]


def existing_step_keys(document: WorkflowDocument | None) -> set[str]:
    """Collect the match keys (action identity or run:<command>) of every step present."""
    keys = set()
    if document is None:
        return keys
    for step in document.iter_steps():
        uses = step.get("uses")
        if isinstance(uses, str):
            keys.add(action_identity(uses))
            continue
        run = step.get("run")
        if isinstance(run, str):
            keys.add(run_key(run))
    return keys
