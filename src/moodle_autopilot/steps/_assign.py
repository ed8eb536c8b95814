"""Helpers shared by the assignment steps."""

from __future__ import annotations

import copy
from html.parser import HTMLParser
from typing import Any

from ..core.errors import DomainError, ParameterError

FORMAT_HTML = 1

# Block elements whose text makes up the raw text of an HTML answer
TEXT_BLOCKS = frozenset({"h1", "h2", "h3", "h4", "h5", "p", "li"})


class _BlockTextParser(HTMLParser):
    """Collects the text content of every block element, in document order."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.blocks: list[str | None] = []
        self._open: list[tuple[str, int, list[str]]] = []

    def handle_starttag(self, tag, attrs):
        if tag in TEXT_BLOCKS:
            self.blocks.append(None)
            self._open.append((tag, len(self.blocks) - 1, []))

    def handle_endtag(self, tag):
        if tag not in TEXT_BLOCKS:
            return
        for pos in range(len(self._open) - 1, -1, -1):
            if self._open[pos][0] == tag:
                for _, index, parts in self._open[pos:]:
                    self.blocks[index] = "".join(parts).strip()
                del self._open[pos:]
                return

    def handle_data(self, data):
        for _, _, parts in self._open:
            parts.append(data)

    def close(self):
        super().close()
        for _, index, parts in self._open:
            self.blocks[index] = "".join(parts).strip()
        self._open = []


def html_to_text(html: str | None) -> str:
    """Reduce an HTML answer to its headings, paragraphs and list items."""
    if not html:
        return ""
    parser = _BlockTextParser()
    parser.feed(html)
    parser.close()
    return "\n\n".join(block for block in parser.blocks if block)


def normalise_plugin(plugin: dict[str, Any]) -> dict[str, Any]:
    """Flatten file areas and editor fields of one submission plugin."""
    plugin = copy.deepcopy(plugin)

    fileareas = plugin.pop("fileareas", None)
    if fileareas:
        plugin["files"] = list(fileareas[0].get("files") or [])

    editorfields = plugin.pop("editorfields", None)
    if editorfields:
        text = editorfields[0].get("text") or ""
        text_format = editorfields[0].get("format")
        plugin["text"] = text
        plugin["format"] = text_format
        plugin["rawtext"] = html_to_text(text) if text_format == FORMAT_HTML else text

    return plugin


def normalise_submission(submission: dict[str, Any]) -> dict[str, Any]:
    """Replace `plugins` with a flattened `data` list, dropping comments."""
    result = {k: copy.deepcopy(v) for k, v in submission.items() if k != "plugins"}
    result["data"] = [
        normalise_plugin(plugin)
        for plugin in submission.get("plugins", [])
        if plugin.get("type") != "comments"
    ]
    return result


def submission_text(submission: dict[str, Any]) -> dict[str, Any] | None:
    """The online text plugin of a normalised submission, if any."""
    texts = [p for p in submission.get("data", []) if p.get("type") == "onlinetext"]
    if len(texts) == 1 and "text" in texts[0]:
        return texts[0]
    return None


def submission_files(submission: dict[str, Any]) -> list[dict[str, Any]]:
    """All files of a normalised submission, across plugins."""
    return [f for p in submission.get("data", []) for f in p.get("files", [])]


def check_accepts_submissions(assignment: dict[str, Any]) -> list[str]:
    """Enabled submission plugins; an assignment without any is unusable."""
    plugins = [
        cfg.get("plugin")
        for cfg in assignment.get("configs", [])
        if cfg.get("subtype") == "assignsubmission"
        and cfg.get("name") == "enabled"
        and str(cfg.get("value")) == "1"
    ]
    if not plugins:
        raise ParameterError(
            f"Assignment accepts no submissions: {assignment.get('name')}"
        )
    return plugins


async def find_assignment(api, course_id: int, name: str) -> dict[str, Any]:
    """Find exactly one assignment of a course by name."""
    result = await api.mod_assign.get.assignments(courseids=[course_id])

    matches = [
        assignment
        for course in (result or {}).get("courses", [])
        for assignment in course.get("assignments", [])
        if assignment.get("name") == name
    ]
    if not matches:
        raise ParameterError(f"Assignment not found: {name}")
    if len(matches) > 1:
        raise ParameterError(f"Too many assignments found for: {name}")

    assignment = matches[0]
    check_accepts_submissions(assignment)
    return assignment


async def fetch_submissions(api, assignment_id: int, status: str = "submitted") -> list[dict[str, Any]]:
    """Fetch and normalise the submissions of one assignment."""
    result = await api.mod_assign.get.submissions(
        assignmentids=[assignment_id],
        status=status,
    )
    result = result or {}
    assignments = result.get("assignments", [])
    warnings = result.get("warnings", [])

    if not assignments and warnings:
        warning = warnings[0]
        raise DomainError(
            "No assignment submissions found",
            operation="mod_assign_get_submissions",
            code=warning.get("warningcode"),
            info=warning.get("message"),
        )

    return [
        normalise_submission(submission)
        for assignment in assignments
        for submission in assignment.get("submissions", [])
    ]


def assignment_summary(assignment: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": assignment.get("id"),
        "cmid": assignment.get("cmid"),
        "course": assignment.get("course"),
        "name": assignment.get("name"),
    }
