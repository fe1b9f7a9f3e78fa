"""Markdown building blocks for SOP documents."""

from __future__ import annotations

import json

from pydantic import JsonValue

from sopflow.procedure.escape import escape_table_cell


class MarkdownTable:
    """Pipe table with escaped cells.

    Example:
        inputs = MarkdownTable("Field", "Type", "Required", "Default")
        inputs.row("email", "string", "Yes", "-")
        print(inputs.render())
    """

    def __init__(self, *columns: str) -> None:
        self.columns = list(columns)
        self.rows: list[list[str]] = []

    def row(self, *cells: str) -> MarkdownTable:
        if len(cells) != len(self.columns):
            raise ValueError(f"Table row has {len(cells)} cells, expected {len(self.columns)}")
        self.rows.append([escape_table_cell(str(cell)) for cell in cells])
        return self

    def render(self) -> str:
        header = "| " + " | ".join(self.columns) + " |"
        rule = "| " + " | ".join("-" * len(column) for column in self.columns) + " |"
        body = ["| " + " | ".join(cells) + " |" for cells in self.rows]
        return "\n".join([header, rule, *body])


def json_fence(payload: JsonValue) -> str:
    """Fenced ``json`` block holding a pretty-printed payload."""
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    return f"```json\n{text}\n```"


class SopDocument:
    """An SOP document assembled block by block.

    Blocks are separated by one blank line; the rendered text ends with
    a single newline.

    Example:
        doc = SopDocument("SOP: Login")
        doc.metadata([("ID", "`abc`"), ("Complexity", "simple")])
        doc.section("Workflow Steps")
        print(doc.render())
    """

    def __init__(self, title: str) -> None:
        self.blocks: list[str] = [f"# {title}"]

    def metadata(self, fields: list[tuple[str, str]]) -> SopDocument:
        """``> **Key**: value`` line per field."""
        self.blocks.append("\n".join(f"> **{key}**: {value}" for key, value in fields))
        return self

    def section(self, title: str, level: int = 2) -> SopDocument:
        if not 2 <= level <= 6:
            raise ValueError(f"Section level must be between 2 and 6, got {level}")
        self.blocks.append(f"{'#' * level} {title}")
        return self

    def block(self, text: str) -> SopDocument:
        self.blocks.append(text)
        return self

    def table(self, table: MarkdownTable) -> SopDocument:
        self.blocks.append(table.render())
        return self

    def render(self) -> str:
        return "\n\n".join(self.blocks).rstrip() + "\n"
