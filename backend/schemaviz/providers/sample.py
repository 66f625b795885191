"""SampleMetadataProvider — serves schema metadata from a JSON sample file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schemaviz.engine.errors import MetadataProviderError
from schemaviz.models.metadata import TableStructure, TableSummary

SAMPLES_DIR = Path(__file__).resolve().parent.parent.parent / "samples"


def list_samples() -> list[dict[str, str]]:
    """Return ``[{name, description}]`` for every JSON sample in ``samples/``."""
    if not SAMPLES_DIR.is_dir():
        return []
    results = []
    for path in sorted(SAMPLES_DIR.glob("*.json")):
        try:
            content = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            continue
        description = content.get("metadata", {}).get("description", "")
        results.append({"name": path.stem, "description": description})
    return results


class SampleMetadataProvider:
    """In-memory provider over a ``{"schemas": {name: {"tables": [...]}}}`` document.

    Each table entry carries ``table_name``, optional ``row_count`` and a
    ``structure`` object shaped like the metadata API's structure response.
    """

    def __init__(self, data: dict[str, Any]) -> None:
        self._schemas: dict[str, list[dict[str, Any]]] = {
            name: body.get("tables", [])
            for name, body in data.get("schemas", {}).items()
        }

    @classmethod
    def from_sample(cls, name: str) -> SampleMetadataProvider:
        path = SAMPLES_DIR / f"{name}.json"
        if not path.is_file():
            available = [p.stem for p in sorted(SAMPLES_DIR.glob("*.json"))]
            raise FileNotFoundError(f"Sample '{name}' not found. Available samples: {available}")
        return cls(json.loads(path.read_text(encoding="utf-8")))

    def schemas(self) -> list[str]:
        return sorted(self._schemas)

    def _tables(self, schema: str) -> list[dict[str, Any]]:
        if schema not in self._schemas:
            raise MetadataProviderError(f"Schema '{schema}' does not exist", status_code=404)
        return self._schemas[schema]

    async def list_tables(self, schema: str) -> list[TableSummary]:
        return [
            TableSummary(table_name=t["table_name"], row_count=t.get("row_count"))
            for t in self._tables(schema)
        ]

    async def get_table_structure(self, schema: str, table: str) -> TableStructure:
        for entry in self._tables(schema):
            if entry["table_name"] == table:
                try:
                    return TableStructure(**entry.get("structure", {}))
                except ValidationError as exc:
                    raise MetadataProviderError(f"Malformed structure for '{schema}.{table}': {exc}") from exc
        raise MetadataProviderError(f"Table '{schema}.{table}' does not exist", status_code=404)
