"""
Match JSON export.

One JSON document per processed demo, optionally gzip-compressed (.json.gz).
"""

from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import Any

from cs2replay.models import Match

logger = logging.getLogger(__name__)


class MatchExporter:
    """Exports match recordings to JSON."""

    @staticmethod
    def to_json(match: Match, pretty: bool = False) -> str:
        """Export a match to a JSON string."""
        return json.dumps(match.to_dict(), indent=2 if pretty else None, ensure_ascii=False)

    @staticmethod
    def to_file(match: Match, path: Path, pretty: bool = False) -> Path:
        """Export a match to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(match.to_dict(), f, indent=2 if pretty else None, ensure_ascii=False)
        logger.info(f"Exported match {match.id} to {path}")
        return path

    @staticmethod
    def to_compressed(match: Match, path: Path) -> Path:
        """Export a match to a gzip-compressed JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with gzip.open(path, "wt", encoding="utf-8") as f:
            json.dump(match.to_dict(), f, ensure_ascii=False)
        logger.info(f"Exported compressed match {match.id} to {path}")
        return path


def match_path(output_dir: str | Path, match_id: str, compress: bool = False) -> Path:
    """Where the JSON for a match id lives inside an output directory."""
    suffix = ".json.gz" if compress else ".json"
    return Path(output_dir) / f"{match_id}{suffix}"


def write_match(match: Match, output_dir: str | Path, pretty: bool = False, compress: bool = False) -> Path:
    """Write a match as <output_dir>/<id>.json (or .json.gz)."""
    path = match_path(output_dir, match.id, compress)
    if compress:
        return MatchExporter.to_compressed(match, path)
    return MatchExporter.to_file(match, path, pretty=pretty)


def load_match_json(path: str | Path) -> dict[str, Any]:
    """Read back a match document written by write_match."""
    path = Path(path)
    if path.name.endswith(".gz"):
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return json.load(f)
    with open(path, encoding="utf-8") as f:
        return json.load(f)
