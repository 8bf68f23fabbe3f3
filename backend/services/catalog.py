"""
Read-only access to the novels and worldbuilding references the generation
backend needs for prompts and for the editor's insertion panel.

Layout under the data directory::

    novels/<novel_id>/novel.json
    novels/<novel_id>/worldbuilding/<kind>/<slug>.md

Worldbuilding files are markdown with a YAML front matter block holding
``name`` (and ``levels`` for cultivation systems); the body is the
description.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from models import NovelInfo, ReferenceKind, WorldbuildingReference
from utils.storage import atomic_write_text

logger = logging.getLogger("novelforge.catalog")


def _read_front_matter(text: str) -> tuple[Dict[str, Any], str]:
    if not text.startswith("---"):
        return {}, text.strip()
    parts = text.split("---", 2)
    if len(parts) < 3:
        return {}, text.strip()
    metadata = yaml.safe_load(parts[1]) or {}
    if not isinstance(metadata, dict):
        metadata = {}
    return metadata, parts[2].strip()


def write_reference_file(path: Path, ref: WorldbuildingReference) -> None:
    metadata: Dict[str, Any] = {"name": ref.name}
    if ref.levels is not None:
        metadata["levels"] = list(ref.levels)
    header = f"---\n{yaml.safe_dump(metadata, allow_unicode=True)}---\n\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(header + ref.description, encoding="utf-8")


class NovelCatalog:
    def __init__(self, root: Path):
        self.root = Path(root)

    def novel_dir(self, novel_id: str) -> Path:
        return self.root / "novels" / novel_id

    def get(self, novel_id: str) -> Optional[NovelInfo]:
        if not novel_id or "/" in novel_id or novel_id.startswith("."):
            return None
        path = self.novel_dir(novel_id) / "novel.json"
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            payload.setdefault("id", novel_id)
            return NovelInfo.model_validate(payload)
        except (OSError, ValueError, PydanticValidationError) as exc:
            logger.warning("novel load failed novel_id=%s path=%s error=%s", novel_id, path, exc)
            return None

    def save(self, novel: NovelInfo) -> Path:
        path = self.novel_dir(novel.id) / "novel.json"
        atomic_write_text(path, json.dumps(novel.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return path


class WorldbuildingLibrary:
    def __init__(self, catalog: NovelCatalog):
        self.catalog = catalog

    def kind_dir(self, novel_id: str, kind: ReferenceKind) -> Path:
        return self.catalog.novel_dir(novel_id) / "worldbuilding" / kind.value

    def list(self, novel_id: str, kind: ReferenceKind) -> List[WorldbuildingReference]:
        directory = self.kind_dir(novel_id, kind)
        if not directory.exists():
            return []

        references: List[WorldbuildingReference] = []
        for file_path in sorted(directory.glob("*.md")):
            try:
                metadata, body = _read_front_matter(file_path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as exc:
                logger.warning("worldbuilding file skipped path=%s error=%s", file_path, exc)
                continue
            levels = metadata.get("levels")
            try:
                references.append(
                    WorldbuildingReference(
                        kind=kind,
                        name=str(metadata.get("name") or file_path.stem),
                        description=body,
                        levels=[str(level) for level in levels] if isinstance(levels, list) else None,
                    )
                )
            except PydanticValidationError as exc:
                logger.warning("worldbuilding file skipped path=%s error=%s", file_path, exc)
        return references
