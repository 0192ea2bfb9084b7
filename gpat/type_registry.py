"""
Type-tag lookup table.

Actor and measure behaviour is keyed on flags of their type tag
(publishable, has_parent, has_target, notifications, ...). The table is
loaded once from YAML and validated with pydantic; checks look flags up by
(kind, type id) instead of walking related records.

Usage:
    from gpat.type_registry import get_type_registry

    types = get_type_registry()
    types.get(Kind.MEASURE, 3).notifications
"""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, model_validator

from gpat import paths
from gpat.models import Kind

logger = logging.getLogger(__name__)


class TypeTag(BaseModel):
    """Flags for one actortype or measuretype."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    publishable: bool = False
    has_parent: bool = False
    has_target: bool = False
    has_members: bool = False
    notifications: bool = False
    is_active: bool = False
    is_target: bool = False


class TypeTable(BaseModel):
    """Shape of the types YAML file."""

    actortypes: list[TypeTag] = []
    measuretypes: list[TypeTag] = []

    @model_validator(mode="after")
    def _check_table(self) -> "TypeTable":
        for name in ("actortypes", "measuretypes"):
            tags = getattr(self, name)
            ids = [t.id for t in tags]
            if len(ids) != len(set(ids)):
                raise ValueError(f"{name}: duplicate type ids")
            if sum(1 for t in tags if t.publishable) > 1:
                raise ValueError(f"{name}: at most one publishable type allowed")
        return self


class TypeRegistry:
    """(kind, type id) -> TypeTag lookup."""

    def __init__(self, table: TypeTable):
        self._tags: dict[Kind, dict[int, TypeTag]] = {
            Kind.ACTOR: {t.id: t for t in table.actortypes},
            Kind.MEASURE: {t.id: t for t in table.measuretypes},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TypeRegistry":
        return cls(TypeTable.model_validate(data or {}))

    @classmethod
    def load(cls, path: Path | None = None) -> "TypeRegistry":
        path = path or paths.types_path()
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        registry = cls.from_dict(data)
        logger.debug(
            f"Loaded type tags from {path}: "
            f"{len(registry.all(Kind.ACTOR))} actortypes, {len(registry.all(Kind.MEASURE))} measuretypes"
        )
        return registry

    def get(self, kind: Kind, type_id: int | None) -> TypeTag | None:
        try:
            key = int(type_id)
        except (TypeError, ValueError):
            return None
        return self._tags.get(kind, {}).get(key)

    def all(self, kind: Kind) -> list[TypeTag]:
        return list(self._tags.get(kind, {}).values())

    def publishable_id(self, kind: Kind) -> int | None:
        """Id of the publishable subtype (country / statement), if any."""
        for tag in self.all(kind):
            if tag.publishable:
                return tag.id
        return None

    def ids_where(self, kind: Kind, flag: str) -> list[int]:
        return [t.id for t in self.all(kind) if getattr(t, flag)]


@lru_cache(maxsize=1)
def get_type_registry() -> TypeRegistry:
    """Process-wide registry, loaded on first use."""
    return TypeRegistry.load()
