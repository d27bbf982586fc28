"""Course catalog reader.

Courses, their ordered levels and the classes that teach each level are
owned by the course-catalog system. This module only reads them, from
data/config/catalog_v1.yaml, and exposes them through CatalogReader.

Usage:
    from progression.config.catalog import load_catalog

    catalog = load_catalog()
    level = catalog.get_level(11)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml

from progression.config.app_config import get_catalog_path

logger = structlog.get_logger(__name__)

DEFAULT_PERIOD_COUNT = 4


@dataclass(frozen=True)
class Course:
    """A course with an ordered sequence of levels."""

    course_id: int
    name: str
    code: str = ""


@dataclass(frozen=True)
class Level:
    """A stage of a course, evaluated over a fixed number of periods."""

    level_id: int
    course_id: int
    level_number: int
    name: str
    period_count: int = DEFAULT_PERIOD_COUNT
    next_level_id: int | None = None

    @property
    def terminal_period(self) -> int:
        """Last period of the level; its completion triggers evaluation."""
        return self.period_count


@dataclass(frozen=True)
class SchoolClass:
    """A class (turma) teaching one level."""

    class_id: int
    name: str
    level_id: int


class CatalogReader(Protocol):
    """Read interface over course/level/class reference data."""

    def get_course(self, course_id: int) -> Course | None: ...

    def get_level(self, level_id: int) -> Level | None: ...

    def get_class(self, class_id: int) -> SchoolClass | None: ...

    def list_levels(self, course_id: int) -> list[Level]: ...


class StaticCatalog:
    """In-memory CatalogReader built from parsed reference data."""

    def __init__(
        self,
        courses: list[Course],
        levels: list[Level],
        classes: list[SchoolClass],
    ):
        self._courses = {c.course_id: c for c in courses}
        self._levels = {lv.level_id: lv for lv in _link_levels(levels)}
        self._classes = {c.class_id: c for c in classes}

    def get_course(self, course_id: int) -> Course | None:
        return self._courses.get(course_id)

    def get_level(self, level_id: int) -> Level | None:
        return self._levels.get(level_id)

    def get_class(self, class_id: int) -> SchoolClass | None:
        return self._classes.get(class_id)

    def list_levels(self, course_id: int) -> list[Level]:
        levels = [lv for lv in self._levels.values() if lv.course_id == course_id]
        return sorted(levels, key=lambda lv: lv.level_number)

    def list_courses(self) -> list[Course]:
        return list(self._courses.values())

    def list_classes(self, level_id: int | None = None) -> list[SchoolClass]:
        if level_id is None:
            return list(self._classes.values())
        return [c for c in self._classes.values() if c.level_id == level_id]


def _link_levels(levels: list[Level]) -> list[Level]:
    """Fill missing next_level_id pointers from level_number ordering."""
    by_course: dict[int, list[Level]] = {}
    for level in levels:
        by_course.setdefault(level.course_id, []).append(level)

    linked: list[Level] = []
    for course_levels in by_course.values():
        ordered = sorted(course_levels, key=lambda lv: lv.level_number)
        for i, level in enumerate(ordered):
            if level.next_level_id is None and i + 1 < len(ordered):
                level = Level(
                    level_id=level.level_id,
                    course_id=level.course_id,
                    level_number=level.level_number,
                    name=level.name,
                    period_count=level.period_count,
                    next_level_id=ordered[i + 1].level_id,
                )
            linked.append(level)
    return linked


def catalog_from_dict(data: dict[str, Any]) -> StaticCatalog:
    """Parse catalog YAML data into a StaticCatalog.

    Expected structure:
        courses:
          - course_id: 1
            name: Inglês Geral
            levels:
              - {level_id: 11, level_number: 1, name: Nível 1, period_count: 4}
        classes:
          - {class_id: 101, name: ING-N1-A, level_id: 11}
    """
    courses: list[Course] = []
    levels: list[Level] = []

    for cdata in data.get("courses", []) or []:
        course_id = int(cdata["course_id"])
        courses.append(
            Course(
                course_id=course_id,
                name=cdata.get("name", f"Curso {course_id}"),
                code=cdata.get("code", ""),
            )
        )
        for ldata in cdata.get("levels", []) or []:
            period_count = int(ldata.get("period_count", DEFAULT_PERIOD_COUNT))
            if period_count < 1:
                raise ValueError(
                    f"Level {ldata['level_id']} has invalid period_count: {period_count}"
                )
            next_level = ldata.get("next_level_id")
            levels.append(
                Level(
                    level_id=int(ldata["level_id"]),
                    course_id=course_id,
                    level_number=int(ldata["level_number"]),
                    name=ldata.get("name", f"Nível {ldata['level_number']}"),
                    period_count=period_count,
                    next_level_id=int(next_level) if next_level is not None else None,
                )
            )

    classes = [
        SchoolClass(
            class_id=int(cl["class_id"]),
            name=cl.get("name", f"Turma {cl['class_id']}"),
            level_id=int(cl["level_id"]),
        )
        for cl in data.get("classes", []) or []
    ]

    return StaticCatalog(courses=courses, levels=levels, classes=classes)


def _get_default_catalog_data() -> dict[str, Any]:
    """Single-course catalog used when no catalog file is present."""
    return {
        "courses": [
            {
                "course_id": 1,
                "name": "Inglês Geral",
                "code": "ING",
                "levels": [
                    {"level_id": 10 + n, "level_number": n, "name": f"Nível {n}"}
                    for n in range(1, 6)
                ],
            }
        ],
        "classes": [
            {"class_id": 100 + n, "name": f"ING-N{n}-A", "level_id": 10 + n}
            for n in range(1, 6)
        ],
    }


# Module-level cache
_cached_catalog: StaticCatalog | None = None


def load_catalog(path: Path | None = None, force_reload: bool = False) -> StaticCatalog:
    """Load the reference catalog.

    Args:
        path: Catalog YAML file. Defaults to the configured catalog_path.
        force_reload: If True, ignore cache and reload from file.

    Returns:
        StaticCatalog with courses, levels and classes.
    """
    global _cached_catalog

    if _cached_catalog is not None and not force_reload:
        return _cached_catalog

    if path is None:
        path = get_catalog_path()

    if not path.exists():
        logger.warning("catalog_file_not_found", path=str(path))
        _cached_catalog = catalog_from_dict(_get_default_catalog_data())
        return _cached_catalog

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    _cached_catalog = catalog_from_dict(data)
    logger.debug(
        "loaded_catalog",
        courses=len(_cached_catalog.list_courses()),
        classes=len(_cached_catalog.list_classes()),
    )
    return _cached_catalog


def clear_catalog_cache() -> None:
    """Clear the catalog cache."""
    global _cached_catalog
    _cached_catalog = None
