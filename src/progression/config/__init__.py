"""Configuration package for the progression service."""

from progression.config.app_config import (
    AppConfig,
    ProgressionConfig,
    clear_config_cache,
    get_catalog_path,
    get_db_path,
    load_app_config,
)
from progression.config.catalog import (
    CatalogReader,
    Course,
    Level,
    SchoolClass,
    StaticCatalog,
    catalog_from_dict,
    clear_catalog_cache,
    load_catalog,
)

__all__ = [
    "AppConfig",
    "ProgressionConfig",
    "clear_config_cache",
    "get_catalog_path",
    "get_db_path",
    "load_app_config",
    "CatalogReader",
    "Course",
    "Level",
    "SchoolClass",
    "StaticCatalog",
    "catalog_from_dict",
    "clear_catalog_cache",
    "load_catalog",
]
