"""Tests for app config and catalog loading."""

import pytest
import yaml

from progression.config.app_config import (
    DB_PATH_ENV,
    clear_config_cache,
    get_catalog_path,
    get_db_path,
    load_app_config,
)
from progression.config.catalog import (
    catalog_from_dict,
    clear_catalog_cache,
    load_catalog,
)


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """Run in an empty directory with fresh caches."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(DB_PATH_ENV, raising=False)
    clear_config_cache()
    clear_catalog_cache()
    yield tmp_path
    clear_config_cache()
    clear_catalog_cache()


def _write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


class TestAppConfig:
    """Tests for load_app_config()."""

    def test_defaults_without_file(self, isolated_cwd):
        config = load_app_config()

        assert config.progression.pass_mark == 10
        assert config.progression.pass_rule == "terminal"
        assert config.progression.recovery_enabled is True
        assert config.progression.auto_finalize is True
        assert str(get_db_path(config)).endswith("progression.db")

    def test_loads_yaml_overrides(self, isolated_cwd):
        _write_yaml(
            isolated_cwd / "data" / "config" / "app_config_v1.yaml",
            {"progression": {"pass_rule": "average", "pass_mark": 12}},
        )

        config = load_app_config()

        assert config.progression.pass_rule == "average"
        assert config.progression.pass_mark == 12
        # Unspecified keys keep defaults
        assert config.progression.recovery_enabled is True

    def test_invalid_pass_rule_falls_back(self, isolated_cwd):
        _write_yaml(
            isolated_cwd / "data" / "config" / "app_config_v1.yaml",
            {"progression": {"pass_rule": "best_of"}},
        )

        assert load_app_config().progression.pass_rule == "terminal"

    def test_config_is_cached(self, isolated_cwd):
        first = load_app_config()
        assert load_app_config() is first
        assert load_app_config(force_reload=True) is not first

    def test_db_path_env_override(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV, str(isolated_cwd / "other.db"))

        assert get_db_path() == isolated_cwd / "other.db"

    def test_catalog_path_from_config(self, isolated_cwd):
        _write_yaml(
            isolated_cwd / "data" / "config" / "app_config_v1.yaml",
            {"paths": {"catalog_path": "catalog.yaml"}},
        )

        assert str(get_catalog_path()) == "catalog.yaml"


class TestCatalog:
    """Tests for catalog parsing and loading."""

    def test_next_level_linked_by_level_number(self, catalog):
        assert catalog.get_level(11).next_level_id == 12
        assert catalog.get_level(14).next_level_id == 15
        assert catalog.get_level(15).next_level_id is None

    def test_levels_listed_in_order(self, catalog):
        assert [lv.level_number for lv in catalog.list_levels(1)] == [1, 2, 3, 4, 5]
        assert len(catalog.list_levels(2)) == 1

    def test_terminal_period_follows_period_count(self, catalog):
        assert catalog.get_level(11).terminal_period == 4
        assert catalog.get_level(21).terminal_period == 3

    def test_explicit_next_level_kept(self):
        catalog = catalog_from_dict(
            {
                "courses": [
                    {
                        "course_id": 5,
                        "levels": [
                            {"level_id": 1, "level_number": 1, "next_level_id": 3},
                            {"level_id": 2, "level_number": 2},
                            {"level_id": 3, "level_number": 3},
                        ],
                    }
                ]
            }
        )

        assert catalog.get_level(1).next_level_id == 3
        assert catalog.get_level(2).next_level_id == 3

    def test_invalid_period_count_rejected(self):
        with pytest.raises(ValueError):
            catalog_from_dict(
                {"courses": [{"course_id": 1, "levels": [
                    {"level_id": 1, "level_number": 1, "period_count": 0}
                ]}]}
            )

    def test_classes_filtered_by_level(self, catalog):
        assert {c.class_id for c in catalog.list_classes(11)} == {101, 111}

    def test_default_catalog_without_file(self, isolated_cwd):
        catalog = load_catalog()

        assert catalog.get_course(1) is not None
        assert len(catalog.list_levels(1)) == 5
        assert catalog.get_class(101).level_id == 11

    def test_load_catalog_from_yaml(self, isolated_cwd):
        path = isolated_cwd / "catalog.yaml"
        _write_yaml(
            path,
            {
                "courses": [
                    {
                        "course_id": 3,
                        "name": "Francês",
                        "levels": [
                            {"level_id": 31, "level_number": 1, "period_count": 2},
                            {"level_id": 32, "level_number": 2},
                        ],
                    }
                ],
                "classes": [{"class_id": 301, "name": "FR-N1", "level_id": 31}],
            },
        )

        catalog = load_catalog(path)

        assert catalog.get_course(3).name == "Francês"
        assert catalog.get_level(31).period_count == 2
        assert catalog.get_level(31).next_level_id == 32
        assert catalog.get_class(301).name == "FR-N1"
