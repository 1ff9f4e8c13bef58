"""Tests for settings validation and engine selection."""

import pydantic
import pytest

from orgtree.core.config import (
    MAX_NAME_COLUMN_LENGTH,
    ConfigurationError,
    Environment,
    HierarchyStrategy,
    Settings,
)
from orgtree.services import AdjacencyEngine, ClosureEngine, PathEngine, build_engine


class TestSettings:

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.hierarchy_strategy == HierarchyStrategy.CLOSURE
        assert s.max_name_length == 100

    def test_strategy_from_environment(self, monkeypatch):
        monkeypatch.setenv("HIERARCHY_STRATEGY", "path")
        assert Settings(_env_file=None).hierarchy_strategy == HierarchyStrategy.PATH

    def test_unknown_strategy_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None, hierarchy_strategy="nested-set")

    def test_max_name_length_must_be_positive(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None, max_name_length=0)

    def test_max_name_length_capped_at_column_size(self):
        assert Settings(_env_file=None, max_name_length=MAX_NAME_COLUMN_LENGTH).max_name_length == 255
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None, max_name_length=MAX_NAME_COLUMN_LENGTH + 1)

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_wildcard_cors_rejected(self):
        s = Settings(_env_file=None, cors_allowed_origins="*")
        with pytest.raises(ValueError):
            s.get_cors_origins()

    def test_production_rejects_sqlite(self):
        s = Settings(
            _env_file=None,
            environment=Environment.PRODUCTION,
            database_url="sqlite:///./orgtree.db",
            cors_allowed_origins="https://org.example.com",
        )
        with pytest.raises(ConfigurationError):
            s.validate_production_config()

    def test_development_allows_sqlite(self):
        s = Settings(_env_file=None, database_url="sqlite:///./orgtree.db")
        s.validate_production_config()


class TestBuildEngine:

    @pytest.mark.parametrize(
        "strategy,engine_class",
        [
            (HierarchyStrategy.ADJACENCY, AdjacencyEngine),
            (HierarchyStrategy.CLOSURE, ClosureEngine),
            (HierarchyStrategy.PATH, PathEngine),
            ("path", PathEngine),
        ],
    )
    def test_selects_engine(self, db, strategy, engine_class):
        engine = build_engine(db, strategy=strategy, max_name_length=10)
        assert isinstance(engine, engine_class)
        assert engine.max_name_length == 10

    def test_falls_back_to_settings(self, db):
        engine = build_engine(db)
        assert isinstance(engine, ClosureEngine)
        assert engine.max_name_length == 100

    def test_rejects_non_positive_bound(self, db):
        with pytest.raises(ValueError):
            build_engine(db, strategy=HierarchyStrategy.ADJACENCY, max_name_length=0)

    def test_rejects_bound_wider_than_column(self, db):
        with pytest.raises(ValueError):
            build_engine(db, strategy=HierarchyStrategy.PATH, max_name_length=MAX_NAME_COLUMN_LENGTH + 1)
