"""Tests für das Konfigurationssystem."""

from pathlib import Path

import pytest

from config.schema import (
    BreakPeriod,
    GenerationConfig,
    SchedulerConfig,
    SessionType,
    TimeGridConfig,
)
from config.defaults import (
    DAY_NAMES,
    STUNDENTAFEL,
    default_scheduler_config,
    default_time_grid,
    grid_with_breaks,
)
from config.manager import ConfigManager
from config.wizard import show_time_grid_table


# ─── DEFAULT-KONFIGURATION ────────────────────────────────────────────────────

class TestDefaultConfig:
    def test_default_time_grid_valid(self):
        """Standard-Raster: So–Do × 6 Stunden, ohne Pausen."""
        tg = default_time_grid()
        assert tg.days_per_week == 5
        assert tg.periods_per_day == 6
        assert tg.total_slots == 30
        assert tg.break_periods == []
        assert tg.day_names == DAY_NAMES

    def test_default_scheduler_config(self):
        config = default_scheduler_config()
        assert config.academic_year_id == 1
        assert config.default_session == SessionType.MORNING
        assert config.generation.auto_assign_teachers
        assert config.store.autosave

    def test_stundentafel_fills_grid(self):
        """Jede Stundentafel füllt genau das Standard-Raster."""
        for grade, table in STUNDENTAFEL.items():
            assert sum(table.values()) == 30, f"Klasse {grade}"

    def test_generation_flags_default_true(self):
        flags = GenerationConfig()
        assert all(flags.model_dump().values())


# ─── RASTER-VALIDIERUNG ───────────────────────────────────────────────────────

class TestTimeGrid:
    def test_day_names(self):
        tg = default_time_grid()
        assert tg.day_name(1) == "So"
        assert tg.day_name(5) == "Do"
        assert tg.day_name(9) == "9"

    def test_contains(self):
        tg = default_time_grid()
        assert tg.contains(1, 1)
        assert tg.contains(5, 6)
        assert not tg.contains(6, 1)
        assert not tg.contains(1, 7)
        assert not tg.contains(0, 1)

    def test_break_every_day(self):
        tg = grid_with_breaks(4)
        assert tg.is_break(1, 4)
        assert tg.is_break(5, 4)
        assert not tg.is_break(1, 3)

    def test_break_single_day(self):
        tg = TimeGridConfig(break_periods=[BreakPeriod(day_of_week=2, period_number=3)])
        assert tg.is_break(2, 3)
        assert not tg.is_break(1, 3)

    def test_break_outside_grid_invalid(self):
        with pytest.raises(ValueError):
            TimeGridConfig(break_periods=[BreakPeriod(period_number=7)])

    def test_break_day_outside_grid_invalid(self):
        with pytest.raises(ValueError):
            TimeGridConfig(break_periods=[BreakPeriod(day_of_week=6, period_number=1)])

    def test_too_few_day_names_invalid(self):
        with pytest.raises(ValueError):
            TimeGridConfig(days_per_week=6)

    def test_periods_bounds(self):
        with pytest.raises(ValueError):
            TimeGridConfig(periods_per_day=0)

    def test_grid_table_output(self, capsys):
        show_time_grid_table(grid_with_breaks(2))
        out = capsys.readouterr().out
        assert "Wochenraster" in out
        assert "P" in out


# ─── CONFIG-MANAGER ───────────────────────────────────────────────────────────

class TestConfigManager:
    def _manager(self, tmp_path: Path) -> ConfigManager:
        mgr = ConfigManager()
        mgr.CONFIG_DIR = tmp_path
        mgr.DEFAULT_CONFIG = tmp_path / "scheduler_config.yaml"
        return mgr

    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Config speichern und wieder laden ergibt identische Werte."""
        mgr = self._manager(tmp_path)
        config = default_scheduler_config()
        config.school_name = "Roundtrip-Schule"
        config.time_grid = grid_with_breaks(3)
        config.generation.balance_teacher_load = False
        mgr.save(config)

        loaded = mgr.load()
        assert loaded == config

    def test_yaml_has_header_and_comments(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_scheduler_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert text.startswith("# ====")
        assert "Wochenraster" in text
        assert "relativ zum Arbeitsverzeichnis" in text

    def test_first_run_check_no_file(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        assert mgr.first_run_check() is True

    def test_first_run_check_with_file(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_scheduler_config())
        assert mgr.first_run_check() is False

    def test_load_nonexistent_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(tmp_path / "not_there.yaml")

    def test_load_invalid_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "kaputt.yaml"
        path.write_text("time_grid:\n  periods_per_day: 99\n", encoding="utf-8")
        with pytest.raises(ValueError, match="ungültig"):
            ConfigManager().load(path)

    def test_load_broken_yaml_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "syntax.yaml"
        path.write_text("school_name: [offen\n", encoding="utf-8")
        with pytest.raises(ValueError):
            ConfigManager().load(path)

    def test_flag_descriptions_written(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_scheduler_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert "Sperrzeiten der Lehrkräfte beachten" in text

    def test_load_partial_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "teil.yaml"
        path.write_text("school_name: Teil-Schule\nacademic_year_id: 3\n", encoding="utf-8")
        config = ConfigManager().load(path)
        assert config.school_name == "Teil-Schule"
        assert config.academic_year_id == 3
        assert config.time_grid == default_time_grid()

    def test_load_empty_file(self, tmp_path: Path):
        path = tmp_path / "leer.yaml"
        path.write_text("", encoding="utf-8")
        assert ConfigManager().load(path) == SchedulerConfig()
