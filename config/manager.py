"""Konfigurationsmanager für scheduler_config.yaml.

Liest und schreibt die SchedulerConfig mit ruamel.yaml; beim Schreiben
werden Abschnitte und Generator-Flags kommentiert.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from config.schema import GenerationConfig, SchedulerConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


_YAML_HEADER = f"""\
# ============================================
# Klassenplan: Stundenplan-Konfiguration
# Schema-Version 1
# Geschrieben am {date.today().isoformat()}
# ============================================
"""

# Abschnitt → (Überschrift, optionaler Hinweis)
_SECTIONS = {
    "time_grid": (
        "Wochenraster",
        "Tag 1 = Sonntag; break_periods ohne day_of_week gelten an jedem Tag.",
    ),
    "generation": (
        "Generator-Flags",
        "Standardwerte, einzeln per CLI-Option überschreibbar.",
    ),
    "store": ("Zuweisungsspeicher", None),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "scheduler_config.yaml"

    def first_run_check(self) -> bool:
        """True, solange noch keine scheduler_config.yaml angelegt wurde."""
        return not self.DEFAULT_CONFIG.exists()

    def load(self, path: Optional[Path] = None) -> SchedulerConfig:
        """Liest die YAML-Datei; fehlende Felder bekommen Standardwerte.

        Raises:
            FileNotFoundError: Datei existiert nicht.
            ValueError: YAML kaputt oder Werte verletzen das Schema.
        """
        target = Path(path) if path is not None else self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Zuerst 'python main.py setup' ausführen."
            )
        try:
            with open(target, "r", encoding="utf-8") as f:
                raw = yaml.load(f)
            return SchedulerConfig.model_validate(dict(raw or {}))
        except (YAMLError, ValidationError, TypeError) as e:
            raise ValueError(f"Konfigurationsdatei ungültig: {target}\n{e}") from e

    def save(self, config: SchedulerConfig, path: Optional[Path] = None) -> None:
        target = Path(path) if path is not None else self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(self._to_yaml(config), f)
        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")

    def _to_yaml(self, config: SchedulerConfig) -> CommentedMap:
        doc = CommentedMap(json.loads(config.model_dump_json()))
        for key, (title, hint) in _SECTIONS.items():
            doc.yaml_set_comment_before_after_key(
                key, before=f"\n─── {title} ───" + (f"\n{hint}" if hint else ""))

        # Beschreibung jedes Flags als Zeilenkommentar
        flags = CommentedMap(doc["generation"])
        for name, field in GenerationConfig.model_fields.items():
            if field.description:
                flags.yaml_add_eol_comment(field.description, name)
        doc["generation"] = flags

        store = CommentedMap(doc["store"])
        store.yaml_add_eol_comment("relativ zum Arbeitsverzeichnis", "data_path")
        doc["store"] = store
        return doc
