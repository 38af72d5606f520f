"""Interaktiver Setup-Wizard für die Ersteinrichtung des Stundenplan-Moduls.

Fragt Schule, Schuljahr, Wochenraster, Generator-Flags und Speicherort ab.
Nutzt rich für Konsolenausgabe und Eingaben.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich import box

from config.schema import (
    BreakPeriod,
    GenerationConfig,
    SchedulerConfig,
    SessionType,
    StoreConfig,
    TimeGridConfig,
)
from config.defaults import DAY_NAMES, default_time_grid

console = Console()


def _header(title: str) -> None:
    console.print()
    console.print(Panel(f"[bold cyan]{title}[/bold cyan]", expand=False))


def _info(text: str) -> None:
    console.print(f"[dim]{text}[/dim]")


def _success(text: str) -> None:
    console.print(f"[green]✓[/green] {text}")


def _warn(text: str) -> None:
    console.print(f"[yellow]⚠[/yellow]  {text}")


def show_time_grid_table(tg: TimeGridConfig) -> None:
    """Zeigt das Wochenraster als rich-Tabelle (P = Pause)."""
    table = Table(title="Wochenraster", box=box.ROUNDED)
    table.add_column("Std.", style="bold", width=5)
    for day in range(1, tg.days_per_week + 1):
        table.add_column(tg.day_name(day), justify="center", width=5)
    for period in range(1, tg.periods_per_day + 1):
        cells = [
            "[yellow]P[/yellow]" if tg.is_break(day, period) else "·"
            for day in range(1, tg.days_per_week + 1)
        ]
        table.add_row(str(period), *cells)
    console.print(table)


# ─── SCHRITT 1: Schule ───

def _wizard_school() -> tuple[str, int, SessionType]:
    _header("Schritt 1 — Schule")
    name = Prompt.ask("Name der Schule", default="Muster-Schule")
    year = IntPrompt.ask("Schuljahr (ID)", default=1)
    console.print("Standard-Abteilung: [1] Vormittag  [2] Nachmittag")
    session = SessionType.EVENING if Prompt.ask("Abteilung wählen", default="1") == "2" else SessionType.MORNING
    return name, year, session


# ─── SCHRITT 2: Wochenraster ───

def _wizard_time_grid() -> TimeGridConfig:
    _header("Schritt 2 — Wochenraster")
    default_tg = default_time_grid()
    show_time_grid_table(default_tg)

    if Confirm.ask("Standard-Raster (So–Do, 6 Stunden) übernehmen?", default=True):
        _success("Standard-Raster übernommen.")
        return default_tg

    periods = IntPrompt.ask("Stunden pro Tag", default=6)
    breaks: list[BreakPeriod] = []
    num_breaks = IntPrompt.ask("Anzahl gesperrter Stunden (z.B. Gebet)", default=0)
    for _ in range(num_breaks):
        period = IntPrompt.ask("  Gesperrte Stunde Nr.")
        day = IntPrompt.ask("  Tag (0 = jeden Tag)", default=0)
        label = Prompt.ask("  Bezeichnung", default="Pause")
        breaks.append(BreakPeriod(day_of_week=day or None, period_number=period, label=label))

    try:
        tg = TimeGridConfig(
            days_per_week=5,
            periods_per_day=periods,
            day_names=list(DAY_NAMES),
            break_periods=breaks,
        )
        _success("Raster konfiguriert und validiert.")
        return tg
    except ValueError as e:
        _warn(f"Validierungsfehler: {e}")
        _warn("Standard-Raster wird verwendet.")
        return default_tg


# ─── SCHRITT 3: Generator ───

def _wizard_generation() -> GenerationConfig:
    _header("Schritt 3 — Generator")
    _info("Standardwerte; jeder Aufruf kann sie überschreiben.")
    return GenerationConfig(
        auto_assign_teachers=Confirm.ask("Lehrkräfte automatisch zuweisen?", default=True),
        balance_teacher_load=Confirm.ask("Auslastung ausgleichen?", default=True),
        avoid_teacher_conflicts=Confirm.ask("Sperrzeiten beachten?", default=True),
        prefer_subject_continuity=Confirm.ask("Fach-Kontinuität bevorzugen?", default=True),
    )


# ─── SCHRITT 4: Speicher ───

def _wizard_store() -> StoreConfig:
    _header("Schritt 4 — Speicher")
    path = Prompt.ask("Zuweisungsdatei", default="output/assignments.json")
    return StoreConfig(data_path=path, autosave=True)


def _show_summary(config: SchedulerConfig) -> None:
    _header("Zusammenfassung")
    table = Table(box=box.ROUNDED, title="Konfigurationsübersicht")
    table.add_column("Bereich", style="bold cyan")
    table.add_column("Wert")
    tg = config.time_grid
    table.add_row("Schule", config.school_name)
    table.add_row("Schuljahr", str(config.academic_year_id))
    table.add_row("Abteilung", config.default_session.value)
    table.add_row(
        "Raster",
        f"{tg.days_per_week} Tage × {tg.periods_per_day} Stunden, "
        f"{len(tg.break_periods)} Sperren",
    )
    g = config.generation
    table.add_row(
        "Generator",
        f"Auto: {'✓' if g.auto_assign_teachers else '✗'}, "
        f"Last: {'✓' if g.balance_teacher_load else '✗'}, "
        f"Sperrzeiten: {'✓' if g.avoid_teacher_conflicts else '✗'}, "
        f"Kontinuität: {'✓' if g.prefer_subject_continuity else '✗'}",
    )
    table.add_row("Speicher", config.store.data_path)
    console.print(table)


# ─── HAUPT-WIZARD ───

def run_wizard() -> Optional[SchedulerConfig]:
    """Führt den interaktiven Setup-Wizard aus.

    Returns:
        Fertige SchedulerConfig oder None, wenn der Nutzer abbricht.
    """
    console.print(Panel(
        "[bold]Willkommen beim Klassenplan![/bold]\n\n"
        "Der Wizard richtet Wochenraster, Generator und Speicher ein.\n"
        "[dim]Standard-Werte können mit Enter übernommen werden.[/dim]",
        title="[bold cyan]Klassenplan[/bold cyan]",
        border_style="cyan",
    ))

    if not Confirm.ask("\nMöchten Sie jetzt einrichten?", default=True):
        console.print("[yellow]Einrichtung abgebrochen.[/yellow]")
        return None

    name, year, session = _wizard_school()
    config = SchedulerConfig(
        school_name=name,
        academic_year_id=year,
        default_session=session,
        time_grid=_wizard_time_grid(),
        generation=_wizard_generation(),
        store=_wizard_store(),
    )
    _show_summary(config)

    if not Confirm.ask("\nKonfiguration speichern?", default=True):
        console.print("[yellow]Konfiguration wird nicht gespeichert.[/yellow]")
        return None
    return config
