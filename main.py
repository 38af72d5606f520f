"""Klassenplan — Haupt-CLI.

Verwendung:
  python main.py setup                         Ersteinrichtung (Wizard)
  python main.py config show                   Konfiguration anzeigen
  python main.py demo-data                     Demo-Stammdaten erzeugen
  python main.py check <klasse>                Voraussetzungs-Check
  python main.py generate                      Vorschau erzeugen
  python main.py generate --commit             Pläne erzeugen und speichern
  python main.py save-preview <datei>          Geprüfte Vorschau speichern
  python main.py show <klasse> <abteilung>     Wochenplan anzeigen
  python main.py swap-check <id1> <id2>        Tausch prüfen
  python main.py swap <id1> <id2>              Tausch ausführen
  python main.py assign <id> <lehrkraft>       Lehrkraft von Hand zuweisen
  python main.py delete-class <kl> <abt>       Klassenplan löschen
  python main.py conflicts                     Konflikte auflisten
  python main.py suggest <id>                  Lehrkraft-Vorschläge
  python main.py rules                         Planungsregeln anzeigen
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich import box

from config.schema import SessionType
from models.errors import SchedulingError

console = Console()

# Standard-Pfad für gespeicherte Stammdaten
DEFAULT_DATA_JSON = Path("output/school_data.json")
DEFAULT_PREVIEW_JSON = Path("output/preview.json")

_SESSION_CHOICE = click.Choice([s.value for s in SessionType])


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _load_config_or_abort():
    """(ConfigManager, SchedulerConfig) oder Exit 1 mit Hinweis auf setup."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    if mgr.first_run_check():
        console.print(
            "[red]Keine Konfiguration gefunden.[/red]\n"
            "Bitte zuerst [bold]python main.py setup[/bold] ausführen."
        )
        sys.exit(1)
    try:
        return mgr, mgr.load()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)


def _load_service(data_json: str):
    """Config + Stammdaten laden und den SchedulingService bauen."""
    from models.directory import SchoolDirectory
    from solver.service import SchedulingService

    _, config = _load_config_or_abort()
    p = Path(data_json)
    if not p.exists():
        console.print(
            f"[red]Keine Stammdaten gefunden: {p}[/red]\n"
            "Verwenden Sie [bold]python main.py demo-data[/bold]."
        )
        sys.exit(1)
    try:
        directory = SchoolDirectory.load_json(p)
    except ValueError as e:
        console.print(f"[red]Stammdaten ungültig: {p}[/red]\n{escape(str(e))}")
        sys.exit(1)
    return SchedulingService(config, directory)


@contextmanager
def _abort_on_error():
    """SchedulingError → rote Meldung und Exit-Code 1."""
    try:
        yield
    except SchedulingError as e:
        console.print(f"[red bold]Fehler:[/red bold] {escape(str(e))}")
        if getattr(e, "retryable", False):
            console.print("[dim]Der Vorgang kann nach erneuter Prüfung wiederholt werden.[/dim]")
        sys.exit(1)


def _session(value: Optional[str]) -> Optional[SessionType]:
    return SessionType(value) if value else None


# ─── SETUP ────────────────────────────────────────────────────────────────────

@click.command("setup")
@click.option("--defaults", is_flag=True, default=False,
              help="Standardkonfiguration ohne Rückfragen anlegen.")
def cmd_setup(defaults: bool):
    """Ersteinrichtung: Konfiguration mit dem Setup-Wizard anlegen."""
    from config.defaults import default_scheduler_config
    from config.manager import ConfigManager
    from config.wizard import run_wizard

    mgr = ConfigManager()
    if not mgr.first_run_check() and not defaults:
        console.print("[yellow]Eine Konfiguration existiert bereits.[/yellow]")
        if not click.confirm("Trotzdem neu einrichten?", default=False):
            return

    config = default_scheduler_config() if defaults else run_wizard()
    if config is not None:
        mgr.save(config)
        console.print("[bold green]Einrichtung abgeschlossen![/bold green]")
        console.print("Führen Sie jetzt [bold]python main.py demo-data[/bold] aus.")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    from config.wizard import show_time_grid_table

    mgr, config = _load_config_or_abort()
    console.print(Panel(
        f"[bold]{config.school_name}[/bold]  |  Schuljahr {config.academic_year_id}  |  "
        f"{config.default_session.value}",
        title="Konfiguration",
        border_style="cyan",
    ))
    show_time_grid_table(config.time_grid)

    g = config.generation
    table = Table(title="Generator-Flags", box=box.ROUNDED)
    table.add_column("Flag")
    table.add_column("Wert")
    for name, value in g.model_dump().items():
        table.add_row(name, "✓" if value else "✗")
    console.print(table)
    console.print(f"[bold]Speicher:[/bold] {config.store.data_path}")


# ─── DEMO-DATEN ───────────────────────────────────────────────────────────────

@click.command("demo-data")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--sections", default=2, help="Abteilungen pro Klasse.")
@click.option("--json-path", default=str(DEFAULT_DATA_JSON), help="Zielpfad der Stammdaten.")
def cmd_demo_data(seed: int, sections: int, json_path: str):
    """Erzeugt Demo-Stammdaten (Klassen, Fächer, Lehrkräfte)."""
    mgr, config = _load_config_or_abort()
    from data.fake_data import FakeDataGenerator

    gen = FakeDataGenerator(config, seed=seed, sections_per_class=sections)
    data = gen.generate()
    gen.print_summary(data)
    console.print(f"\n[dim]{data.summary()}[/dim]")

    out_path = Path(json_path)
    data.save_json(out_path)
    console.print(f"[green]✓[/green] Stammdaten gespeichert: {out_path}")


# ─── CHECK ────────────────────────────────────────────────────────────────────

@click.command("check")
@click.argument("class_id", type=int)
@click.option("--section", default=None, help="Nur diese Abteilung.")
@click.option("--session", type=_SESSION_CHOICE, default=None)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_check(class_id: int, section: Optional[str], session: Optional[str], json_path: str):
    """Prüft die Voraussetzungen für die Generierung einer Klasse."""
    service = _load_service(json_path)
    report = service.check_prerequisites(class_id, section, _session(session))
    report.print_rich()
    if report.subject_details:
        table = Table(title="Fächer", box=box.ROUNDED)
        table.add_column("Fach", style="bold")
        table.add_column("Soll", justify="right")
        table.add_column("Lehrkräfte", justify="right")
        table.add_column("Freie Slots", justify="right")
        for d in report.subject_details:
            color = "green" if d.is_sufficient else "red"
            table.add_row(d.subject_name, str(d.required_periods),
                          str(len(d.qualified_teacher_ids)),
                          f"[{color}]{d.free_teacher_slots}[/{color}]")
        console.print(table)
    sys.exit(0 if report.is_valid else 1)


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--class-id", type=int, default=None, help="Nur diese Klasse.")
@click.option("--section", default=None, help="Nur diese Abteilung (mit --class-id).")
@click.option("--session", type=_SESSION_CHOICE, default=None)
@click.option("--year", type=int, default=None, help="Schuljahr (Standard aus Config).")
@click.option("--commit", is_flag=True, default=False, help="Direkt speichern statt Vorschau.")
@click.option("--auto-assign/--no-auto-assign", default=None)
@click.option("--balance-load/--no-balance-load", default=None)
@click.option("--avoid-conflicts/--ignore-blackouts", default=None)
@click.option("--continuity/--no-continuity", default=None)
@click.option("--preview-file", default=str(DEFAULT_PREVIEW_JSON),
              help="Zielpfad der Vorschau (für save-preview).")
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_generate(class_id, section, session, year, commit, auto_assign, balance_load,
                 avoid_conflicts, continuity, preview_file, json_path):
    """Erzeugt Wochenpläne (Vorschau oder gespeichert)."""
    service = _load_service(json_path)
    with _abort_on_error():
        result = service.generate(
            academic_year_id=year,
            session_type=_session(session),
            class_id=class_id,
            section=section,
            preview_only=not commit,
            auto_assign_teachers=auto_assign,
            balance_teacher_load=balance_load,
            avoid_teacher_conflicts=avoid_conflicts,
            prefer_subject_continuity=continuity,
        )

    color = {"success": "green", "partial": "yellow"}.get(result.status.value, "red")
    console.print(Panel(
        f"[{color} bold]{result.status.value.upper()}[/{color} bold]  {result.message}\n"
        f"Klassenabteilungen: {', '.join(result.class_sections)}\n"
        f"Zeit: {result.generation_time_seconds:.2f}s",
        title="Generierung",
        border_style="cyan",
    ))
    if result.constraint_stats:
        blocked = ", ".join(f"{k} {v}" for k, v in sorted(result.constraint_stats.items()))
        console.print(f"[dim]Durch Planungsregeln gesperrt: {blocked}[/dim]")
    for w in result.warnings:
        console.print(f"[yellow]⚠[/yellow]  {w}")
    for c in result.conflicts:
        console.print(f"[red]✗[/red] {c}")

    if result.preview_only:
        out = Path(preview_file)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as f:
            f.write(result.model_dump_json(indent=2))
        console.print(f"[green]✓[/green] Vorschau gespeichert: {out}")
        console.print(f"Übernehmen mit [bold]python main.py save-preview {out}[/bold]")


@click.command("save-preview")
@click.argument("preview_file", type=click.Path(exists=True, path_type=Path))
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_save_preview(preview_file: Path, json_path: str):
    """Speichert eine (ggf. bearbeitete) Vorschau als Wochenpläne."""
    from models.results import GenerationResult

    service = _load_service(json_path)
    with open(preview_file, "r", encoding="utf-8") as f:
        preview = GenerationResult.model_validate_json(f.read())
    with _abort_on_error():
        result = service.save_preview(preview.working_set)
    console.print(f"[green]✓[/green] {result.message}")
    for c in result.conflicts:
        console.print(f"[red]✗[/red] {c}")
    sys.exit(0 if result.ok else 1)


# ─── SHOW ─────────────────────────────────────────────────────────────────────

@click.command("show")
@click.argument("class_id", type=int)
@click.argument("section")
@click.option("--year", type=int, default=None)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_show(class_id: int, section: str, year: Optional[int], json_path: str):
    """Zeigt den Wochenplan einer Klassenabteilung."""
    service = _load_service(json_path)
    with _abort_on_error():
        grid = service.class_grid(class_id, section, year)
        school_class = service.directory.get_class(class_id)

    tg = service.grid
    table = Table(title=f"{school_class.name} / {section}", box=box.ROUNDED, show_lines=True)
    table.add_column("Std.", style="bold", width=5)
    for day in range(1, tg.days_per_week + 1):
        table.add_column(tg.day_name(day), justify="center")

    from models.timeslot import TimeSlot
    for period in range(1, tg.periods_per_day + 1):
        cells = []
        for day in range(1, tg.days_per_week + 1):
            if tg.is_break(day, period):
                cells.append("[yellow]Pause[/yellow]")
                continue
            a = grid.get(TimeSlot(day, period))
            if a is None:
                cells.append("[dim]—[/dim]")
                continue
            subject = service.directory.get_subject(a.subject_id).name
            teacher = service.directory.find_teacher(a.teacher_id)
            who = teacher.name if teacher else "[red]offen[/red]"
            cells.append(f"{subject}\n[dim]{who}[/dim]\n[dim]#{a.id}[/dim]")
        table.add_row(str(period), *cells)
    console.print(table)


# ─── SWAP ─────────────────────────────────────────────────────────────────────

@click.command("swap-check")
@click.argument("id1", type=int)
@click.argument("id2", type=int)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_swap_check(id1: int, id2: int, json_path: str):
    """Prüft, ob zwei Zuweisungen getauscht werden können."""
    service = _load_service(json_path)
    check = service.validate_swap(id1, id2)
    if check.can_swap:
        console.print(f"[green]✓[/green] Tausch {id1} ↔ {id2} möglich.")
    else:
        console.print(f"[red]✗[/red] Tausch {id1} ↔ {id2} nicht möglich:")
        for c in check.conflicts:
            console.print(f"  [red]• {c}[/red]")
    for w in check.warnings:
        console.print(f"  [yellow]⚠ {w}[/yellow]")
    sys.exit(0 if check.can_swap else 1)


@click.command("swap")
@click.argument("id1", type=int)
@click.argument("id2", type=int)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_swap(id1: int, id2: int, json_path: str):
    """Tauscht Fach und Lehrkraft zweier Zuweisungen."""
    service = _load_service(json_path)
    with _abort_on_error():
        result = service.execute_swap(id1, id2)
    if not result.ok:
        console.print(f"[red]✗[/red] {result.message}")
        for c in result.conflicts:
            console.print(f"  [red]• {c}[/red]")
        sys.exit(1)
    console.print(f"[green]✓[/green] {result.message}")
    for a in (result.assignment1, result.assignment2):
        console.print(f"  #{a.id}: {a.describe()}")


@click.command("assign")
@click.argument("assignment_id", type=int)
@click.argument("teacher_id", type=int)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_assign(assignment_id: int, teacher_id: int, json_path: str):
    """Weist einer Zuweisung von Hand eine Lehrkraft zu."""
    service = _load_service(json_path)
    with _abort_on_error():
        row = service.assign_teacher(assignment_id, teacher_id)
    console.print(f"[green]✓[/green] #{row.id}: {row.describe()}")


# ─── DELETE ───────────────────────────────────────────────────────────────────

@click.command("delete-class")
@click.argument("class_id", type=int)
@click.argument("section")
@click.option("--year", type=int, default=None)
@click.option("--yes", is_flag=True, default=False, help="Ohne Rückfrage löschen.")
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_delete_class(class_id: int, section: str, year: Optional[int], yes: bool, json_path: str):
    """Löscht den kompletten Wochenplan einer Klassenabteilung."""
    service = _load_service(json_path)
    if not yes and not click.confirm(f"Plan von Klasse {class_id}/{section} löschen?", default=False):
        return
    with _abort_on_error():
        result = service.delete_class_schedule(class_id, section, academic_year_id=year)
    console.print(f"[green]✓[/green] {result.deleted_count} Zuweisungen gelöscht.")
    if result.restored_teacher_ids:
        names = [
            service.directory.find_teacher(t).name if service.directory.find_teacher(t) else str(t)
            for t in result.restored_teacher_ids
        ]
        console.print(f"Wieder verfügbar: {', '.join(names)}")


# ─── CONFLICTS ────────────────────────────────────────────────────────────────

@click.command("conflicts")
@click.option("--year", type=int, default=None)
@click.option("--session", type=_SESSION_CHOICE, default=None)
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_conflicts(year: Optional[int], session: Optional[str], json_path: str):
    """Listet alle Konflikte der gespeicherten Zuweisungen."""
    service = _load_service(json_path)
    report = service.list_conflicts(year, _session(session))
    report.print_rich()
    sys.exit(0 if report.ok else 1)


# ─── RULES ────────────────────────────────────────────────────────────────────

@click.command("rules")
@click.option("--class-id", type=int, default=None, help="Nur Regeln, die für diese Klasse gelten.")
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_rules(class_id: Optional[int], json_path: str):
    """Listet die Planungsregeln der Stammdaten."""
    service = _load_service(json_path)
    directory = service.directory
    rules = directory.constraints
    if class_id is not None:
        with _abort_on_error():
            school_class = directory.get_class(class_id)
        rules = directory.rules_for(class_id, school_class.session_type)
    if not rules:
        console.print("[dim]Keine Planungsregeln hinterlegt.[/dim]")
        return

    table = Table(title="Planungsregeln", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Typ")
    table.add_column("Fach")
    table.add_column("Klasse")
    table.add_column("Slot / Bezug")
    table.add_column("Aktiv")
    for r in rules:
        subject = directory.get_subject(r.subject_id).name
        if r.constraint_type == "before_after":
            target = f"{r.placement} {directory.get_subject(r.reference_subject_id).name}"
        elif r.constraint_type == "forbidden":
            day = service.grid.day_name(r.day_of_week) if r.day_of_week else "jeder Tag"
            target = f"{day}, {r.period_number or 'jede'}. Std."
        else:
            target = ""
        table.add_row(
            str(r.id), r.constraint_type, subject,
            str(r.class_id) if r.class_id is not None else "alle",
            target, "✓" if r.is_active else "✗",
        )
    console.print(table)


# ─── SUGGEST ──────────────────────────────────────────────────────────────────

@click.command("suggest")
@click.argument("assignment_id", type=int)
@click.option("--all", "show_all", is_flag=True, default=False,
              help="Auch nicht freie Lehrkräfte anzeigen.")
@click.option("--json-path", default=str(DEFAULT_DATA_JSON))
def cmd_suggest(assignment_id: int, show_all: bool, json_path: str):
    """Schlägt Lehrkräfte für eine Zuweisung vor."""
    service = _load_service(json_path)
    with _abort_on_error():
        candidates = service.suggest_teachers(assignment_id, only_free=not show_all)
    if not candidates:
        console.print("[yellow]Keine passende Lehrkraft gefunden.[/yellow]")
        return

    table = Table(title=f"Vorschläge für #{assignment_id}", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Frei")
    table.add_column("Klasse")
    table.add_column("Last", justify="right")
    table.add_column("Score", justify="right")
    for c in candidates:
        table.add_row(
            str(c.teacher_id), c.name,
            "[green]✓[/green]" if c.is_free_at_slot else "[red]✗[/red]",
            "✓" if c.teaches_class else "",
            str(c.current_load), f"{c.score:.1f}",
        )
    console.print(table)


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug-Ausgaben.")
def cli(verbose: bool):
    """Klassenplan: Wochenpläne erzeugen, tauschen und prüfen.

    Starten Sie mit: python main.py setup
    """
    _setup_logging(verbose)


def main():
    """Einstiegspunkt. Startet automatisch den Wizard beim ersten Aufruf."""
    from config.manager import ConfigManager
    mgr = ConfigManager()

    if len(sys.argv) == 1 and mgr.first_run_check():
        console.print(Panel(
            "[bold]Willkommen beim Klassenplan![/bold]\n\n"
            "Keine Konfiguration gefunden.\n"
            "Der Setup-Wizard wird jetzt gestartet...",
            border_style="cyan",
        ))
        sys.argv.append("setup")

    cli()


# Befehle registrieren
cli.add_command(cmd_setup)
cli.add_command(cmd_config)
cli.add_command(cmd_demo_data)
cli.add_command(cmd_check)
cli.add_command(cmd_generate)
cli.add_command(cmd_save_preview)
cli.add_command(cmd_show)
cli.add_command(cmd_swap_check)
cli.add_command(cmd_swap)
cli.add_command(cmd_assign)
cli.add_command(cmd_delete_class)
cli.add_command(cmd_conflicts)
cli.add_command(cmd_suggest)
cli.add_command(cmd_rules)


if __name__ == "__main__":
    main()
