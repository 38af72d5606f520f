from config.schema import (
    BreakPeriod,
    GenerationConfig,
    SchedulerConfig,
    SessionType,
    StoreConfig,
    TimeGridConfig,
)


# Wochentage Sonntag bis Donnerstag (day_of_week 1..5)
DAY_NAMES = ["So", "Mo", "Di", "Mi", "Do"]

# Stundentafel je Klassenstufe: Fach → Wochenstunden (Summe = 30)
STUNDENTAFEL: dict[int, dict[str, int]] = {
    7: {
        "Mathematik": 5, "Arabisch": 5, "Englisch": 4, "Naturwissenschaften": 4,
        "Sozialkunde": 3, "Religion": 3, "Sport": 2, "Kunst": 2, "Informatik": 2,
    },
    8: {
        "Mathematik": 5, "Arabisch": 5, "Englisch": 4, "Physik": 3, "Biologie": 3,
        "Sozialkunde": 3, "Religion": 3, "Sport": 2, "Informatik": 2,
    },
    9: {
        "Mathematik": 6, "Arabisch": 5, "Englisch": 4, "Physik": 3, "Chemie": 3,
        "Biologie": 2, "Religion": 3, "Sozialkunde": 2, "Sport": 2,
    },
}


def default_time_grid() -> TimeGridConfig:
    """Standard-Raster: 5 Tage (So–Do) × 6 Stunden, keine gesperrten Stunden."""
    return TimeGridConfig(
        days_per_week=5,
        periods_per_day=6,
        day_names=list(DAY_NAMES),
        break_periods=[],
    )


def grid_with_breaks(*periods: int) -> TimeGridConfig:
    """Raster mit an jedem Tag gesperrten Stunden (für Sonderpläne)."""
    return TimeGridConfig(
        day_names=list(DAY_NAMES),
        break_periods=[BreakPeriod(period_number=p) for p in periods],
    )


def default_scheduler_config() -> SchedulerConfig:
    """Vollständige Standardkonfiguration."""
    return SchedulerConfig(
        school_name="Muster-Schule",
        academic_year_id=1,
        default_session=SessionType.MORNING,
        time_grid=default_time_grid(),
        generation=GenerationConfig(),
        store=StoreConfig(),
    )
