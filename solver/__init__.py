"""Solver-Modul (Greedy-Generator, Tausch-Prüfung, Service-Fassade)."""

from .generator import ScheduleGenerator, GenerationRequest, GenerationFlags
from .swap import SwapValidator, SwapExecutor, SwapValidityCache

__all__ = [
    "ScheduleGenerator",
    "GenerationRequest",
    "GenerationFlags",
    "SwapValidator",
    "SwapExecutor",
    "SwapValidityCache",
]
