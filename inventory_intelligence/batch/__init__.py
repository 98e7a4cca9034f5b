# inventory_intelligence/batch/__init__.py
from .forecast_job import run_forecast_calculation
from .suggestion_job import run_suggestion_generation
from .nightly_job import run_nightly_job

__all__ = [
    'run_forecast_calculation',
    'run_suggestion_generation',
    'run_nightly_job'
]
