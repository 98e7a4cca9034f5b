# inventory_intelligence/batch/nightly_job.py
import logging
from datetime import date, datetime
from typing import Dict, Optional

from inventory_intelligence.batch.forecast_job import run_forecast_calculation
from inventory_intelligence.batch.suggestion_job import run_suggestion_generation
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.utils.date_utils import resolve_today
from inventory_intelligence.logging_setup import get_logger

# Initialize logger
logger = get_logger('nightly_job')
logger.setLevel(logging.INFO)

def run_nightly_job(
    today: Optional[date] = None,
    interface: Optional[DatabaseInterface] = None
) -> Dict:
    """Run the nightly job: recalculate forecasts, then regenerate suggestions.

    Suggestions are still generated when some forecasts failed to save; they
    are skipped only when the forecast run could not read sales history.

    Args:
        today: Local calendar day to run for (defaults to today)
        interface: Database interface (defaults to the configured backend)

    Returns:
        Dictionary with job results
    """
    job_logger = get_logger('batch')
    today = resolve_today(today)

    start_time = datetime.now()
    job_logger.info(f"Starting nightly job at {start_time} for {today}")

    results = {
        'start_time': start_time,
        'end_time': None,
        'duration': None,
        'processes': {},
    }

    try:
        # Step 1: Recalculate forecasts
        job_logger.info("# Step 1: Calculate forecasts")
        forecast_results = run_forecast_calculation(today=today, now=start_time, interface=interface)
        results['processes']['forecast_calculation'] = forecast_results

        # Step 2: Generate suggestions
        if forecast_results['success']:
            job_logger.info("# Step 2: Generate suggestions")
            results['processes']['suggestion_generation'] = run_suggestion_generation(
                today=today, now=datetime.now(), interface=interface
            )
        else:
            job_logger.warning("# Step 2: Skipped suggestion generation, forecast calculation failed")

        results['success'] = all(p.get('success', False) for p in results['processes'].values())

    except Exception as e:
        job_logger.error(f"Error during nightly job: {str(e)}", exc_info=True)
        results['success'] = False
        results['error'] = str(e)

    results['end_time'] = datetime.now()
    results['duration'] = results['end_time'] - start_time

    if results['success']:
        job_logger.info(f"Nightly job completed successfully in {results['duration']}")
    else:
        job_logger.error(f"Nightly job finished with errors in {results['duration']}")

    return results

if __name__ == "__main__":
    run_nightly_job()
