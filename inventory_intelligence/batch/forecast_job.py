# inventory_intelligence/batch/forecast_job.py
from datetime import date, datetime
from typing import Dict, Optional

from inventory_intelligence.db import interface_scope
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.services.forecast_service import ForecastService
from inventory_intelligence.logging_setup import logger as log_manager, get_logger

logger = get_logger('forecast_job')

def run_forecast_calculation(
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    interface: Optional[DatabaseInterface] = None
) -> Dict:
    """Recalculate and upsert the sales forecast of every product/location pair.

    Args:
        today: Local calendar day the history window ends on (defaults to today)
        now: Timestamp recorded as last_calculated_at
        interface: Database interface (defaults to the configured backend)

    Returns:
        Dictionary with success, forecasts_calculated, forecasts_upserted and
        errors (None when there were none)
    """
    log_info = log_manager.batch_start_log('forecast_calculation', {'today': today})

    if interface is not None:
        results = ForecastService(interface).calculate_all_forecasts(today=today, now=now)
    else:
        with interface_scope() as scoped:
            results = ForecastService(scoped).calculate_all_forecasts(today=today, now=now)

    log_manager.batch_end_log(log_info, success=results['success'], result_info={
        'forecasts_calculated': results['forecasts_calculated'],
        'forecasts_upserted': results['forecasts_upserted'],
        'errors': len(results['errors'] or []),
    })

    return results

if __name__ == "__main__":
    run_forecast_calculation()
