# inventory_intelligence/batch/suggestion_job.py
from datetime import date, datetime
from typing import Dict, Optional

from inventory_intelligence.db import interface_scope
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.services.suggestion_service import SuggestionService
from inventory_intelligence.logging_setup import logger as log_manager, get_logger

logger = get_logger('suggestion_job')

def run_suggestion_generation(
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    interface: Optional[DatabaseInterface] = None
) -> Dict:
    """Generate or refresh replenishment suggestions.

    Args:
        today: Local calendar day to evaluate (defaults to today)
        now: Timestamp used for generated_at and snooze expiry
        interface: Database interface (defaults to the configured backend)

    Returns:
        Dictionary with generation results
    """
    log_info = log_manager.batch_start_log('suggestion_generation', {'today': today})

    if interface is not None:
        results = SuggestionService(interface).generate_suggestions(today=today, now=now)
    else:
        with interface_scope() as scoped:
            results = SuggestionService(scoped).generate_suggestions(today=today, now=now)

    log_manager.batch_end_log(log_info, success=results['success'], result_info={
        'suggestions_generated': results['suggestions_generated'],
        'by_urgency': results['by_urgency'],
        'errors': len(results['errors'] or []),
    })

    return results

if __name__ == "__main__":
    run_suggestion_generation()
