#!/usr/bin/env python
# run_nightly_job.py - Script to run the nightly job

import sys
import logging
import argparse

from inventory_intelligence.batch.nightly_job import run_nightly_job
from inventory_intelligence.logging_setup import get_logger
from inventory_intelligence.utils.date_utils import resolve_today

def main():
    """Run the nightly job."""
    parser = argparse.ArgumentParser(description='Run the Inventory Intelligence nightly job')
    parser.add_argument('--date', '-d', type=str, help='Run as of this date (YYYY-MM-DD)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args()

    logger = get_logger('nightly_job_runner')
    logger.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    logger.info("Starting nightly job runner...")

    try:
        results = run_nightly_job(resolve_today(args.date))

        for process_name, process_result in results.get('processes', {}).items():
            logger.info(f"Process '{process_name}': {process_result.get('success', False)}")

            if process_result.get('forecasts_upserted') is not None:
                logger.info(f"  Forecasts upserted: {process_result['forecasts_upserted']}")

            if process_result.get('suggestions_generated') is not None:
                logger.info(f"  Suggestions generated: {process_result['suggestions_generated']}")

            for error in process_result.get('errors') or []:
                logger.warning(f"  {error}")

        if results.get('success', False):
            logger.info(f"Nightly job completed successfully in {results.get('duration')}")
            return 0

        logger.error(f"Nightly job failed: {results.get('error', 'see process errors')}")
        return 1

    except Exception as e:
        logger.exception(f"Error running nightly job: {str(e)}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
