import argparse
import json
import sys

from inventory_intelligence.config import config
from inventory_intelligence.db import db, initialize, interface_scope, create_all_tables, drop_all_tables
from inventory_intelligence.exceptions import IntelligenceError
from inventory_intelligence.logging_setup import logger, get_logger, log_exception
from inventory_intelligence.utils.date_utils import resolve_today

def init_application():
    """Initialize application components."""
    initialize()

    log = logger.app_logger
    log.info("Inventory Intelligence engine initialized")
    if db.db_type == "supabase":
        log.info("Using Supabase backend")
    else:
        log.info(f"Using database: {config.get('DATABASE', 'engine')} at {config.get('DATABASE', 'host')}:{config.get('DATABASE', 'port')}")

    return True

def _print(data):
    print(json.dumps(data, indent=2, default=str))

def init_db(args):
    """Create (optionally recreate) the schema."""
    log = get_logger('setup')
    if args.drop:
        log.warning("Dropping all tables")
        drop_all_tables()
    create_all_tables()
    log.info("Database schema created")
    return 0

def calculate_forecasts(args):
    from inventory_intelligence.batch.forecast_job import run_forecast_calculation

    results = run_forecast_calculation(today=resolve_today(args.date))
    _print(results)
    return 0 if results['success'] else 1

def generate_suggestions(args):
    from inventory_intelligence.batch.suggestion_job import run_suggestion_generation

    results = run_suggestion_generation(today=resolve_today(args.date))
    _print(results)
    return 0 if results['success'] else 1

def nightly(args):
    from inventory_intelligence.batch.nightly_job import run_nightly_job

    results = run_nightly_job(today=resolve_today(args.date))
    _print(results)
    return 0 if results['success'] else 1

def list_suggestions(args):
    from inventory_intelligence.services.suggestion_service import SuggestionService

    with interface_scope() as interface:
        service = SuggestionService(interface)
        if args.summary:
            _print(service.urgency_summary())
        else:
            _print(service.list_suggestions(
                status=args.status,
                urgency=args.urgency,
                suggestion_type=args.type,
                product_id=args.product,
                location_id=args.location
            ))
    return 0

def update_status(args):
    from inventory_intelligence.services.suggestion_service import SuggestionService

    with interface_scope() as interface:
        service = SuggestionService(interface)
        if args.command == 'accept':
            suggestion = service.accept(args.id, args.linked_id, args.linked_type)
        elif args.command == 'dismiss':
            suggestion = service.dismiss(args.id, args.reason)
        else:
            suggestion = service.snooze(args.id, args.until)

    _print({'id': suggestion['id'], 'status': suggestion['status']})
    return 0

def effective_rate(args):
    from inventory_intelligence.services.forecast_service import ForecastService
    from inventory_intelligence.services.adjustment_service import AdjustmentService

    with interface_scope() as interface:
        forecast = ForecastService(interface).get_forecast(args.product, args.location)
        result = AdjustmentService(interface).effective_rate(forecast, resolve_today(args.date))

    result['applied_adjustments'] = [a.get('name') for a in result['applied_adjustments']]
    _print(result)
    return 0

def main():
    """Main application entry point."""
    parser = argparse.ArgumentParser(description='Inventory Intelligence engine')
    parser.add_argument('--verbose', '-v', action='store_true', help='Display detailed output')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    init_parser = subparsers.add_parser('init-db', help='Create the database schema')
    init_parser.add_argument('--drop', action='store_true', help='Drop existing tables first')

    for name, help_text in (
        ('forecast', 'Recalculate sales forecasts'),
        ('suggestions', 'Generate replenishment suggestions'),
        ('nightly', 'Run forecasts then suggestions'),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument('--date', type=str, help='Run as of this date (YYYY-MM-DD)')

    list_parser = subparsers.add_parser('list', help='List replenishment suggestions')
    list_parser.add_argument('--status', type=str, default='pending', help='Suggestion status')
    list_parser.add_argument('--urgency', type=str, help='Urgency tier')
    list_parser.add_argument('--type', type=str, help='transfer or purchase-order')
    list_parser.add_argument('--product', type=str, help='Product ID')
    list_parser.add_argument('--location', type=str, help='Destination location ID')
    list_parser.add_argument('--summary', action='store_true', help='Show pending counts by urgency')

    accept_parser = subparsers.add_parser('accept', help='Accept a suggestion')
    accept_parser.add_argument('id', help='Suggestion ID')
    accept_parser.add_argument('--linked-id', type=str, help='ID of the transfer or PO created')
    accept_parser.add_argument('--linked-type', type=str, help='transfer or purchase-order')

    dismiss_parser = subparsers.add_parser('dismiss', help='Dismiss a suggestion')
    dismiss_parser.add_argument('id', help='Suggestion ID')
    dismiss_parser.add_argument('--reason', type=str, help='Reason for dismissing')

    snooze_parser = subparsers.add_parser('snooze', help='Snooze a suggestion')
    snooze_parser.add_argument('id', help='Suggestion ID')
    snooze_parser.add_argument('--until', type=str, required=True, help='ISO date or timestamp')

    rate_parser = subparsers.add_parser('effective-rate', help='Show the effective daily rate of a forecast')
    rate_parser.add_argument('--product', type=str, required=True, help='Product ID')
    rate_parser.add_argument('--location', type=str, required=True, help='Location ID')
    rate_parser.add_argument('--date', type=str, help='Date to evaluate (YYYY-MM-DD)')

    args = parser.parse_args()

    if args.verbose:
        logger.app_logger.setLevel('DEBUG')

    commands = {
        'init-db': init_db,
        'forecast': calculate_forecasts,
        'suggestions': generate_suggestions,
        'nightly': nightly,
        'list': list_suggestions,
        'accept': update_status,
        'dismiss': update_status,
        'snooze': update_status,
        'effective-rate': effective_rate,
    }

    if args.command not in commands:
        parser.print_help()
        return 1

    try:
        init_application()
        return commands[args.command](args)
    except IntelligenceError as e:
        logger.app_logger.error(str(e))
        _print(e.to_dict())
        return 1
    except ValueError as e:
        logger.app_logger.error(str(e))
        return 1
    except Exception as e:
        log_exception('app', e, f"Command {args.command} failed")
        return 1

if __name__ == "__main__":
    sys.exit(main())
