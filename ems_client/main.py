# ems_client/main.py
import argparse
import asyncio
import json
import logging
import os
import sys
import time
from datetime import date, datetime

from ems_client.client import ApiError, EmsClient
from ems_client.config import configure_logging, settings
from ems_client.utils import save_failed_records

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Employee Management System client')
    parser.add_argument('--server', '-s', type=str, default=settings.SERVER_URL,
                        help='Server URL')

    commands = parser.add_subparsers(dest='command', required=True)

    for name in ('check-in', 'check-out'):
        sub = commands.add_parser(name, help=f'Record a {name} for an employee')
        sub.add_argument('employee_id', type=int)
        sub.add_argument('--notes', '-n', type=str, default=None)

    history = commands.add_parser('history', help='Show attendance history for an employee')
    history.add_argument('employee_id', type=int)
    history.add_argument('--start', type=date.fromisoformat, default=None, help='YYYY-MM-DD')
    history.add_argument('--end', type=date.fromisoformat, default=None, help='YYYY-MM-DD')

    report = commands.add_parser('report', help='Download a report')
    report.add_argument('dataset', type=str, help='e.g. employees, attendance, salaries')
    report.add_argument('format', type=str, help='csv, xlsx or pdf')
    report.add_argument('--output', '-o', type=str, default=None)
    report.add_argument('--start', type=date.fromisoformat, default=None, help='YYYY-MM-DD')
    report.add_argument('--end', type=date.fromisoformat, default=None, help='YYYY-MM-DD')
    report.add_argument('--employee-id', type=int, default=None)

    upload = commands.add_parser('import', help='Bulk import employees from a CSV file')
    upload.add_argument('--file', '-f', type=str, default=settings.CSV_FILE_PATH,
                        help='CSV file with employee records')
    upload.add_argument('--batch-size', '-b', type=int, default=settings.BATCH_SIZE,
                        help='Records per batch')
    upload.add_argument('--workers', '-w', type=int, default=settings.MAX_WORKERS,
                        help='Concurrent worker count')
    upload.add_argument('--output', '-o', type=str, default=None,
                        help='Failed records output file')

    return parser


async def run_import(client: EmsClient, args) -> int:
    if not os.path.exists(args.file):
        logger.error(f"CSV file not found: {args.file}")
        return 1

    output = args.output or f"failed_records_{datetime.now():%Y%m%d_%H%M%S}.csv"
    if os.path.dirname(output):
        os.makedirs(os.path.dirname(output), exist_ok=True)

    start_time = time.time()
    total_records, successful_count, failed_records = await client.import_csv(args.file)
    elapsed_time = time.time() - start_time

    logger.info(f"Processing completed in {elapsed_time:.2f} seconds")
    logger.info(f"Total: {total_records}, Success: {successful_count}, Failed: {len(failed_records)}")

    if failed_records:
        save_failed_records(failed_records, output)
        logger.info(f"Failed records saved to {output}")
    return 0


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    client = EmsClient(server_url=args.server)
    if args.command == 'import':
        client.batch_size = args.batch_size
        client.max_workers = args.workers

    try:
        await client.initialize()

        if args.command == 'check-in':
            result = await client.check_in(args.employee_id, args.notes)
        elif args.command == 'check-out':
            result = await client.check_out(args.employee_id, args.notes)
        elif args.command == 'history':
            result = await client.attendance_history(args.employee_id, args.start, args.end)
        elif args.command == 'report':
            result = await client.download_report(
                args.dataset, args.format, args.output,
                start_date=args.start, end_date=args.end, employee_id=args.employee_id,
            )
        else:
            return await run_import(client, args)

        print(json.dumps(result, indent=2, default=str))
        return 0
    except ApiError as e:
        logger.error(f"Request rejected: {e.detail}")
        return 1
    except Exception as e:
        logger.error(f"Error: {str(e)}")
        return 1
    finally:
        await client.close()


def run():
    configure_logging(settings)
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run()
