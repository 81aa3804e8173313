# ems_client/utils.py
import asyncio
import csv
import functools
import logging
import os
import time
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# CSV header -> API field
EMPLOYEE_COLUMNS = {
    "First Name": "first_name",
    "Last Name": "last_name",
    "Email": "email",
    "Phone Number": "phone_number",
    "Address": "address",
    "Date of Birth": "date_of_birth",
    "Date of Joining": "date_of_joining",
    "Position": "position",
    "Salary": "salary",
    "Department ID": "department_id",
}

REQUIRED_FIELDS = [
    "first_name", "last_name", "email", "date_of_birth", "date_of_joining", "salary", "department_id",
]

DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y"]


def log_execution_time(func):
    """Decorator to log function execution time"""
    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
            logger.info(f"Function {func.__name__} executed in {time.time() - start_time:.4f} seconds")
            return result
        except Exception as e:
            logger.error(f"Function {func.__name__} failed after {time.time() - start_time:.4f} seconds. Error: {str(e)}")
            raise

    return async_wrapper


def retry(max_retries: int = 3, retry_delay: float = 1.0,
          backoff_factor: float = 2.0, exceptions: tuple = (Exception,)):
    """Decorator to retry coroutines with exponential backoff"""
    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            retries = 0
            current_delay = retry_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    retries += 1
                    if retries > max_retries:
                        logger.error(f"Max retries ({max_retries}) reached for {func.__name__}")
                        raise

                    logger.warning(f"Retry {retries}/{max_retries} for {func.__name__} after error: {str(e)}")
                    await asyncio.sleep(current_delay)
                    current_delay *= backoff_factor

        return async_wrapper

    return decorator


def parse_date(value: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_employee_csv(file_path: str, delimiter: str = ',', encoding: str = 'utf-8') -> List[Dict[str, Any]]:
    """
    Parse an employee CSV file into API-shaped dictionaries

    Args:
        file_path: Path to CSV file
        delimiter: CSV delimiter
        encoding: File encoding

    Returns:
        One dictionary per row, keyed by API field name. Values that could
        not be converted are kept as strings so the server can reject them.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"CSV file not found: {file_path}")

    rows = []
    with open(file_path, 'r', encoding=encoding, newline='') as csvfile:
        reader = csv.DictReader(csvfile, delimiter=delimiter)

        for i, row in enumerate(reader, 1):
            record = {}
            for column, field_name in EMPLOYEE_COLUMNS.items():
                value = (row.get(column) or "").strip()
                record[field_name] = value or None

            for field_name in ("date_of_birth", "date_of_joining"):
                if record[field_name]:
                    parsed = parse_date(record[field_name])
                    if parsed is None:
                        logger.warning(f"Failed to parse {field_name}='{record[field_name]}' in row {i}")
                    else:
                        record[field_name] = parsed

            if record["salary"]:
                try:
                    record["salary"] = Decimal(record["salary"])
                except InvalidOperation:
                    logger.warning(f"Failed to convert salary='{record['salary']}' in row {i}")

            if record["department_id"]:
                try:
                    record["department_id"] = int(record["department_id"])
                except ValueError:
                    logger.warning(f"Failed to convert department_id='{record['department_id']}' in row {i}")

            rows.append(record)

    logger.info(f"Successfully parsed {len(rows)} rows from {file_path}")
    return rows


def missing_fields(record: Dict[str, Any]) -> List[str]:
    return [name for name in REQUIRED_FIELDS if record.get(name) is None]


def format_employee_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty values and make dates and decimals JSON friendly"""
    formatted = {}
    for key, value in record.items():
        if value is None:
            continue
        if isinstance(value, date):
            formatted[key] = value.isoformat()
        elif isinstance(value, Decimal):
            formatted[key] = str(value)
        else:
            formatted[key] = value
    return formatted


def save_failed_records(records: List[Dict[str, Any]], output_path: str) -> None:
    """
    Save failed records to a CSV file

    Args:
        records: List of failed records
        output_path: Path to save the CSV file
    """
    if not records:
        logger.info("No failed records to save")
        return

    fieldnames = sorted({key for record in records for key in record.keys()})

    with open(output_path, 'w', newline='') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            writer.writerow({
                key: value.isoformat() if isinstance(value, (datetime, date)) else value
                for key, value in record.items()
            })

    logger.info(f"Saved {len(records)} failed records to {output_path}")


async def gather_with_concurrency(n: int, *tasks):
    """Run tasks with a concurrency limit, returning exceptions in place"""
    semaphore = asyncio.Semaphore(n)

    async def sem_task(task):
        async with semaphore:
            return await task

    return await asyncio.gather(*(sem_task(task) for task in tasks), return_exceptions=True)
