# ems_client/client.py
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ems_client.config import settings
from ems_client.utils import (
    format_employee_record,
    gather_with_concurrency,
    log_execution_time,
    missing_fields,
    parse_employee_csv,
    retry,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success response from the server"""

    def __init__(self, status: int, detail: str):
        super().__init__(f"API error {status}: {detail}")
        self.status = status
        self.detail = detail


class TransientApiError(ApiError):
    """Server-side or throttling failure worth retrying"""


RETRYABLE = (aiohttp.ClientError, asyncio.TimeoutError, TransientApiError)


@dataclass
class EmsClient:
    server_url: str = field(default_factory=lambda: settings.SERVER_URL)
    auth_username: str = field(default_factory=lambda: settings.AUTH_USERNAME)
    auth_password: str = field(default_factory=lambda: settings.AUTH_PASSWORD)
    max_workers: int = field(default_factory=lambda: settings.MAX_WORKERS)
    batch_size: int = field(default_factory=lambda: settings.BATCH_SIZE)
    timeout: float = field(default_factory=lambda: settings.TIMEOUT)

    access_token: Optional[str] = field(default_factory=lambda: settings.API_TOKEN)
    session: Optional[aiohttp.ClientSession] = field(default=None)

    async def initialize(self):
        self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        if not self.access_token:
            await self.authenticate()
        logger.info("Client ready")

    async def close(self):
        if self.session:
            await self.session.close()
        logger.info("Resources released")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @retry(max_retries=3, retry_delay=1.0, exceptions=RETRYABLE)
    async def authenticate(self):
        logger.info("Getting authentication token")
        form_data = {"username": self.auth_username, "password": self.auth_password}

        async with self.session.post(f"{self.server_url}/token", data=form_data) as response:
            if response.status != 200:
                raise ApiError(response.status, await response.text())
            result = await response.json()

        self.access_token = result.get("access_token")
        if not self.access_token:
            raise ApiError(response.status, "No token received")
        logger.info("Authentication successful")

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        if response.status < 400:
            return
        detail = await response.text()
        if response.status >= 500 or response.status == 429:
            raise TransientApiError(response.status, detail)
        raise ApiError(response.status, detail)

    async def _send(self, method: str, path: str, *, raw: bool = False, **kwargs) -> Any:
        if not self.session:
            raise RuntimeError("Client not initialized")

        for attempt in range(2):
            headers = {"Authorization": f"Bearer {self.access_token}"}
            async with self.session.request(method, f"{self.server_url}{path}", headers=headers, **kwargs) as response:
                if response.status == 401 and attempt == 0:
                    logger.warning("Token expired, renewing...")
                    await self.authenticate()
                    continue
                await self._raise_for_status(response)
                if raw:
                    return await response.read(), response.headers.get("Content-Disposition", "")
                return await response.json()

    @retry(max_retries=3, retry_delay=1.0, exceptions=RETRYABLE)
    async def request(self, method: str, path: str, **kwargs) -> Any:
        return await self._send(method, path, **kwargs)

    @retry(max_retries=3, retry_delay=1.0, exceptions=(TransientApiError,))
    async def post_once(self, path: str, **kwargs) -> Any:
        """POST that is never replayed after a lost response.

        The write may already have committed, so only statuses the server
        actually returned as retryable are attempted again.
        """
        return await self._send("POST", path, **kwargs)

    async def check_in(self, employee_id: int, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self.post_once("/api/attendance/check-in", json={"employee_id": employee_id, "notes": notes})

    async def check_out(self, employee_id: int, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self.post_once("/api/attendance/check-out", json={"employee_id": employee_id, "notes": notes})

    async def attendance_history(
        self,
        employee_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        params = {}
        if start_date:
            params["start_date"] = start_date.isoformat()
        if end_date:
            params["end_date"] = end_date.isoformat()
        return await self.request("GET", f"/api/attendance/employee/{employee_id}", params=params)

    @log_execution_time
    async def download_report(
        self,
        dataset: str,
        fmt: str,
        output_path: Optional[str] = None,
        **params: Any,
    ) -> str:
        query = {k: (v.isoformat() if isinstance(v, date) else v) for k, v in params.items() if v is not None}
        content, disposition = await self.request("GET", f"/api/reports/{dataset}/{fmt}", params=query, raw=True)

        if not output_path:
            output_path = disposition.split("filename=")[-1].strip('"') if "filename=" in disposition else f"{dataset}.{fmt}"
        with open(output_path, "wb") as f:
            f.write(content)

        logger.info(f"Saved {dataset} report ({len(content)} bytes) to {output_path}")
        return output_path

    async def create_employee(self, employee: Dict[str, Any]) -> Dict[str, Any]:
        absent = missing_fields(employee)
        if absent:
            raise ValueError(f"Missing required fields: {', '.join(absent)}")
        return await self.post_once("/api/employees/", json=format_employee_record(employee))

    async def send_employees_concurrently(
        self, employees: List[Dict[str, Any]]
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        results = await gather_with_concurrency(
            self.max_workers, *(self.create_employee(employee) for employee in employees)
        )

        successful = []
        failed = []
        for employee, result in zip(employees, results):
            if isinstance(result, Exception):
                failed.append({**employee, "error": str(result)})
            else:
                successful.append({**employee, "response": result})
        return successful, failed

    @log_execution_time
    async def import_csv(self, file_path: str) -> Tuple[int, int, List[Dict[str, Any]]]:
        employees = parse_employee_csv(
            file_path,
            delimiter=settings.CSV_DELIMITER,
            encoding=settings.CSV_ENCODING,
        )
        logger.info(f"Found {len(employees)} employee records")

        successful_count = 0
        failed_records = []
        total_batches = (len(employees) + self.batch_size - 1) // self.batch_size

        for i in range(0, len(employees), self.batch_size):
            batch = employees[i:i + self.batch_size]
            batch_num = i // self.batch_size + 1
            logger.info(f"Processing batch {batch_num}/{total_batches} ({len(batch)} records)")

            successful, failed = await self.send_employees_concurrently(batch)
            successful_count += len(successful)
            failed_records.extend(failed)

            logger.info(f"Batch {batch_num} result: {len(successful)} ok, {len(failed)} failed")

        logger.info(f"CSV import summary: {successful_count} successful, {len(failed_records)} failed")
        return len(employees), successful_count, failed_records
