# ems/services/reports/csv_generator.py
import csv
import io

from ems.services.reports.base import Dataset, ReportGenerator


class CsvReportGenerator(ReportGenerator):
    format = "csv"
    content_type = "text/csv"
    extension = "csv"

    async def render(self, dataset: Dataset) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(dataset.columns)
        for row in dataset.rows:
            writer.writerow(["" if value is None else value for value in row])
        return buffer.getvalue().encode("utf-8-sig")
