# ems/services/reports/excel_generator.py
import asyncio
import io

import pandas as pd

from ems.services.reports.base import Dataset, ReportGenerator

# Excel caps sheet titles at 31 characters.
MAX_SHEET_NAME = 31


class ExcelReportGenerator(ReportGenerator):
    format = "xlsx"
    content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    extension = "xlsx"

    def _write(self, dataset: Dataset) -> bytes:
        df = pd.DataFrame(list(dataset.rows), columns=dataset.columns)

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            sheet_name = dataset.title[:MAX_SHEET_NAME]
            df.to_excel(writer, index=False, sheet_name=sheet_name)

            sheet = writer.sheets[sheet_name]
            for index, column in enumerate(dataset.columns):
                width = max([len(str(column))] + [len(str(v)) for v in df.iloc[:, index]]) if len(df) else len(column)
                sheet.column_dimensions[sheet.cell(row=1, column=index + 1).column_letter].width = min(width + 2, 60)

        return output.getvalue()

    async def render(self, dataset: Dataset) -> bytes:
        return await asyncio.to_thread(self._write, dataset)
