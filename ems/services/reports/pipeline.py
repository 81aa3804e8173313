# ems/services/reports/pipeline.py
import dataclasses
import logging
from typing import Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.exceptions import NotFoundError, UnsupportedFormatError
from ems.services.reports.base import RenderedReport, ReportGenerator
from ems.services.reports.csv_generator import CsvReportGenerator
from ems.services.reports.datasets import DATASETS, Gatherer, ReportParams
from ems.services.reports.excel_generator import ExcelReportGenerator
from ems.services.reports.pdf_generator import PdfReportGenerator

logger = logging.getLogger(__name__)


def default_generators(pdf_timeout_ms: int = 30000) -> Dict[str, ReportGenerator]:
    excel = ExcelReportGenerator()
    return {
        "csv": CsvReportGenerator(),
        "xlsx": excel,
        "excel": excel,
        "pdf": PdfReportGenerator(timeout_ms=pdf_timeout_ms),
    }


class ReportPipeline:
    """Gathers a dataset and hands it to the generator for the requested format.

    The format is resolved before the dataset name and before any query, so
    an unsupported format never costs a round-trip to the store.
    """

    def __init__(
        self,
        generators: Optional[Mapping[str, ReportGenerator]] = None,
        datasets: Optional[Mapping[str, Gatherer]] = None,
    ):
        self.generators = dict(generators if generators is not None else default_generators())
        self.datasets = dict(datasets if datasets is not None else DATASETS)

    @property
    def formats(self) -> List[str]:
        return sorted(self.generators)

    @property
    def dataset_names(self) -> List[str]:
        return sorted(self.datasets)

    def resolve_generator(self, fmt: str) -> ReportGenerator:
        generator = self.generators.get((fmt or "").strip().lower())
        if generator is None:
            raise UnsupportedFormatError(
                f"Unsupported report format '{fmt}'. Supported formats: {', '.join(self.formats)}"
            )
        return generator

    def resolve_dataset(self, name: str) -> Gatherer:
        gather = self.datasets.get((name or "").strip().lower())
        if gather is None:
            raise NotFoundError(
                f"Unknown report '{name}'. Available reports: {', '.join(self.dataset_names)}"
            )
        return gather

    async def generate(
        self,
        session: AsyncSession,
        dataset_name: str,
        fmt: str,
        params: ReportParams,
    ) -> RenderedReport:
        generator = self.resolve_generator(fmt)
        gather = self.resolve_dataset(dataset_name)

        dataset = await gather(session, params)
        if params.generated_at is not None:
            dataset = dataclasses.replace(dataset, generated_at=params.generated_at)
        content = await generator.render(dataset)

        logger.info(
            f"Generated {dataset.name} report as {generator.format}: "
            f"{len(dataset.rows)} rows, {len(content)} bytes"
        )
        return RenderedReport(
            content=content,
            content_type=generator.content_type,
            filename=generator.filename(dataset),
        )
