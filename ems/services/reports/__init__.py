from ems.services.reports.base import Dataset, RenderedReport, ReportGenerator
from ems.services.reports.datasets import ReportParams
from ems.services.reports.pipeline import ReportPipeline, default_generators

__all__ = [
    "Dataset",
    "RenderedReport",
    "ReportGenerator",
    "ReportParams",
    "ReportPipeline",
    "default_generators",
]
