# ems/services/reports/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Sequence


@dataclass
class Dataset:
    """Rows gathered for one report, already reduced to plain values."""
    name: str
    title: str
    columns: List[str]
    rows: List[Sequence[Any]] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    def records(self) -> List[dict]:
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class RenderedReport:
    content: bytes
    content_type: str
    filename: str


class ReportGenerator(ABC):
    """Renders any dataset into one output format."""

    format: str = ""
    content_type: str = "application/octet-stream"
    extension: str = ""

    @abstractmethod
    async def render(self, dataset: Dataset) -> bytes:
        ...

    def filename(self, dataset: Dataset) -> str:
        stamp = dataset.generated_at.strftime("%Y%m%d_%H%M%S")
        return f"{dataset.name.replace('-', '_')}_{stamp}.{self.extension}"
