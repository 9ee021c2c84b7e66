"""CSV export of finished recording sessions."""

from .csv_exporter import CsvExporter, render_csv

__all__ = [
    "CsvExporter",
    "render_csv",
]
