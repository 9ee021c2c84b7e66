"""Render finished sessions to CSV files on disk."""

from __future__ import annotations

import csv
import io
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from ..runtime.exceptions import WriteError
from ..samples import Sample

logger = logging.getLogger(__name__)

FILENAME_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def render_csv(samples: Sequence[Sample]) -> str:
    """Return the CSV document for ``samples``: header row then one row each.

    All samples must be of the same kind; rows keep the input order.
    """

    if not samples:
        raise ValueError("cannot render an empty sample sequence")
    sample_type = type(samples[0])
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(sample_type.columns)
    for sample in samples:
        if type(sample) is not sample_type:
            raise ValueError(
                f"mixed sample kinds: {sample_type.kind.value} and {sample.kind.value}"
            )
        writer.writerow(sample.to_row())
    return buffer.getvalue()


class CsvExporter:
    """Write sample sequences to ``<kind>_<YYYYMMDD_HHmmss>.csv`` files.

    Exports may run concurrently from worker threads; every call claims its
    own file name and staging file.
    """

    def __init__(
        self,
        output_root: Path,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._output_root = Path(output_root)
        self._now = now or datetime.now

    @property
    def output_root(self) -> Path:
        return self._output_root

    def export(self, samples: Sequence[Sample]) -> Path:
        """Write ``samples`` to a new file and return its path.

        Raises :class:`WriteError` when the output directory cannot be
        created or the file cannot be written.
        """

        document = render_csv(samples)
        prefix = samples[0].kind.value

        try:
            self._output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"output directory unavailable: {exc}") from exc

        try:
            destination = self._reserve(prefix)
        except OSError as exc:
            raise WriteError(f"could not allocate a {prefix} file name: {exc}") from exc

        staging: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="",
                dir=self._output_root,
                prefix=f".{destination.stem}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                staging = Path(handle.name)
                handle.write(document)
            os.replace(staging, destination)
        except OSError as exc:
            if staging is not None:
                staging.unlink(missing_ok=True)
            destination.unlink(missing_ok=True)
            raise WriteError(f"could not write {destination.name}: {exc}") from exc

        logger.info("Exported %d %s samples to %s", len(samples), prefix, destination)
        return destination

    def _reserve(self, prefix: str) -> Path:
        """Create an empty placeholder under the first free name and return it."""

        stamp = self._now().strftime(FILENAME_TIMESTAMP_FORMAT)
        name = f"{prefix}_{stamp}.csv"
        suffix = 0
        while True:
            candidate = self._output_root / name
            try:
                with candidate.open("x", encoding="utf-8"):
                    return candidate
            except FileExistsError:
                suffix += 1
                name = f"{prefix}_{stamp}-{suffix}.csv"
