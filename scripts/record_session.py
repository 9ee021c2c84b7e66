"""Command-line helper that records one simulated session to CSV."""

import argparse
import asyncio
import logging
from contextlib import aclosing
from pathlib import Path

from sensorlog import CsvExporter, RecorderController, RecorderSettings, SampleKind
from sensorlog.sources import SimulatedLocationSource, SimulatedMotionSource


async def main(kind: SampleKind, duration: float | None, output_root: Path | None) -> None:
    """Record until the auto-stop timer fires, then report the exported file."""

    settings = RecorderSettings.from_env(output_root=output_root)
    if kind is SampleKind.LOCATION:
        source = SimulatedLocationSource(interval=settings.location_interval)
    else:
        source = SimulatedMotionSource(interval=settings.motion_interval)

    controller = RecorderController(
        source,
        CsvExporter(settings.output_root),
        max_duration=duration or settings.max_duration,
        liveness_timeout=settings.liveness_timeout,
    )
    async with controller:
        await controller.start()
        async with aclosing(controller.subscribe()) as updates:
            async for snapshot in updates:
                if not snapshot.recording:
                    break
        await controller.drain()

    result = controller.session.export_result if controller.session else None
    if result is not None and result.ok:
        print(f"Saved {controller.recorded_count} samples to {result.path}")
    else:
        print(controller.message)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("kind", choices=[kind.value for kind in SampleKind])
    parser.add_argument("--duration", type=float, default=None, help="seconds to record")
    parser.add_argument("--output", type=Path, default=None, help="CSV output directory")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    asyncio.run(main(SampleKind(args.kind), args.duration, args.output))
