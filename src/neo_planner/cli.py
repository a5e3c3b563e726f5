"""
Command-line interface for the NEO visibility planner.

This module provides a CLI for planning observing windows, managing the
planetary kernel, fetching NEO targets from NeoWs and quick pointing checks.
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional
import json
import logging
import sys

import click

from .ephemeris.acquisition import KERNEL_FILE, KernelStore, ensure_kernel
from .ephemeris.kernel import SpkEphemeris
from .config import PlannerSettings, load_settings
from .neows import NeoWsClient
from .planner import PlannedResult, VisibilityPlanner
from .sunlight import sun_altaz, twilight_phase
from .targets import NeoTarget, Observer, TargetManager
from .timescales import et_seconds
from .utils import ensure_directory_exists, format_duration, parse_datetime, setup_logging

logger = logging.getLogger(__name__)

observer_options = [
    click.option('--lat', required=True, type=float, help='Observer latitude in degrees'),
    click.option('--lon', required=True, type=float,
                 help='Observer longitude in degrees (east positive)'),
    click.option('--elevation', default=0.0, type=float,
                 help='Observer height above the ellipsoid in meters (default: 0)'),
]


def with_observer_options(func):
    for option in reversed(observer_options):
        func = option(func)
    return func


def _kernel_path(kernel: Optional[str], settings: PlannerSettings) -> Path:
    if kernel:
        return Path(kernel)
    return settings.kernel_dir / KERNEL_FILE


def _parse_time(value: Optional[str]) -> datetime:
    return parse_datetime(value) if value else datetime.now(timezone.utc)


def _fail(message: str, error: Exception) -> None:
    logger.error(f"{message}: {error}")
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def _format_result(index: int, result: PlannedResult) -> List[str]:
    flag = " [PHA]" if result.target.is_hazardous else ""
    lines = [f"{index}. {result.name}{flag}"]
    if result.best_window is None:
        lines.append("   Not observable in this window")
        return lines
    duration = format_duration(result.best_window.duration.total_seconds())
    lines.append(
        f"   Best window: {result.best_start_local:%Y-%m-%d %H:%M} -> "
        f"{result.best_end_local:%Y-%m-%d %H:%M %Z} ({duration})"
    )
    lines.append(
        f"   Peak: {result.peak_time_local:%H:%M} alt {result.peak_altitude_deg:.1f}° "
        f"az {result.peak_azimuth_deg:.1f}° ({result.peak_cardinal})"
    )
    lines.append(f"   {result.pointing_hint}")
    lines.append(f"   Windows found: {result.visible_window_count}")
    return lines


@click.group()
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level')
@click.option('--log-file', type=click.Path(), help='Log file path')
def main(log_level: str, log_file: Optional[str]) -> None:
    """NEO Visibility Planner - find when near-Earth objects are observable."""
    setup_logging(log_level, log_file)
    logger.debug("Starting NEO planner CLI")


@main.command()
@click.option('--kernel', type=click.Path(),
              help='SPK kernel path (default: de442s.bsp in the configured kernel dir)')
@click.option('--targets', 'targets_file', required=True, type=click.Path(exists=True),
              help='JSON file with NEO targets')
@with_observer_options
@click.option('--tz', 'time_zone', default='UTC', help='IANA time zone for local times')
@click.option('--start', type=str, help='Start time (ISO 8601, UTC if no offset; default: now)')
@click.option('--hours', type=float, help='Planning horizon in hours')
@click.option('--step', type=int, help='Sample step in minutes')
@click.option('--min-alt', type=float, help='Minimum target altitude in degrees')
@click.option('--twilight', type=float, help='Maximum Sun altitude in degrees')
@click.option('--max-targets', type=int, help='Plan only the first N targets')
@click.option('--workers', type=int, help='Worker threads for the per-target loop')
@click.option('--format', 'output_format', default='text',
              type=click.Choice(['text', 'json']), help='Output format')
@click.option('--output', type=click.Path(), help='Write JSON results to this file')
@click.option('--config', type=click.Path(exists=True), help='YAML settings file')
def plan(
    kernel: Optional[str],
    targets_file: str,
    lat: float,
    lon: float,
    elevation: float,
    time_zone: str,
    start: Optional[str],
    hours: Optional[float],
    step: Optional[int],
    min_alt: Optional[float],
    twilight: Optional[float],
    max_targets: Optional[int],
    workers: Optional[int],
    output_format: str,
    output: Optional[str],
    config: Optional[str],
) -> None:
    """Plan observing windows for NEO targets.

    Example:
    plan --targets neos.json --lat 34.05 --lon -118.25 --tz America/Los_Angeles --hours 12
    """
    try:
        settings = load_settings(config)
        observer = Observer(lat, lon, elevation, time_zone)
        request = settings.visibility_request(
            horizon_hours=hours,
            step_minutes=step,
            min_altitude_deg=min_alt,
            twilight_limit_deg=twilight,
            max_targets=max_targets,
        )
        targets = list(TargetManager.load_from_file(targets_file))
        start_dt = _parse_time(start)

        with SpkEphemeris.open(_kernel_path(kernel, settings)) as ephemeris:
            planner = VisibilityPlanner(
                ephemeris,
                time_scales=settings.time_scales(),
                max_workers=workers if workers is not None else settings.max_workers,
            )
            results = planner.plan(observer, targets, request, start_dt)

        payload = [r.to_dict() for r in results]
        if output:
            with open(output, 'w') as f:
                json.dump({"observer": observer.to_dict(), "results": payload}, f, indent=2)
            click.echo(f"Results saved to: {output}")

        if output_format == 'json':
            click.echo(json.dumps(payload, indent=2))
        else:
            click.echo(f"\n=== Visibility plan for {observer} ===")
            for i, result in enumerate(results, 1):
                for line in _format_result(i, result):
                    click.echo(line)

    except Exception as e:
        _fail("Visibility planning failed", e)


@main.command('download-kernel')
@click.option('--dir', 'directory', type=click.Path(), help='Directory to store the kernel')
@click.option('--config', type=click.Path(exists=True), help='YAML settings file')
def download_kernel(directory: Optional[str], config: Optional[str]) -> None:
    """Download and verify the DE442s kernel from NAIF."""
    try:
        settings = load_settings(config)
        target_dir = ensure_directory_exists(directory or settings.kernel_dir)
        path = ensure_kernel(KernelStore(target_dir))
        click.echo(f"Kernel ready: {path}")
    except Exception as e:
        _fail("Kernel download failed", e)


@main.command('kernel-info')
@click.option('--kernel', required=True, type=click.Path(exists=True), help='SPK kernel path')
def kernel_info(kernel: str) -> None:
    """List the segments of an SPK kernel."""
    try:
        with SpkEphemeris.open(kernel) as ephemeris:
            index = ephemeris.index
            click.echo(f"Format: {index.file_format} (ND={index.nd}, NI={index.ni})")
            click.echo(f"Segments: {len(index)}")
            for seg in index.segments:
                status = "" if seg.is_evaluable() else "  (not evaluated)"
                click.echo(
                    f"  {seg.target_id:>4} wrt {seg.center_id:>4}  frame {seg.frame_id}  "
                    f"type {seg.segment_type}  ET [{seg.start_epoch:.1f}, {seg.end_epoch:.1f}]"
                    f"{status}"
                )
    except Exception as e:
        _fail("Reading kernel failed", e)


@main.command('fetch-neos')
@click.option('--start-date', type=click.DateTime(formats=['%Y-%m-%d']),
              help='Feed start date (default: today)')
@click.option('--end-date', type=click.DateTime(formats=['%Y-%m-%d']),
              help='Feed end date (default: start + 1 day)')
@click.option('--max', 'max_targets', default=10, type=int,
              help='Fetch elements for at most N objects (default: 10)')
@click.option('--api-key', help='NeoWs API key (default: from settings/environment)')
@click.option('--output', required=True, type=click.Path(), help='Output targets JSON file')
@click.option('--config', type=click.Path(exists=True), help='YAML settings file')
def fetch_neos(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    max_targets: int,
    api_key: Optional[str],
    output: str,
    config: Optional[str],
) -> None:
    """Fetch NEO targets with orbital elements from NASA NeoWs."""
    try:
        settings = load_settings(config)
        start_day = start_date.date() if start_date else date.today()
        end_day = end_date.date() if end_date else start_day + timedelta(days=1)

        client = NeoWsClient(api_key or settings.neows_api_key)
        candidates = client.fetch_candidates(start_day, end_day)
        click.echo(f"Found {len(candidates)} close approaches between {start_day} and {end_day}")

        targets = client.fetch_targets(candidates, max_targets)
        TargetManager(targets).save_to_file(output)
        click.echo(f"Saved {len(targets)} targets to: {output}")
    except Exception as e:
        _fail("Fetching NEOs failed", e)


@main.command()
@click.option('--kernel', required=True, type=click.Path(exists=True), help='SPK kernel path')
@with_observer_options
@click.option('--time', 'when', type=str, help='Instant (ISO 8601, default: now)')
def sun(kernel: str, lat: float, lon: float, elevation: float, when: Optional[str]) -> None:
    """Show the Sun's altitude and azimuth for an observer."""
    try:
        observer = Observer(lat, lon, elevation)
        instant = _parse_time(when)
        with SpkEphemeris.open(kernel) as ephemeris:
            altaz = sun_altaz(ephemeris, instant, observer)
        click.echo(f"Time (UTC): {instant.isoformat()}  ET: {et_seconds(instant):.3f}")
        click.echo(f"Sun altitude: {altaz.altitude_deg:.2f}°  azimuth: {altaz.azimuth_deg:.2f}°")
        click.echo(f"Sky: {twilight_phase(altaz.altitude_deg)}")
    except Exception as e:
        _fail("Sun position failed", e)


@main.command()
@click.option('--kernel', required=True, type=click.Path(exists=True), help='SPK kernel path')
@click.option('--targets', 'targets_file', required=True, type=click.Path(exists=True),
              help='JSON file with NEO targets')
@with_observer_options
@click.option('--time', 'when', type=str, help='Instant (ISO 8601, default: now)')
def point(
    kernel: str,
    targets_file: str,
    lat: float,
    lon: float,
    elevation: float,
    when: Optional[str],
) -> None:
    """Show where each target is in the sky right now (or at --time)."""
    try:
        observer = Observer(lat, lon, elevation)
        instant = _parse_time(when)
        targets: List[NeoTarget] = list(TargetManager.load_from_file(targets_file))
        with SpkEphemeris.open(kernel) as ephemeris:
            pointed = VisibilityPlanner(ephemeris).point(observer, targets, instant)

        click.echo(f"Pointing at {instant.isoformat()}")
        for target, result in pointed:
            if result is None:
                click.echo(f"  {target.name}: orbit cannot be propagated")
                continue
            click.echo(
                f"  {target.name}: alt {result.altaz.altitude_deg:.1f}° "
                f"az {result.altaz.azimuth_deg:.1f}° ({result.cardinal}), "
                f"RA {result.radec.ra_deg:.3f}° Dec {result.radec.dec_deg:.3f}°"
            )
            click.echo(f"    {result.hint}")
    except Exception as e:
        _fail("Pointing failed", e)


if __name__ == '__main__':
    main()
