"""
Tag position estimator demo.

Feeds range samples into a TagTracker and prints smoothed positions:
- Simulation (default): a tag moving on a circle inside the anchor
  triangle, noisy ranges arriving from one anchor at a time at jittered
  intervals
- Replay (--input FILE): newline-delimited JSON samples
      {"anchor_id": "A0", "distance_m": 2.31, "timestamp": 0.05}
"""

import sys
import json
import math
import logging
import argparse
from typing import Iterator, List, Optional, Tuple

import numpy as np

import config
from tpe_core.proto import AnchorPosition, SmoothedPosition
from tpe_core.localization import TagTracker, create_anchor_positions, create_default_tracker
from tpe_core.metrics import get_metrics

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)

# (anchor_id, distance_m, timestamp)
Sample = Tuple[str, float, Optional[float]]


def simulate_samples(
    anchors: List[AnchorPosition],
    duration_s: float,
    noise_std_m: float,
    rng: np.random.Generator,
) -> Iterator[Tuple[Sample, Tuple[float, float]]]:
    """
    Generate noisy range samples for a tag on a circular path.

    Yields:
        (sample, true_position) pairs in time order
    """
    sim = config.SIMULATION_CONFIG
    cx, cy = sim["path_center"]
    radius = sim["path_radius_m"]
    omega = sim["path_speed_m_s"] / radius

    t = 0.0
    while t <= duration_s:
        true_x = cx + radius * math.cos(omega * t)
        true_y = cy + radius * math.sin(omega * t)

        # Sessions report independently, so the next anchor is arbitrary
        anchor = anchors[int(rng.integers(len(anchors)))]
        distance = anchor.distance_to(true_x, true_y) + rng.normal(0.0, noise_std_m)

        yield (anchor.anchor_id, max(0.0, distance), t), (true_x, true_y)

        jitter = sim["interval_jitter_s"]
        t += sim["sample_interval_s"] + rng.uniform(-jitter, jitter)


def read_samples(path: str) -> Iterator[Sample]:
    """
    Read newline-delimited JSON samples.

    Malformed lines are logged and counted, never fatal.
    """
    metrics = get_metrics()

    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                record = json.loads(line)
                timestamp = record.get("timestamp")
                yield (
                    str(record["anchor_id"]),
                    float(record["distance_m"]),
                    float(timestamp) if timestamp is not None else None,
                )
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Line {line_no}: malformed sample ({e})")
                metrics.increment_drop('parse_error')


def print_estimate(tag_id: str, estimate: SmoothedPosition, truth: Optional[Tuple[float, float]] = None):
    """Print one smoothed estimate (with error vs truth if known)."""
    line = f"[{tag_id}] t={estimate.timestamp:8.3f}s  x={estimate.x:7.3f}  y={estimate.y:7.3f}"
    if truth is not None:
        error = math.hypot(estimate.x - truth[0], estimate.y - truth[1])
        line += f"  err={error:.3f} m"
    print(line)


def run_simulation(tracker: TagTracker, anchors: List[AnchorPosition], args) -> int:
    """Run the simulated tag through the tracker."""
    rng = np.random.default_rng(args.seed)
    errors = []
    emitted = 0

    for (anchor_id, distance, t), truth in simulate_samples(anchors, args.duration, args.noise, rng):
        estimate = tracker.ingest(anchor_id, distance, t)
        if estimate is None:
            continue

        emitted += 1
        errors.append(math.hypot(estimate.x - truth[0], estimate.y - truth[1]))
        if emitted % args.print_interval == 0:
            print_estimate(tracker.tag_id, estimate, truth)

    if errors:
        rms = math.sqrt(sum(e * e for e in errors) / len(errors))
        print(f"\nEstimates: {emitted}, RMS error vs truth: {rms:.3f} m")
    else:
        print("\nNo estimates produced")

    return 0


def run_replay(tracker: TagTracker, path: str, print_interval: int) -> int:
    """Replay recorded samples through the tracker."""
    emitted = 0

    try:
        for anchor_id, distance, t in read_samples(path):
            estimate = tracker.ingest(anchor_id, distance, t)
            if estimate is None:
                continue

            emitted += 1
            if emitted % print_interval == 0:
                print_estimate(tracker.tag_id, estimate)
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return 1

    print(f"\nEstimates: {emitted}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Tag position estimator demo')
    parser.add_argument('--input', '-i', type=str, default=None,
                        help='Replay newline-delimited JSON samples from FILE')
    parser.add_argument('--duration', type=float, default=config.SIMULATION_CONFIG["duration_s"],
                        help='Simulated duration (s)')
    parser.add_argument('--noise', type=float, default=config.SIMULATION_CONFIG["range_noise_std_m"],
                        help='Simulated range noise std dev (m)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for the simulation')
    parser.add_argument('--print-interval', type=int, default=config.OUTPUT_CONFIG["print_interval"],
                        help='Print every Nth estimate')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    args.print_interval = max(1, args.print_interval)

    anchors = create_anchor_positions(config.ANCHOR_CONFIG)
    tracker = create_default_tracker(
        anchors,
        tag_id=config.SIMULATION_CONFIG["tag_id"],
        filter_values=config.FILTER_CONFIG,
        gating_values=config.RANGE_GATING_CONFIG,
    )
    logger.info(f"Tracking {tracker.tag_id} with anchors {tracker.anchor_ids}")

    if args.input:
        status = run_replay(tracker, args.input, args.print_interval)
    else:
        status = run_simulation(tracker, anchors, args)

    get_metrics().print_summary()
    return status


if __name__ == "__main__":
    sys.exit(main())
