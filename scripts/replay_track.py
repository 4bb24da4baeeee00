#!/usr/bin/env python3
"""
Stream a recorded GPX/FIT activity to a running Stride backend as live fixes.

Drives the /live endpoints exactly as a phone would: start, one POST per fix
(optionally paced in real time), then finish. Useful for exercising the fix
filter and the live map without going outside.

Usage examples:
  - Replay as fast as possible against a local server:
      python scripts/replay_track.py morning.gpx --base-url http://localhost:8000
  - Replay at 10x real time and tag the run:
      python scripts/replay_track.py intervals.fit --speed 10 --run-type interval
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import httpx

from app.tracking.models import LocationFix
from app.tracking.replay import ReplayError, fixes_from_fit, fixes_from_gpx


def load_fixes(path: Path) -> list[LocationFix]:
    ext = path.suffix.lower()
    if ext == ".gpx":
        with path.open("r", encoding="utf-8") as f:
            return fixes_from_gpx(f)
    if ext == ".fit":
        with path.open("rb") as f:
            return fixes_from_fit(f)
    raise ReplayError(f"Unsupported file type: {ext or '(none)'}")


def fix_payload(fix: LocationFix) -> dict:
    return {
        "lat": fix.lat,
        "lng": fix.lng,
        "accuracy_m": fix.accuracy_m,
        "timestamp_ms": fix.timestamp_ms,
    }


def replay_delays(fixes: list[LocationFix], speed: float) -> list[float]:
    """Seconds to wait before each fix; 0 everywhere when speed <= 0."""
    if speed <= 0 or not fixes:
        return [0.0] * len(fixes)
    delays = [0.0]
    for prev, cur in zip(fixes, fixes[1:]):
        delays.append(max(0, cur.timestamp_ms - prev.timestamp_ms) / 1000.0 / speed)
    return delays


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("file", type=Path, help="GPX or FIT activity file")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--speed", type=float, default=0.0, help="Real-time multiplier; 0 = no waiting")
    parser.add_argument("--run-type", default="tempo", choices=["tempo", "trail", "easy", "interval"])
    parser.add_argument("--notes", default=None)
    args = parser.parse_args(argv)

    try:
        fixes = load_fixes(args.file)
    except (OSError, ReplayError) as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return 2
    if not fixes:
        print(f"No timestamped positions in {args.file}", file=sys.stderr)
        return 2

    with httpx.Client(base_url=args.base_url, timeout=10.0) as client:
        r = client.post("/live/start")
        if r.status_code != 200:
            print(f"Start failed ({r.status_code}): {r.text}", file=sys.stderr)
            return 1

        for i, (fix, delay) in enumerate(zip(fixes, replay_delays(fixes, args.speed)), start=1):
            if delay:
                time.sleep(delay)
            r = client.post("/live/fix", json=fix_payload(fix))
            r.raise_for_status()
            if i % 50 == 0:
                m = r.json()
                print(f"{i}/{len(fixes)} fixes  {m['distance_km']:.2f} km  {m['duration']}")

        r = client.post("/live/finish", json={"run_type": args.run_type, "notes": args.notes})
        if r.status_code != 200:
            print(f"Finish failed ({r.status_code}): {r.text}", file=sys.stderr)
            return 1
        run = r.json()
        print(f"Saved run {run['id']}: {run['distance_km']:.2f} km, pace {run['avg_pace']}/km")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
