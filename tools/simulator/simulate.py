#!/usr/bin/env python3
"""geoclock clock-check simulator.

Generates clock-in/out traffic from a mix of honest, remote and spoofing
devices for testing the server.

Usage:
    # 10 devices around the default office for 2 minutes
    python -m tools.simulator.simulate --server http://localhost:8000 --devices 10 --duration 120

    # Half the devices spoof their location
    python -m tools.simulator.simulate --server http://localhost:8000 --spoof-ratio 0.5

    # Specific office location
    python -m tools.simulator.simulate --server http://localhost:8000 --office -6.2,106.8166
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import random
import time
import uuid
from dataclasses import dataclass

import httpx


@dataclass
class SimDevice:
    device_id: str
    employee_id: str
    kind: str                 # "honest", "remote" or "spoofer"
    lat: float
    lng: float
    clocked_in: bool = False
    accepted: int = 0
    denied: int = 0
    errors: int = 0


def jitter(lat: float, lng: float, meters: float) -> tuple[float, float]:
    """Random point within ``meters`` of (lat, lng)."""
    angle = random.uniform(0, 2 * math.pi)
    dist = random.uniform(0, meters)
    dlat = (dist * math.cos(angle)) / 111_000
    dlng = (dist * math.sin(angle)) / (111_000 * math.cos(math.radians(lat)))
    return lat + dlat, lng + dlng


def make_samples(device: SimDevice, count: int) -> list[dict]:
    """A burst of fixes as the app would record them, one second apart."""
    now_ms = int(time.time() * 1000)
    samples = []
    for i in range(count):
        timestamp_ms = now_ms - (count - 1 - i) * 1000
        if device.kind == "spoofer":
            # Mock-location apps: identical coordinates, perfect accuracy, no altitude.
            samples.append({
                "lat": device.lat,
                "lng": device.lng,
                "accuracy_m": 1.0,
                "timestamp_ms": timestamp_ms,
                "speed_mps": random.choice([None, -1.0]),
            })
            continue
        lat, lng = jitter(device.lat, device.lng, 8.0)
        samples.append({
            "lat": lat,
            "lng": lng,
            "accuracy_m": round(random.uniform(5, 40), 1),
            "timestamp_ms": timestamp_ms,
            "altitude_m": round(random.uniform(5, 30), 1),
            "altitude_accuracy_m": round(random.uniform(3, 10), 1),
        })
    return samples


def make_check_payload(device: SimDevice, samples_per_check: int) -> dict:
    return {
        "device_id": device.device_id,
        "employee_id": device.employee_id,
        "action": "clock_out" if device.clocked_in else "clock_in",
        "work_mode": "wfh" if device.kind == "remote" else "wfo",
        "samples": make_samples(device, samples_per_check),
    }


async def run_device(
    client: httpx.AsyncClient,
    device: SimDevice,
    server_url: str,
    checks_per_minute: float,
    duration_seconds: float,
    samples_per_check: int,
) -> None:
    """Simulate a single device alternating clock-in and clock-out."""
    interval = 60.0 / checks_per_minute
    end_time = time.monotonic() + duration_seconds

    while time.monotonic() < end_time:
        payload = make_check_payload(device, samples_per_check)
        try:
            resp = await client.post(
                f"{server_url}/api/v1/clock-checks",
                content=json.dumps(payload),
                headers={"content-type": "application/json"},
            )
            if resp.status_code == 200 and resp.json().get("accepted"):
                device.accepted += 1
                device.clocked_in = not device.clocked_in
            elif resp.status_code == 200:
                device.denied += 1
            else:
                device.errors += 1
        except httpx.RequestError:
            device.errors += 1

        await asyncio.sleep(interval)


def make_devices(args: argparse.Namespace) -> list[SimDevice]:
    office_lat, office_lng = args.office
    devices = []
    for i in range(args.devices):
        roll = random.random()
        if roll < args.spoof_ratio:
            kind = "spoofer"
            lat, lng = jitter(office_lat, office_lng, 30.0)
        elif roll < args.spoof_ratio + args.remote_ratio:
            kind = "remote"
            lat, lng = jitter(office_lat, office_lng, 15_000.0)
        else:
            kind = "honest"
            lat, lng = jitter(office_lat, office_lng, args.spread_m)
        devices.append(SimDevice(
            device_id=str(uuid.uuid4()),
            employee_id=f"emp-{i + 1:04d}",
            kind=kind,
            lat=lat,
            lng=lng,
        ))
    return devices


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    devices = make_devices(args)
    kinds = {k: sum(1 for d in devices if d.kind == k) for k in ("honest", "remote", "spoofer")}

    print(f"Starting simulation: {args.devices} devices, {args.checks_per_minute} checks/min each")
    print(f"  Office: {args.office[0]:.4f}, {args.office[1]:.4f}")
    print(f"  Mix: {kinds['honest']} honest, {kinds['remote']} remote, {kinds['spoofer']} spoofing")
    print(f"  Duration: {args.duration}s")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=30.0) as client:
        tasks = [
            run_device(client, dev, args.server, args.checks_per_minute,
                       args.duration, args.samples)
            for dev in devices
        ]
        await asyncio.gather(*tasks)

        elapsed = time.monotonic() - start
        print(f"\nSimulation complete in {elapsed:.1f}s")
        for kind in ("honest", "remote", "spoofer"):
            group = [d for d in devices if d.kind == kind]
            if not group:
                continue
            print(f"  {kind:8s} accepted={sum(d.accepted for d in group)} "
                  f"denied={sum(d.denied for d in group)} "
                  f"errors={sum(d.errors for d in group)}")

        # Check server stats
        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
        except httpx.RequestError as exc:
            print(f"\nCould not fetch server stats: {exc}")
            return
        if resp.status_code == 200:
            stats = resp.json()
            print("\nServer stats:")
            print(f"  Checks received: {stats['checks_received']}")
            print(f"  Checks accepted: {stats['checks_accepted']}")
            print(f"  Rejected: {stats['rejected']}")
            print(f"  Records stored: {stats['records_stored']}")
            print(f"  Active devices (clocked in): {stats['active_devices']['clock_in']}")
            print(f"  Queue depth: {stats['queue_depth']}")


def main():
    parser = argparse.ArgumentParser(description="geoclock clock-check simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--devices", type=int, default=10, help="Number of simulated devices")
    parser.add_argument("--duration", type=int, default=60, help="Simulation duration in seconds")
    parser.add_argument("--checks-per-minute", type=float, default=6, help="Clock checks per minute per device")
    parser.add_argument("--office", type=str, default="-6.2,106.8166",
                        help="Office lat,lng (default: Jakarta)")
    parser.add_argument("--spread-m", type=float, default=60.0,
                        help="How far honest devices stand from the office center")
    parser.add_argument("--spoof-ratio", type=float, default=0.2, help="Share of spoofing devices")
    parser.add_argument("--remote-ratio", type=float, default=0.2, help="Share of work-from-home devices")
    parser.add_argument("--samples", type=int, default=3, help="Samples uploaded per check")

    args = parser.parse_args()

    lat, lng = args.office.split(",")
    args.office = (float(lat), float(lng))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
