#!/usr/bin/env python3
"""
hubrelay taxi feed — negotiate, then publish a stream of taxi updates.

Run with: python examples/taxi_feed.py [COUNT]

Requires: pip install httpx
Relay must be running: http://localhost:8000
Set HUBRELAY_FUNCTION_KEY if the relay has one configured.
"""

import json
import os
import random
import sys
import time

import httpx

BASE = os.environ.get("HUBRELAY_API_URL", "http://localhost:8000").rstrip("/") + "/api"


def main():
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 10
    headers = {}
    if os.environ.get("HUBRELAY_FUNCTION_KEY"):
        headers["x-functions-key"] = os.environ["HUBRELAY_FUNCTION_KEY"]
    client = httpx.Client(base_url=BASE, timeout=10, headers=headers)

    # ── Health check ──────────────────────────────────────────────
    print("Checking relay health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Relay not reachable at {BASE}")
        print("Start it with:  hubrelay serve --reload")
        sys.exit(1)
    health = resp.json()
    print(f"  Hub:    {health['hub']}")
    print(f"  Broker: {'✓' if health['broker'] == 'ok' else '✗'}")

    # ── Negotiate (what a subscriber would do first) ──────────────
    print("\n1. Negotiating connection info...")
    resp = client.post("/negotiate")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    info = resp.json()
    print(f"   Subscribers connect to: {info['url']}&access_token=...")
    print(f"   Token expires at:       {info['expiresAt']}")

    # ── Publish updates ───────────────────────────────────────────
    print(f"\n2. Publishing {count} taxi updates...")
    for i in range(count):
        update = {
            "medallion": f"{random.randint(1, 9)}X{random.randint(10, 99)}",
            "lat": round(40.70 + random.random() * 0.1, 5),
            "lon": round(-74.02 + random.random() * 0.1, 5),
            "fare": round(random.uniform(5, 60), 2),
            "seq": i,
        }
        resp = client.post("/message", content=json.dumps(update))
        assert resp.status_code == 200, f"Failed: {resp.status_code} {resp.text}"
        print(f"   → {update['medallion']} seq={i}")
        time.sleep(0.5)

    # ── Empty payloads are rejected ───────────────────────────────
    print("\n3. Sending an empty payload (expect 400)...")
    resp = client.post("/message", content="")
    print(f"   {resp.status_code}: {resp.json()['detail']}")

    print("\nDone.")


if __name__ == "__main__":
    main()
