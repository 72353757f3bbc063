#!/usr/bin/env python3
"""Load test / benchmark script for the catalog feed API.

Sends a synthetic catalog to the feed endpoint and interleaves taps so the
preference store is written while feeds are being ranked.

Usage:
    python scripts/benchmark.py --base-url http://localhost:8000 --concurrency 10 --requests 200 --products 500
"""

import argparse
import asyncio
import random
import statistics
import time

import httpx

CATEGORIES = ["vestidos", "camisas", "calcados", "bolsas", "acessorios", "saias"]
STORES = ["Loja Centro", "Loja Norte", "Loja Shopping", "Loja Sul"]
ETAS = ["Entrega em 40 min", "Entrega em 2 horas", "Chega amanhã", "3 dias"]


def synthetic_catalog(size: int, seed: int = 7) -> list[dict]:
    """Catalog rows where roughly a third of the items are sold by several stores."""
    rng = random.Random(seed)
    rows = []
    for i in range(size):
        item = i if rng.random() > 0.33 else rng.randrange(max(1, i))
        rows.append(
            {
                "id": i + 1,
                "name": f"Produto {item}",
                "brand": f"Marca {item % 40}",
                "store_name": rng.choice(STORES),
                "store_id": rng.randrange(1, 50),
                "price": round(rng.uniform(20, 900), 2),
                "categories": rng.choice(CATEGORIES),
                "gender": rng.choice(["female", "male", "unisex"]),
                "sizes": ",".join(rng.sample(["P", "M", "G", "GG"], 2)),
                "eta_text": rng.choice(ETAS),
                "view_count": rng.randrange(0, 80),
            }
        )
    return rows


async def timed(client: httpx.AsyncClient, method: str, url: str, body: dict) -> tuple[float, int]:
    start = time.perf_counter()
    try:
        resp = await client.request(method, url, json=body)
        return time.perf_counter() - start, resp.status_code
    except httpx.HTTPError:
        return time.perf_counter() - start, 0


async def run_benchmark(
    base_url: str, concurrency: int, total_requests: int, products: int
) -> None:
    catalog = synthetic_catalog(products)
    results: dict[str, list[float]] = {"feed": [], "tap": []}
    errors: dict[str, int] = {"feed": 0, "tap": 0}

    sem = asyncio.Semaphore(concurrency)

    async def bounded_request(client: httpx.AsyncClient, i: int) -> None:
        profile_id = f"bench-{i % concurrency}"
        if i % 4 == 3:
            name = "tap"
            url = f"{base_url}/api/v1/interactions"
            body = {
                "profile_id": profile_id,
                "interaction_type": "tap",
                "product": catalog[i % len(catalog)],
            }
        else:
            name = "feed"
            url = f"{base_url}/api/v1/feed"
            body = {"profile_id": profile_id, "session_seed": i, "products": catalog, "limit": 48}

        async with sem:
            duration, status = await timed(client, "POST", url, body)
        if 200 <= status < 300:
            results[name].append(duration)
        else:
            errors[name] += 1

    async with httpx.AsyncClient(timeout=30.0) as client:
        tasks = [bounded_request(client, i) for i in range(total_requests)]

        overall_start = time.perf_counter()
        await asyncio.gather(*tasks)
        overall_duration = time.perf_counter() - overall_start

    print(f"\n{'=' * 70}")
    print("CATALOG FEED - BENCHMARK REPORT")
    print(f"{'=' * 70}")
    print(f"Total requests: {total_requests} | Concurrency: {concurrency} | Products: {products}")
    print(f"Total time: {overall_duration:.2f}s | RPS: {total_requests / overall_duration:.1f}")
    print(f"{'=' * 70}\n")

    for name, latencies in results.items():
        if not latencies:
            print(f"{name}: No successful requests (errors: {errors[name]})")
            continue
        sorted_lat = sorted(latencies)
        p95_idx = min(int(len(sorted_lat) * 0.95), len(sorted_lat) - 1)
        print(f"{name}")
        print(f"  Requests : {len(latencies)} OK, {errors[name]} errors")
        print(f"  Avg      : {statistics.mean(latencies) * 1000:.1f}ms")
        print(f"  P50      : {statistics.median(latencies) * 1000:.1f}ms")
        print(f"  P95      : {sorted_lat[p95_idx] * 1000:.1f}ms")
        print(f"  Min/Max  : {min(latencies) * 1000:.1f}ms / {max(latencies) * 1000:.1f}ms")
        print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark the catalog feed API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--concurrency", type=int, default=10)
    parser.add_argument("--requests", type=int, default=100)
    parser.add_argument("--products", type=int, default=300)
    args = parser.parse_args()

    asyncio.run(run_benchmark(args.base_url, args.concurrency, args.requests, args.products))


if __name__ == "__main__":
    main()
