"""Protean Engine runner for the Storefront domains.

Starts Engine workers that process events asynchronously:
- OutboxProcessor: polls outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes event handlers
  (Sales subscribes to the payments::payment stream to keep orders in step)

Usage:
    python src/server.py                    # Run both domain engines
    python src/server.py --domain sales     # Run only the sales engine
    python src/server.py --domain payments  # Run only the payments engine
"""

import argparse
import asyncio

from protean.server.engine import Engine

from shared.logging import configure_logging

DOMAIN_NAMES = ["sales", "payments"]


def _get_domain(name):
    """Import and initialize a domain by name."""
    if name == "sales":
        from sales.domain import sales

        sales.init()
        return sales
    elif name == "payments":
        from payments.domain import payments

        payments.init()
        return payments
    else:
        raise ValueError(f"Unknown domain: {name}")


async def run(domain_names):
    engines = []
    for name in domain_names:
        domain = _get_domain(name)
        engines.append(Engine(domain))

    await asyncio.gather(*(engine.run() for engine in engines))


def main():
    parser = argparse.ArgumentParser(description="Storefront Engine runner")
    parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        help="Run a single domain engine (default: run all)",
    )
    args = parser.parse_args()

    configure_logging(service=f"engine-{args.domain}" if args.domain else "engine")
    domain_names = [args.domain] if args.domain else DOMAIN_NAMES

    asyncio.run(run(domain_names))


if __name__ == "__main__":
    main()
