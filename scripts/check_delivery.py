from __future__ import annotations

import argparse
import asyncio
import json

from services.api.app.services.delivery_base import DeliveryAddress
from services.api.app.services.delivery_factory import get_delivery_resolver


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Resolve a delivery address with the configured strategy "
        "(JUICE_DELIVERY_MODE) and print the result"
    )
    parser.add_argument("--street", required=True)
    parser.add_argument("--city", required=True)
    parser.add_argument("--zip", dest="zip_code", required=True)
    args = parser.parse_args()

    resolver = get_delivery_resolver()
    address = DeliveryAddress(street=args.street, city=args.city, zip_code=args.zip_code)
    resolution = asyncio.run(resolver.resolve(address))

    print(
        json.dumps(
            {
                "strategy": resolution.strategy,
                "validated": resolution.validated,
                "fee_amount": str(resolution.fee_amount),
                "distance_miles": (
                    round(resolution.distance_miles, 1)
                    if resolution.distance_miles is not None
                    else None
                ),
                "failure_reason": resolution.failure_reason,
                "failure_kind": resolution.failure_kind,
            },
            indent=2,
        )
    )
    return 0 if resolution.validated else 1


if __name__ == "__main__":
    raise SystemExit(main())
