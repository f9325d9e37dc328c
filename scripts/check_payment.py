"""Fetch and print the bridge's view of one invoice or payment."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for manual payment status checks."""

    parser = argparse.ArgumentParser(description="Query /api/check-payment for an invoice or payment id.")
    parser.add_argument("payment_ref", help="QPay invoice id or payment id")
    parser.add_argument("--bridge-url", default="http://localhost:5000")
    args = parser.parse_args()

    resp = httpx.get(f"{args.bridge_url}/api/check-payment/{args.payment_ref}", timeout=10.0)
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
