import argparse
import os
import sys
from typing import List, Optional

import requests

from .client import ClientError, ProxyClient, RouterUnavailableError
from .config import DEFAULT_BASE_URL
from .models import ResponseStatus


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="llmproxy", description="Manage model services behind llmproxyd")
    parser.add_argument(
        "--url",
        type=str,
        default=os.getenv("LLMPROXY_URL", DEFAULT_BASE_URL),
        help="Router base URL (default: $LLMPROXY_URL or %s)" % DEFAULT_BASE_URL,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Register a new model service with the router")
    reg.add_argument("--model-name", required=True, help="Name of the model (e.g., Qwen/Qwen2-7B-Instruct)")
    reg.add_argument("--addr", required=True, help="Address of the model service (e.g., localhost:8001)")

    unreg = sub.add_parser("unregister", help="Unregister a model service by address or list index")
    unreg.add_argument("target", help="Address (e.g., localhost:8001) or index from `llmproxy list`")

    sub.add_parser("list", help="List all registered model services")

    test = sub.add_parser("test", help="Check that a registered model service answers /health")
    test.add_argument("addr", help="Address of a registered model service")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    client = ProxyClient(args.url)

    try:
        if args.command == "register":
            result = client.register(args.model_name, args.addr)
        elif args.command == "unregister":
            result = client.unregister(args.target)
        elif args.command == "test":
            result = client.test(args.addr)
        else:
            client.list()
            return 0
    except RouterUnavailableError as e:
        print(f"✖ {e}", file=sys.stderr)
        print("  → Connection refused: start the router with `llmproxyd` or pass --url", file=sys.stderr)
        return 1
    except (ClientError, requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 1 if result.status is ResponseStatus.ERROR else 0


if __name__ == "__main__":
    raise SystemExit(main())
