"""CLI for the kalshi_watch API: link accounts, start and stop watchers.

Usage:
  poetry run kalshi-watchctl health
  poetry run kalshi-watchctl link alice --api-key KEY --key-file kalshi.pem
  poetry run kalshi-watchctl alert alice KXBTC-25 yes 10 --base 0.40
  poetry run kalshi-watchctl stoploss alice KXBTC-25 yes 10 --base 0.50
  poetry run kalshi-watchctl list alice
  poetry run kalshi-watchctl stop alice KXBTC-25 yes
  poetry run kalshi-watchctl stop-all alice
  poetry run kalshi-watchctl stream KXBTC-25 --messages 5
"""
import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

import httpx

from kalshi_watch.config import get_settings
from kalshi_watch.providers import KalshiPriceStream
from kalshi_watch.schemas import Credentials, Side, WatchMode


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def _read_key(path: str) -> str:
    return Path(path).expanduser().read_text(encoding="utf-8")


def cmd_health(client: httpx.Client, _: argparse.Namespace) -> int:
    r = client.get("/")
    r.raise_for_status()
    print_json(r.json())
    return 0


def cmd_link(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.put(
        f"/accounts/{args.user_id}",
        json={"api_key": args.api_key, "private_key": _read_key(args.key_file)},
    )
    r.raise_for_status()
    print_json(r.json())
    return 0


def cmd_unlink(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.delete(f"/accounts/{args.user_id}")
    r.raise_for_status()
    print_json(r.json())
    return 0


def _start_watch(client: httpx.Client, args: argparse.Namespace, mode: WatchMode) -> int:
    r = client.post(
        "/watches",
        json={
            "user_id": args.user_id,
            "ticker": args.ticker,
            "side": args.side,
            "mode": mode.value,
            "threshold_percent": args.percent,
            "base_price": args.base,
        },
    )
    r.raise_for_status()
    watch = r.json()
    print(
        f"Watching {watch['ticker']} {watch['side'].upper()} ({watch['mode']}): "
        f"entry ${watch['base_price']:.4f}, fires at ${watch['trigger_price']:.4f}"
    )
    return 0


def cmd_alert(client: httpx.Client, args: argparse.Namespace) -> int:
    return _start_watch(client, args, WatchMode.ALERT)


def cmd_stoploss(client: httpx.Client, args: argparse.Namespace) -> int:
    return _start_watch(client, args, WatchMode.STOP_LOSS)


def cmd_list(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.get(f"/watches/{args.user_id}")
    r.raise_for_status()
    watches = r.json()
    if not watches:
        print(f"No active watches for {args.user_id}")
        return 0
    for w in watches:
        print(
            f"{w['ticker']:<24} {w['side'].upper():<3} {w['mode']:<9} "
            f"{w['threshold_percent']:g}% from ${w['base_price']:.4f} [{w['status']}]"
        )
    return 0


def cmd_stop(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.delete(f"/watches/{args.user_id}/{args.ticker}/{args.side}")
    if r.status_code == 404:
        print(f"No active watch for {args.ticker} {args.side.upper()}", file=sys.stderr)
        return 1
    r.raise_for_status()
    print(f"Stopped watching {args.ticker.upper()} {args.side.upper()}")
    return 0


def cmd_stop_all(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.delete(f"/watches/{args.user_id}")
    r.raise_for_status()
    print(f"Stopped {r.json()['stopped']} watch(es)")
    return 0


def cmd_stream(_client: httpx.Client | None, args: argparse.Namespace) -> int:
    """Print live ticks straight from the Kalshi feed (no server required)."""
    api_key = args.api_key or os.getenv("KALSHI_API_KEY")
    key_file = args.key_file or os.getenv("KALSHI_PRIVATE_KEY_PATH")
    credentials = None
    if api_key and key_file:
        credentials = Credentials(api_key=api_key, private_key=_read_key(key_file))

    count = 0

    async def consume() -> None:
        nonlocal count
        stream = KalshiPriceStream(get_settings().stream_url, args.ticker.upper(), credentials)
        async with stream:
            async for tick in stream.ticks():
                count += 1
                print(f"[{count}] {tick.ticker}: yes={tick.yes_price} no={tick.no_price}")
                if args.messages is not None and count >= args.messages:
                    break

    async def run_with_timeout() -> None:
        if args.duration is not None:
            await asyncio.wait_for(consume(), timeout=args.duration)
        else:
            await consume()

    try:
        asyncio.run(run_with_timeout())
    except KeyboardInterrupt:
        print(f"\nStopped by user ({count} messages)", file=sys.stderr)
        return 130
    except asyncio.TimeoutError:
        print(f"Stopped after {args.duration}s ({count} messages)", file=sys.stderr)
    except Exception as e:  # pylint: disable=broad-except
        print(f"Stream error: {e}", file=sys.stderr)
        return 1
    return 0


HANDLERS = {
    "health": cmd_health,
    "link": cmd_link,
    "unlink": cmd_unlink,
    "alert": cmd_alert,
    "stoploss": cmd_stoploss,
    "list": cmd_list,
    "stop": cmd_stop,
    "stop-all": cmd_stop_all,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage Kalshi price alerts and stop-losses.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8001",
        help="API base URL (default: http://localhost:8001)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")
    sides = [s.value for s in Side]

    subparsers.add_parser("health", help="GET / health check")

    p = subparsers.add_parser("link", help="PUT /accounts/{user_id}")
    p.add_argument("user_id")
    p.add_argument("--api-key", required=True, help="Kalshi API key id")
    p.add_argument("--key-file", required=True, help="Path to the RSA private key (PEM)")

    p = subparsers.add_parser("unlink", help="DELETE /accounts/{user_id}")
    p.add_argument("user_id")

    for name, help_text in [
        ("alert", "Notify when the price rises PERCENT above BASE"),
        ("stoploss", "Sell the whole position when the price falls PERCENT below BASE"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("user_id")
        p.add_argument("ticker", help="Market ticker")
        p.add_argument("side", choices=sides)
        p.add_argument("percent", type=float, help="Threshold in percent (e.g. 10)")
        p.add_argument("--base", type=float, required=True, help="Entry price in dollars")

    p = subparsers.add_parser("list", help="GET /watches/{user_id}")
    p.add_argument("user_id")

    p = subparsers.add_parser("stop", help="DELETE /watches/{user_id}/{ticker}/{side}")
    p.add_argument("user_id")
    p.add_argument("ticker")
    p.add_argument("side", choices=sides)

    p = subparsers.add_parser("stop-all", help="DELETE /watches/{user_id}")
    p.add_argument("user_id")

    p = subparsers.add_parser("stream", help="Print live ticks from the Kalshi feed")
    p.add_argument("ticker")
    p.add_argument("--api-key", default=None, help="Defaults to $KALSHI_API_KEY")
    p.add_argument("--key-file", default=None, help="Defaults to $KALSHI_PRIVATE_KEY_PATH")
    p.add_argument(
        "--duration",
        type=float,
        default=None,
        metavar="SECS",
        help="Stop after SECS seconds (default: run until Ctrl+C)",
    )
    p.add_argument(
        "--messages",
        type=int,
        default=None,
        metavar="N",
        help="Stop after N messages (default: no limit)",
    )
    return parser


def run_command(client: httpx.Client, args: argparse.Namespace) -> int:
    """Dispatch an HTTP command; errors are printed and turned into exit code 1."""
    try:
        return HANDLERS[args.command](client, args)
    except httpx.HTTPStatusError as e:
        print(f"HTTP error: {e.response.status_code}", file=sys.stderr)
        if e.response.content:
            try:
                print(e.response.json(), file=sys.stderr)
            except ValueError:
                print(e.response.text, file=sys.stderr)
        return 1
    except httpx.RequestError as e:
        print(f"Request error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "stream":
        return cmd_stream(None, args)
    with httpx.Client(base_url=args.base_url.rstrip("/"), timeout=args.timeout) as client:
        return run_command(client, args)


if __name__ == "__main__":
    sys.exit(main())
