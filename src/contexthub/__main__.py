"""Entry point: python -m contexthub <command>

- start / stop / restart:  daemon lifecycle
- status:                  is the daemon up (plus sources/item count)
- ensure:                  start if not healthy (for hooks and automation)
- serve:                   run the HTTP gateway in the foreground (used by the daemon)
- query [text]:            one local aggregation pass, printed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from contexthub.config import HubConfig, load_config

COMMANDS = ["start", "stop", "restart", "status", "ensure", "serve", "query"]


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="contexthub", description="Context hub — unified project context for AI agents"
    )
    parser.add_argument("command", nargs="?", choices=COMMANDS)
    parser.add_argument("text", nargs="*", help="query text (query command only)")
    parser.add_argument("--port", type=int, help="port to serve on (default: 4242)")
    where = parser.add_mutually_exclusive_group()
    where.add_argument("--root", type=Path, help="project root (default: current directory)")
    where.add_argument("--global", dest="global_", action="store_true", help="use the home directory")
    return parser.parse_args(argv)


def _report(result) -> int:
    stream = sys.stdout if result.success else sys.stderr
    print(result.message, file=stream)
    return 0 if result.success else 1


def _run_serve(config: HubConfig) -> int:
    from contexthub.daemon import HubDaemon

    return asyncio.run(HubDaemon(config).run())


def _run_status(config: HubConfig) -> int:
    from contexthub.supervisor import DaemonSupervisor

    supervisor = DaemonSupervisor(config)
    status = supervisor.status()
    if not status.running:
        print("Context hub is not running")
        print("Run: contexthub start")
        return 0

    print("Context hub is running")
    print(f"  PID:  {status.pid}")
    print(f"  Port: {status.port}")
    data = asyncio.run(supervisor.summary())
    if data:
        active = [name for name, present in data.get("sources", {}).items() if present]
        print(f"  Sources: {', '.join(active) or '(none)'}")
        print(f"  Items: {data.get('itemCount', 0)}")
    return 0


def _run_query(config: HubConfig, text: str | None) -> int:
    from contexthub.aggregator import ContextAggregator

    context = ContextAggregator(config.root, config.sources).gather(query=text)
    active = [name for name, present in context.sources.items() if present]
    print(f"Sources: {', '.join(active) or '(none)'}")
    print(f"Items: {len(context.items)}")
    for item in context.items[:10]:
        score = f" ({item.relevance:.3f})" if item.relevance is not None else ""
        print(f"\n[{item.source.value}] {item.title}{score}")
        snippet = item.content[:100] + ("..." if len(item.content) > 100 else "")
        print(f"  {snippet}")
    return 0


def _run_lifecycle(config: HubConfig, command: str) -> int:
    from contexthub.supervisor import DaemonSupervisor

    supervisor = DaemonSupervisor(config)
    config.state_dir.mkdir(parents=True, exist_ok=True)
    operation = {
        "start": supervisor.start,
        "stop": supervisor.stop,
        "restart": supervisor.restart,
        "ensure": supervisor.ensure,
    }[command]
    return _report(asyncio.run(operation()))


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    if args.command is None:
        print("Usage: python -m contexthub [start|stop|restart|status|ensure|serve|query]")
        print("  --port <port>   Port to run on (default: 4242)")
        print("  --root <dir>    Project root (default: current directory)")
        print("  --global        Use the home directory as the project root")
        sys.exit(1)

    root = Path.home() if args.global_ else args.root
    config = load_config(root=root, port=args.port)
    _setup_logging(config.log_level)

    if args.command == "serve":
        code = _run_serve(config)
    elif args.command == "status":
        code = _run_status(config)
    elif args.command == "query":
        code = _run_query(config, " ".join(args.text) or None)
    else:
        code = _run_lifecycle(config, args.command)
    sys.exit(code)


if __name__ == "__main__":
    main()
