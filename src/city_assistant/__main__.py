"""CLI entry point for city-assistant."""

from __future__ import annotations

import argparse
import sys

from city_assistant.config import AppConfig, load_config
from city_assistant.knowledge.index import KnowledgeIndex
from city_assistant.knowledge.loader import load_snapshot
from city_assistant.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="city-assistant",
        description="Multi-channel municipal website assistant",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    _add_config_args(serve_parser)

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    search_parser = subparsers.add_parser("search", help="Rank knowledge pages for a query")
    _add_config_args(search_parser)
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("-s", "--section", default=None, help="Restrict to one section")
    search_parser.add_argument("-n", "--limit", type=int, default=10, help="Maximum results")

    stats_parser = subparsers.add_parser("stats", help="Show knowledge base statistics")
    _add_config_args(stats_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        # Default to serve
        args.command = "serve"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "search":
        _search(args.config, args.env, args.query, args.section, args.limit)
    elif args.command == "stats":
        _stats(args.config, args.env)
    elif args.command == "serve":
        _serve(args.config, args.env)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml and edit it", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _load_index(config: AppConfig) -> KnowledgeIndex:
    knowledge = config.knowledge
    snapshot = load_snapshot(knowledge.snapshot_path, knowledge.max_content_length, knowledge.summary_length)
    index = KnowledgeIndex()
    index.load_snapshot(snapshot)
    return index


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    llm = config.llm
    print(f"Configuration valid: {config_path}")
    print(f"  City: {config.city.name}, {config.city.state}")
    print(f"  Knowledge snapshot: {config.knowledge.snapshot_path}")
    print(f"  Refresh schedule: {config.knowledge.refresh_cron or '(disabled)'}")
    print(f"  LLM: {llm.backend} [{llm.model}]" + (f", fallback {llm.fallback_backend} [{llm.fallback_model}]" if llm.fallback_backend else ""))
    print(f"  Storage: {config.storage.db_path}")
    print("  Session timeouts:")
    for channel, seconds in config.sessions.timeouts.items():
        print(f"    - {channel.value}: {seconds // 60} min")


def _search(config_path: str, env_path: str, query: str, section: str | None, limit: int) -> None:
    config = _load_or_exit(config_path, env_path)
    setup_logging("WARNING")
    index = _load_index(config)
    results = index.search(query, section=section, limit=limit)
    if not results:
        print("No results found.")
        return
    for rank, item in enumerate(results, start=1):
        doc = item.document
        print(f"{rank:>2}. [{item.score:>4}] {doc.title} ({doc.section})")
        print(f"      {doc.url}")


def _stats(config_path: str, env_path: str) -> None:
    config = _load_or_exit(config_path, env_path)
    setup_logging("WARNING")
    stats = _load_index(config).stats()
    print(f"Total pages: {stats.total_pages}")
    print(f"Generated at: {stats.generated_at or '(unknown)'}")
    for name, count in stats.by_section.items():
        print(f"  {name}: {count}")


def _serve(config_path: str, env_path: str) -> None:
    """Load config and run the HTTP server."""
    import uvicorn

    from city_assistant.app import CityAssistantApp
    from city_assistant.server import create_app

    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, config.log_format)
    app = create_app(CityAssistantApp(config))
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
