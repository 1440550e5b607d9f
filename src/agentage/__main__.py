"""Agentage entry point.

Commands:
  serve    run the local API server
  link     link an OAuth provider through the browser
  unlink   remove a provider link
  status   print account and provider link status
"""

import argparse
import asyncio
import logging

from rich.console import Console
from rich.table import Table

from agentage import __version__
from agentage.config import get_settings
from agentage.logging_setup import setup_logging
from agentage.oauth.models import ProviderId

logger = logging.getLogger(__name__)

console = Console()


async def _link(provider: ProviderId) -> int:
    from agentage.services import get_services

    result = await get_services().oauth.link_provider(provider)
    if not result.success:
        console.print(f"[red]Linking {provider.value} failed:[/red] {result.error}")
        return 1
    who = result.profile.email or result.profile.name or result.profile.id
    console.print(f"[green]Linked {provider.value}[/green] as {who}")
    return 0


async def _unlink(provider: ProviderId) -> int:
    from agentage.services import get_services

    await get_services().oauth.unlink_provider(provider)
    console.print(f"Unlinked {provider.value}")
    return 0


async def _status() -> int:
    from agentage.services import get_services

    services = get_services()
    user = await services.account.get_user()
    if user is None:
        console.print("Account: [yellow]signed out[/yellow]")
    else:
        console.print(f"Account: {user.email}")

    table = Table(title="OAuth providers")
    table.add_column("Provider")
    table.add_column("Linked")
    table.add_column("Profile")
    table.add_column("Expired")
    for status in await services.oauth.list_providers():
        profile = status.profile.email or status.profile.id if status.profile else ""
        table.add_row(
            status.name,
            "yes" if status.connected else "no",
            profile or "",
            "yes" if status.is_expired else "",
        )
    console.print(table)
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="agentage",
        description="Agentage desktop core — accounts, OAuth links, models and chat",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  agentage serve                     Start the local API server
  agentage link anthropic            Link a Claude subscription
  agentage unlink openai             Remove the ChatGPT link
  agentage status                    Show account and link status
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override AGENTAGE_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Start the local API server")
    serve.add_argument("--host", default=None, help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default from settings)")
    serve.add_argument("--dev", action="store_true", help="Auto-reload on source changes")

    providers = [p.value for p in ProviderId]
    link = subparsers.add_parser("link", help="Link an OAuth provider")
    link.add_argument("provider", choices=providers)
    unlink = subparsers.add_parser("unlink", help="Remove an OAuth provider link")
    unlink.add_argument("provider", choices=providers)
    subparsers.add_parser("status", help="Show account and provider link status")

    args = parser.parse_args()
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level)

    exit_code = 0
    try:
        if args.command == "serve":
            from agentage.api.serve import run_api_server

            run_api_server(
                host=args.host or settings.api_host,
                port=args.port or settings.api_port,
                dev=args.dev,
            )
        elif args.command == "link":
            exit_code = asyncio.run(_link(ProviderId(args.provider)))
        elif args.command == "unlink":
            exit_code = asyncio.run(_unlink(ProviderId(args.provider)))
        elif args.command == "status":
            exit_code = asyncio.run(_status())
        else:
            parser.print_help()
    except KeyboardInterrupt:
        logger.info("Agentage stopped.")
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
