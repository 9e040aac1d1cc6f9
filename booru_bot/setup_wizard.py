"""Interactive setup wizard for the booru upload bot."""

from __future__ import annotations

import asyncio
import ftplib
import sys
from typing import Any, Callable, Optional

import discord
from colorama import Fore, Style, init as colorama_init

from .config import Config, save_config, validate_token
from .transfer import TransferSession
from .utils import ConfigError, TransferError, setup_logging

# View Channels + Send Messages + Add Reactions + Read Message History
INVITE_PERMISSIONS = 68672


def _print_banner() -> None:
    print(f"{Fore.CYAN}Booru Upload Bot Setup{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'=' * 22}{Style.RESET_ALL}")
    print("This wizard will configure your bot token and FTP credentials.")


def _check_python_version() -> None:
    if sys.version_info < (3, 9):
        raise ConfigError("Python 3.9 or higher is required.")


def prompt_bot_token() -> str:
    """
    Prompt the user for a Discord bot token.

    Returns:
        Validated bot token.
    """
    while True:
        token = input("Enter your Discord bot token: ").strip()
        if validate_token(token):
            return token
        print("Invalid token format. Please try again.")


def prompt_owner_id() -> int:
    """
    Prompt for the Discord user ID whose reactions trigger uploads.

    Returns:
        Owner user ID.
    """
    while True:
        raw = input("Enter your Discord user ID (owner): ").strip()
        if raw.isdigit() and int(raw) > 0:
            return int(raw)
        print("User IDs are positive numbers. Please try again.")


def prompt_value(label: str, default: Optional[str] = None) -> str:
    suffix = f" [{default}]" if default else ""
    while True:
        value = input(f"{label}{suffix}: ").strip()
        if value:
            return value
        if default:
            return default
        print(f"{label} is required.")


def prompt_port() -> int:
    while True:
        raw = prompt_value("FTP port", "21")
        if raw.isdigit() and 0 < int(raw) < 65536:
            return int(raw)
        print("Ports are numbers between 1 and 65535.")


async def check_discord_login(token: str, owner_id: int) -> Optional[int]:
    """
    Log in with the bot token and look up the owner account.

    Args:
        token: Discord bot token.
        owner_id: User ID whose reactions trigger uploads.

    Returns:
        The bot's client ID.

    Raises:
        ConfigError: If the token is rejected or the owner cannot be found.
    """
    client = discord.Client(intents=discord.Intents(guilds=True))
    client_id: Optional[int] = None
    owner_problem: Optional[str] = None

    async def on_ready() -> None:
        nonlocal client_id, owner_problem
        if client.user:
            client_id = client.user.id
        try:
            owner = await client.fetch_user(owner_id)
            print(f"{Fore.GREEN}✓ Owner account: {owner}{Style.RESET_ALL}")
        except discord.NotFound:
            owner_problem = f"No Discord user with ID {owner_id}."
        except discord.HTTPException as exc:
            owner_problem = f"Owner lookup failed: {exc}"
        finally:
            await client.close()

    client.event(on_ready)
    try:
        await client.start(token)
    except discord.LoginFailure as exc:
        raise ConfigError("Discord rejected the bot token.") from exc
    if owner_problem:
        raise ConfigError(owner_problem)
    return client_id


async def check_ftp_login(config: Config, ftp_factory: Callable[[], Any] = ftplib.FTP) -> None:
    """
    Log in to the FTP server and enter the manifest directory.

    Args:
        config: Configuration holding the FTP credentials.
        ftp_factory: Creates the ftplib client.
    """
    session = TransferSession(
        host=config.ftp_host,
        user=config.ftp_user,
        password=config.ftp_password,
        port=config.ftp_port,
        ftp_factory=ftp_factory,
    )
    try:
        await session.connect()
        if config.remote_root:
            await session.cwd(config.remote_root)
    finally:
        await session.close()


def generate_invite_link(client_id: int) -> str:
    """
    Create OAuth2 invite link for the bot.

    Args:
        client_id: Discord client ID.

    Returns:
        Invite URL.
    """
    return (
        "https://discord.com/api/oauth2/authorize"
        f"?client_id={client_id}&permissions={INVITE_PERMISSIONS}&scope=bot"
    )


def run_setup() -> None:
    """
    Run the interactive setup wizard.
    """
    colorama_init()
    setup_logging()
    _print_banner()
    _check_python_version()

    token = prompt_bot_token()
    owner_id = prompt_owner_id()
    config = Config(
        discord_bot_token=token,
        owner_id=owner_id,
        ftp_host=prompt_value("FTP host"),
        ftp_user=prompt_value("FTP user"),
        ftp_password=prompt_value("FTP password"),
        ftp_port=prompt_port(),
        remote_root=prompt_value("Remote site directory", "subdomain-sinon"),
    )

    try:
        asyncio.run(check_ftp_login(config))
    except TransferError as exc:
        print(f"{Fore.YELLOW}⚠️ FTP check failed: {exc}{Style.RESET_ALL}")
        if input("Save configuration anyway? [y/N]: ").strip().lower() != "y":
            return
    else:
        print(f"{Fore.GREEN}✓ FTP login works.{Style.RESET_ALL}")

    save_config(config)
    print(f"{Fore.GREEN}✓ Configuration saved.{Style.RESET_ALL}")

    try:
        client_id = asyncio.run(check_discord_login(token, owner_id))
    except ConfigError as exc:
        print(f"{Fore.YELLOW}⚠️ Discord check failed: {exc}{Style.RESET_ALL}")
        client_id = None
    if client_id:
        invite = generate_invite_link(client_id)
        print(f"{Fore.CYAN}Invite link:{Style.RESET_ALL} {invite}")
    print(f"{Fore.GREEN}Setup complete.{Style.RESET_ALL} Next step: run `python main.py`")
