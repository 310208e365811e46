#!/usr/bin/env python3
"""
Command-line utility for linking brokerage accounts through SnapTrade.

Usage:
    1. Get API credentials from https://snaptrade.com
    2. Run: python -m scripts.link_broker credentials
       (or set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY in .env)
    3. Run: python -m scripts.link_broker connect --user-id <id> --callback-url <url>
    4. Pick an asset type, link method, category and broker; open the printed URL
    5. Run: python -m scripts.link_broker holdings --user-id <id>
"""

import argparse
import os
import sys
from collections.abc import Callable

# Add backend to path so we can import from there
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv

from config import Settings
from database import get_session_local
from integrations.exceptions import AggregationError
from integrations.snaptrade_client import SnapTradeClient, SnapTradeConfig
from logging_config import setup_logging
from services import broker_catalog
from services.broker_link_service import BrokerLinkService
from services.broker_selection import (
    AssetTypeChosen,
    Back,
    BrokerChosen,
    CategoryChosen,
    InvalidTransition,
    LinkMethodChosen,
    SelectionFlow,
    SelectionState,
    start,
    transition,
)
from services.credential_manager import set_credential

BACK = "b"


def get_client() -> SnapTradeClient:
    """Create a SnapTrade client from .env, environment variables or keychain."""
    load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))
    client = SnapTradeClient(SnapTradeConfig.from_settings(Settings()))
    if not client.is_configured():
        print("Error: SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY must be set in backend/.env or keychain")
        sys.exit(1)
    return client


def store_credentials(input_fn: Callable[[str], str] = input) -> None:
    """Prompt for SnapTrade API credentials and store them in the keychain."""
    for key in ("SNAPTRADE_CLIENT_ID", "SNAPTRADE_CONSUMER_KEY"):
        value = input_fn(f"{key}: ").strip()
        if set_credential(key, value):
            print(f"  Stored {key} in keychain")
        else:
            print(f"  Failed to store {key}")


def _prompt_for_event(flow: SelectionFlow, input_fn: Callable[[str], str]):
    """Show the options for the current screen and turn the answer into an event."""
    if flow.state is SelectionState.CHOOSE_ASSET_TYPE:
        options = [(t.id, t.name) for t in broker_catalog.ASSET_TYPES]
        title, make_event = "Select asset type", AssetTypeChosen
    elif flow.state is SelectionState.CHOOSE_LINK_METHOD:
        options = [(o.id, o.name) for o in broker_catalog.LINK_OPTIONS]
        title, make_event = "How do you want to add it?", LinkMethodChosen
    elif flow.state is SelectionState.CHOOSE_BROKER_CATEGORY:
        options = [(c.id, c.name) for c in broker_catalog.BROKER_CATEGORIES]
        title, make_event = "Select broker type", CategoryChosen
    else:
        category = broker_catalog.get_category(flow.category)
        options = [(b.id, f"{b.name} ({b.country})") for b in broker_catalog.get_brokers(flow.category)]
        title, make_event = f"Select {category.noun.lower()}", BrokerChosen

    print(f"\n{title}:")
    for i, (_, label) in enumerate(options, start=1):
        print(f"  {i}. {label}")
    if flow.state is not SelectionState.CHOOSE_ASSET_TYPE:
        print(f"  {BACK}. Back")

    answer = input_fn("> ").strip().lower()
    if answer == BACK:
        return Back()
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return make_event(options[int(answer) - 1][0])
    return make_event(answer)


def run_selection(input_fn: Callable[[str], str] = input) -> SelectionFlow:
    """Walk the selection flow until a broker is chosen or manual entry is picked."""
    flow = start()
    while flow.state not in (SelectionState.LINK_REQUESTED, SelectionState.MANUAL_ENTRY):
        event = _prompt_for_event(flow, input_fn)
        try:
            flow = transition(flow, event)
        except InvalidTransition as e:
            print(f"  {e}")
    return flow


def generate_connect_url(user_id: str, callback_url: str) -> None:
    """Pick a broker interactively, record a pending connection and print the portal URL."""
    flow = run_selection()
    if flow.state is SelectionState.MANUAL_ENTRY:
        print(f"\nManual entry selected ({flow.manual_form}); add the asset from the dashboard.")
        return

    client = get_client()
    db = get_session_local()()
    print(f"\nGenerating connection URL for user {user_id} ({flow.broker_id})")
    try:
        redirect_uri = BrokerLinkService(client).start_link(
            db, user_id, callback_url, flow.broker_id
        )
    except AggregationError as e:
        print(f"Error generating connect URL: {e}")
        sys.exit(1)
    finally:
        db.close()
        client.close()

    print("\n" + "=" * 60)
    print("Open this URL in your browser to connect your account:")
    print("=" * 60)
    print(redirect_uri)
    print("=" * 60 + "\n")


def list_holdings(user_id: str) -> None:
    """Print the holdings of every account the user has linked."""
    client = get_client()
    print(f"Fetching holdings for user: {user_id}")
    try:
        holdings = client.fetch_holdings(user_id)
    except AggregationError as e:
        print(f"Error fetching holdings: {e}")
        sys.exit(1)
    finally:
        client.close()

    print("\n" + "=" * 60)
    print(f"Found {len(holdings)} holding(s):")
    print("=" * 60)
    for h in holdings:
        print(
            f"  {h.symbol:<8} {h.quantity:>12.4f} @ {h.price_per_share:>10.2f}"
            f" = {h.total_value:>12.2f}  [{h.broker_name} / {h.account_name}]"
        )
    print("=" * 60 + "\n")


def main():
    parser = argparse.ArgumentParser(description="SnapTrade account-linking utility")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("credentials", help="Store SnapTrade API credentials in the keychain")

    connect_parser = subparsers.add_parser("connect", help="Choose a broker and print its portal URL")
    connect_parser.add_argument("--user-id", required=True, help="User ID to link accounts for")
    connect_parser.add_argument(
        "--callback-url",
        default="http://localhost:8000/api/snaptrade/callback",
        help="Where the portal redirects when done",
    )

    holdings_parser = subparsers.add_parser("holdings", help="List holdings across linked accounts")
    holdings_parser.add_argument("--user-id", required=True, help="User ID to list holdings for")

    args = parser.parse_args()
    setup_logging("DEBUG" if args.verbose else "WARNING")

    if args.command == "credentials":
        store_credentials()
    elif args.command == "connect":
        callback_url = f"{args.callback_url}?userId={args.user_id}"
        generate_connect_url(args.user_id, callback_url)
    elif args.command == "holdings":
        list_holdings(args.user_id)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
