# account_router.py - Maps a source chat to exactly one exchange account.
"""
Accounts are checked in declaration order (primary before secondary).
The first account listing the chat id wins, even when a later account
lists it too.

The client registry (account id -> ExchangeClient) is built once by
initialize() and exposed read-only afterwards.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from models import Account
from services.broker_base import ExchangeClient, get_exchange


@dataclass(frozen=True)
class RoutedAccount:
    """An account together with its initialized exchange client."""
    account: Account
    client: ExchangeClient

    @property
    def id(self) -> str:
        return self.account.id


class AccountRouter:
    """Routes chat ids to configured exchange accounts."""

    def __init__(
        self,
        accounts: tuple[Account, ...],
        client_factory: Callable[[Account], ExchangeClient] | None = None,
        exchange_name: str = "hyperliquid"
    ):
        self.accounts = tuple(accounts)
        self._client_factory = client_factory or get_exchange(exchange_name)
        self._clients: Mapping[str, ExchangeClient] = MappingProxyType({})
        self._initialized = False

    async def initialize(self) -> None:
        """
        Create and connect one client per account that has credentials.

        An account whose client cannot be created or whose markets fail to
        load is left out of the registry; chats routed to it get NotFound.
        """
        if self._initialized:
            return

        clients: dict[str, ExchangeClient] = {}
        for account in self.accounts:
            if not account.has_credentials:
                print(f"[Router] Account {account.id} has no credentials - skipped")
                continue

            try:
                client = self._client_factory(account)
                await client.load_markets()
            except Exception as e:
                print(f"[Router] Failed to initialize {account.name} ({account.id}): {e}")
                continue

            clients[account.id] = client
            print(f"[Router] Initialized exchange: {account.name} ({account.id})")
            if account.allowed_chat_ids:
                chats = ", ".join(str(c) for c in sorted(account.allowed_chat_ids))
                print(f"[Router] Account {account.id} configured for chats: {chats}")

        self._clients = MappingProxyType(clients)
        self._initialized = True

    @property
    def clients(self) -> Mapping[str, ExchangeClient]:
        return self._clients

    def route_account(self, chat_id: int) -> RoutedAccount | None:
        """
        Find the account for a chat.

        Returns None when no account lists the chat, or when the first
        account listing it was never initialized. Never falls through to
        a later account.
        """
        for account in self.accounts:
            if chat_id not in account.allowed_chat_ids:
                continue

            client = self._clients.get(account.id)
            if client is None:
                print(f"[Router] Account {account.id} for chat {chat_id} is not initialized")
                return None

            print(f"[Router] Using exchange account: {account.name} for chat {chat_id}")
            return RoutedAccount(account=account, client=client)

        print(f"[Router] No exchange account found for chat {chat_id}")
        return None

    def get(self, account_id: str) -> RoutedAccount | None:
        """Look up an initialized account by id."""
        client = self._clients.get(account_id)
        if client is None:
            return None
        account = next(a for a in self.accounts if a.id == account_id)
        return RoutedAccount(account=account, client=client)

    def all_chat_ids(self) -> frozenset[int]:
        """Union of every account's allowed chat ids."""
        ids: set[int] = set()
        for account in self.accounts:
            ids |= account.allowed_chat_ids
        return frozenset(ids)

    async def close(self) -> None:
        for account_id, client in self._clients.items():
            try:
                await client.close()
            except Exception as e:
                print(f"[Router] Error closing client {account_id}: {e}")
