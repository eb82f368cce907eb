from drscale.storage.interface import BalanceStore, TeamStore
from drscale.storage.memory import MemoryBalanceStore, MemoryTeamStore
from drscale.storage.mongo import MongoBalanceStore, MongoTeamStore

_balance_store = None
_team_store = None


def get_balance_store() -> BalanceStore:
    global _balance_store
    if _balance_store is None:
        from drscale.core.database import client, db
        _balance_store = MongoBalanceStore(client, db)
    return _balance_store


def get_team_store() -> TeamStore:
    global _team_store
    if _team_store is None:
        from drscale.core.database import client, db
        _team_store = MongoTeamStore(client, db)
    return _team_store
