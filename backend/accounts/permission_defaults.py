# accounts/permission_defaults.py

RESOURCES = ("accounts", "journal", "ledger", "periods", "reports")

READ_ONLY = {"read"}
CRUD = {"read", "create", "update", "delete"}

ACTIONS = {
    "accounts": CRUD,
    "journal": CRUD | {"post", "void"},
    "ledger": READ_ONLY | {"repair"},
    "periods": CRUD | {"close", "reopen", "lock"},
    "reports": READ_ONLY,
}


def _codes(resource: str, actions) -> set[str]:
    return {f"{resource}.{action}" for action in actions}


def _all(resource: str) -> set[str]:
    return _codes(resource, ACTIONS[resource])


ROLE_DEFAULTS = {
    "OWNER": set().union(*(_all(r) for r in RESOURCES)),
    "ADMIN": set().union(*(_all(r) for r in RESOURCES)),
    "ACCOUNTANT": (
        _all("accounts")
        | _all("journal")
        | _all("periods")
        | _codes("ledger", READ_ONLY)
        | _codes("reports", READ_ONLY)
    ),
    "STAFF": (
        _codes("accounts", READ_ONLY)
        | _codes("ledger", READ_ONLY)
        | _codes("reports", READ_ONLY)
    ),
    "VIEWER": (
        _codes("accounts", READ_ONLY)
        | _codes("journal", READ_ONLY)
        | _codes("ledger", READ_ONLY)
        | _codes("periods", READ_ONLY)
        | _codes("reports", READ_ONLY)
    ),
}


def all_permission_codes() -> set[str]:
    codes: set[str] = set()
    for s in ROLE_DEFAULTS.values():
        codes |= set(s)
    return codes
