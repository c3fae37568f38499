ROLE_SCOPES = {
    "admin": ["*"],
    "agent": [
        "orders:create", "orders:view", "orders:assign", "orders:update_status",
        "routes:optimize", "couriers:view", "clients:view", "clients:manage", "settings:view",
    ],
    "delivery": ["orders:view", "orders:update_status", "couriers:view", "settings:view"],
}


def role_scopes(role: str) -> list:
    return list(ROLE_SCOPES.get(role, []))


def has_scopes(role: str, required: list) -> bool:
    scopes = set(role_scopes(role))
    return "*" in scopes or set(required).issubset(scopes)
