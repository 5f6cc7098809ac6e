"""
Static permission catalogue and pure permission checks.

Permission names are ``<category>.<action>``. ``admin.full`` grants every
permission, whether or not it appears in the catalogue.
"""
from typing import Dict, Iterable, List, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from personalsystem.features.permissions.models import Permission, Role
from personalsystem.utils import get_logger


log = get_logger(__name__)

ADMIN_FULL = "admin.full"

# (name, description, category)
DEFAULT_PERMISSIONS: List[Tuple[str, str, str]] = [
    # Administration
    ("admin.full", "Full administrator access", "admin"),
    ("admin.settings", "Edit system settings", "admin"),
    ("audit.view", "View the audit log", "admin"),
    # Users
    ("users.view", "View users", "users"),
    ("users.edit", "Edit users and their roles", "users"),
    ("users.delete", "Deactivate users", "users"),
    # Employees
    ("employees.view", "View the employee roster", "employees"),
    ("employees.edit", "Edit employees", "employees"),
    ("employees.rank", "Promote and demote employees", "employees"),
    ("employees.delete", "Terminate employees", "employees"),
    # HR
    ("hr.view", "View applications", "hr"),
    ("hr.manage", "Process applications", "hr"),
    ("blacklist.view", "View the blacklist", "hr"),
    ("blacklist.manage", "Manage the blacklist", "hr"),
    ("uprank.view", "View uprank locks", "hr"),
    ("uprank.manage", "Manage uprank locks", "hr"),
    # Detectives
    ("detectives.view", "View detective folders, cases and service time", "detectives"),
    ("detectives.manage", "Manage detective folders, cases and service time", "detectives"),
    # Bonus
    ("bonus.view", "View bonus payments", "bonus"),
    ("bonus.manage", "Create and cancel bonus payments", "bonus"),
    ("bonus.pay", "Mark bonus payments as paid", "bonus"),
    # Robbery
    ("robbery.view", "View the robbery log", "robbery"),
    ("robbery.create", "Log robberies", "robbery"),
    ("robbery.manage", "Delete robberies", "robbery"),
]

PERMISSION_NAMES = frozenset(name for name, _, _ in DEFAULT_PERMISSIONS)


def has_permission(granted: Iterable[str], *required: str) -> bool:
    """True if ``granted`` contains admin.full or any of ``required``."""
    granted = set(granted)
    if ADMIN_FULL in granted:
        return True
    return any(name in granted for name in required)


def has_all_permissions(granted: Iterable[str], *required: str) -> bool:
    """True if ``granted`` contains admin.full or every one of ``required``."""
    granted = set(granted)
    if ADMIN_FULL in granted:
        return True
    return all(name in granted for name in required)


def effective_permissions(roles: Iterable[Role]) -> set[str]:
    return {permission.name for role in roles for permission in role.permissions}


def max_level(roles: Iterable[Role]) -> int:
    return max((role.level for role in roles), default=0)


def capabilities(granted: Iterable[str]) -> Dict[str, bool]:
    """
    Flatten granted permissions into ``can_<action>_<category>`` booleans.

    One flag per catalogue entry (``employees.rank`` -> ``can_rank_employees``),
    plus ``is_admin``. admin.settings is exposed as ``can_manage_settings``.

    Every category also gets a ``can_view_<category>`` / ``can_manage_<category>``
    pair: view needs one of the category's ``.view`` permissions, manage needs
    any other permission in it. The pair wins where a per-entry name collides.
    """
    granted = set(granted)
    flags: Dict[str, bool] = {"is_admin": ADMIN_FULL in granted}
    viewers: Dict[str, List[str]] = {}
    managers: Dict[str, List[str]] = {}
    for name, _, category in DEFAULT_PERMISSIONS:
        prefix, action = name.split(".", 1)
        (viewers if action == "view" else managers).setdefault(category, []).append(name)
        if name == ADMIN_FULL:
            continue
        if name == "admin.settings":
            key = "can_manage_settings"
        else:
            key = f"can_{action}_{prefix}"
        flags[key] = has_permission(granted, name)
    for category in dict.fromkeys(category for _, _, category in DEFAULT_PERMISSIONS):
        flags[f"can_view_{category}"] = has_permission(granted, *viewers.get(category, []))
        flags[f"can_manage_{category}"] = has_permission(granted, *managers.get(category, []))
    return flags


async def seed_permissions(db: AsyncSession) -> Dict[str, int]:
    """
    Upsert the catalogue by name. Safe to run repeatedly.

    Returns counts of created and updated permissions.
    """
    result = await db.execute(select(Permission))
    existing = {permission.name: permission for permission in result.scalars().all()}

    created = updated = 0
    for name, description, category in DEFAULT_PERMISSIONS:
        permission = existing.get(name)
        if permission is None:
            db.add(Permission(name=name, description=description, category=category))
            created += 1
        elif permission.description != description or permission.category != category:
            permission.description = description
            permission.category = category
            updated += 1

    await db.commit()
    log.info("Seeded permissions: %d created, %d updated", created, updated)
    return {"created": created, "updated": updated, "total": len(DEFAULT_PERMISSIONS)}


# role name -> display name, level, color, permission names
DEFAULT_ROLES: Dict[str, Dict] = {
    "admin": {
        "display_name": "Administrator",
        "level": 100,
        "color": "#e11d48",
        "permissions": [ADMIN_FULL],
    },
    "command": {
        "display_name": "Command Staff",
        "level": 80,
        "color": "#f59e0b",
        "permissions": [
            "audit.view", "users.view", "users.edit",
            "employees.view", "employees.edit", "employees.rank", "employees.delete",
            "hr.view", "hr.manage", "blacklist.view", "blacklist.manage",
            "uprank.view", "uprank.manage",
            "detectives.view", "bonus.view", "bonus.manage", "bonus.pay",
            "robbery.view", "robbery.create", "robbery.manage",
        ],
    },
    "hr": {
        "display_name": "Human Resources",
        "level": 50,
        "color": "#8b5cf6",
        "permissions": [
            "employees.view", "employees.edit", "hr.view", "hr.manage",
            "blacklist.view", "blacklist.manage", "uprank.view", "bonus.view",
        ],
    },
    "detective": {
        "display_name": "Detective",
        "level": 30,
        "color": "#0ea5e9",
        "permissions": ["employees.view", "detectives.view", "detectives.manage", "bonus.view", "robbery.view"],
    },
    "officer": {
        "display_name": "Officer",
        "level": 10,
        "color": "#22c55e",
        "permissions": ["employees.view", "bonus.view", "robbery.view", "robbery.create"],
    },
}


async def seed_roles(db: AsyncSession) -> int:
    """
    Create missing default roles with their permissions. Existing roles are
    left untouched. Returns how many were created.
    """
    result = await db.execute(select(Permission))
    permissions = {permission.name: permission for permission in result.scalars().all()}
    result = await db.execute(select(Role.name))
    existing = set(result.scalars().all())

    created = 0
    for name, values in DEFAULT_ROLES.items():
        if name in existing:
            log.debug("Role '%s' already exists, skipping", name)
            continue
        missing = [perm for perm in values["permissions"] if perm not in permissions]
        if missing:
            log.warning("Permissions %s not found for role '%s'", missing, name)
        db.add(Role(
            name=name,
            display_name=values["display_name"],
            level=values["level"],
            color=values["color"],
            permissions=[permissions[perm] for perm in values["permissions"] if perm in permissions],
        ))
        created += 1

    await db.commit()
    log.info("Seeded %d default roles", created)
    return created
