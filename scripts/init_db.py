import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.insign.models import Admin, Permission, Role
from scripts._db_utils import script_session

PERMISSIONS = (
    ("admin.view", "Admin: view dashboard"),
    # Events
    ("events.view", "Events: view"),
    ("events.edit", "Events: create/edit/delete"),
    # Policies
    ("policies.view", "Policies: view"),
    ("policies.edit", "Policies: create/edit/activate/delete"),
    # Inquiries
    ("inquiries.view", "Inquiries: view"),
    ("inquiries.edit", "Inquiries: change status/delete"),
    ("inquiries.respond", "Inquiries: reply by email"),
    # Contracts
    ("contracts.view", "Contracts: view"),
    ("contracts.send", "Contracts: send signature requests"),
    # Accounts
    ("users.view", "Users: view"),
    ("admins.view", "Admin accounts: view"),
    ("admins.edit", "Admin accounts: create/edit/disable/delete"),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin account in an idempotent way.
    Does NOT overwrite an existing admin's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@insign.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    # Direct session so this can run in release without building the Flask app.
    with script_session(database_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        perms = [ensure_perm(key, name) for key, name in PERMISSIONS]

        role_admin = s.query(Role).filter(Role.key == "admin").one_or_none()
        if not role_admin:
            role_admin = Role(key="admin", name="Administrator")
            s.add(role_admin)
        for p in perms:
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        admin = s.query(Admin).filter(Admin.email == admin_email).one_or_none()
        if not admin:
            admin = Admin(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(admin)
        if role_admin not in admin.roles:
            admin.roles.append(role_admin)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
