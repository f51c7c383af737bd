import json
import logging
import os

from ..core.constants import ACTION_PAUSE, ACTION_UNPAUSE, ADMIN_ACTIONS

logger = logging.getLogger("stakevault.security.rbac")


def default_roles():
    return {
        "admin": list(ADMIN_ACTIONS),
        "pauser": [ACTION_PAUSE, ACTION_UNPAUSE],
    }


class RBAC:
    """Role-based authorization for the staking ledger's privileged actions.

    Roles map to lists of action names and users map to lists of roles.
    State is persisted to ``config_file`` as JSON when a path is given.
    """

    def __init__(self, config_file=None):
        self.config_file = config_file
        self.roles = {}
        self.user_roles = {}
        self._load_config()

    def _load_config(self):
        if self.config_file and os.path.exists(self.config_file):
            with open(self.config_file, "r") as f:
                config = json.load(f)
                self.roles = config.get("roles", {})
                self.user_roles = config.get("user_roles", {})
        else:
            self.roles = default_roles()
            self.user_roles = {}  # No users assigned by default
            self._save_config()

    def _save_config(self):
        if not self.config_file:
            return
        directory = os.path.dirname(self.config_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump({"roles": self.roles, "user_roles": self.user_roles}, f, indent=4)

    @staticmethod
    def _normalize(user_id):
        return user_id.lower()

    def add_role(self, role_name, permissions):
        if role_name in self.roles:
            raise ValueError(f"Role '{role_name}' already exists.")
        self.roles[role_name] = list(permissions)
        self._save_config()

    def assign_role(self, user_id, role_name):
        if role_name not in self.roles:
            raise ValueError(f"Role '{role_name}' does not exist.")
        user_id = self._normalize(user_id)
        if user_id not in self.user_roles:
            self.user_roles[user_id] = []
        if role_name not in self.user_roles[user_id]:
            self.user_roles[user_id].append(role_name)
            self._save_config()
            logger.warning(
                "Role assigned",
                extra={"event": "rbac.role_assigned", "user": user_id[:10], "role": role_name},
            )

    def remove_role(self, user_id, role_name):
        user_id = self._normalize(user_id)
        if user_id in self.user_roles and role_name in self.user_roles[user_id]:
            self.user_roles[user_id].remove(role_name)
            if not self.user_roles[user_id]:
                del self.user_roles[user_id]
            self._save_config()
            logger.warning(
                "Role removed",
                extra={"event": "rbac.role_removed", "user": user_id[:10], "role": role_name},
            )

    def get_user_permissions(self, user_id):
        permissions = set()
        for role_name in self.user_roles.get(self._normalize(user_id), []):
            permissions.update(self.roles.get(role_name, []))
        return list(permissions)

    def has_permission(self, user_id, permission):
        return permission in self.get_user_permissions(user_id)

    def is_authorized(self, caller, action):
        return self.has_permission(caller, action)
