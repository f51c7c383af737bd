import json

import pytest

from stakevault.core.constants import ACTION_FORCE_WITHDRAW_ASSET, ACTION_PAUSE, ADMIN_ACTIONS
from stakevault.security.rbac import RBAC


def test_default_roles_cover_admin_actions():
    rbac = RBAC()
    assert set(rbac.roles["admin"]) == set(ADMIN_ACTIONS)
    assert set(rbac.roles["pauser"]) == {"pause", "unpause"}
    assert rbac.user_roles == {}


def test_assign_and_check_permissions():
    rbac = RBAC()
    rbac.assign_role("0xABCDEF", "pauser")
    assert rbac.is_authorized("0xabcdef", ACTION_PAUSE)
    assert not rbac.is_authorized("0xABCDEF", ACTION_FORCE_WITHDRAW_ASSET)
    assert not rbac.is_authorized("0xother", ACTION_PAUSE)


def test_remove_role_drops_permissions():
    rbac = RBAC()
    rbac.assign_role("0xadmin", "admin")
    rbac.remove_role("0xadmin", "admin")
    assert rbac.get_user_permissions("0xadmin") == []
    assert "0xadmin" not in rbac.user_roles


def test_unknown_and_duplicate_roles_rejected():
    rbac = RBAC()
    with pytest.raises(ValueError):
        rbac.assign_role("0xuser", "auditor")
    rbac.add_role("auditor", [ACTION_PAUSE])
    with pytest.raises(ValueError):
        rbac.add_role("auditor", [])


def test_roles_persist_to_config_file(tmp_path):
    config_file = tmp_path / "rbac" / "roles.json"
    rbac = RBAC(str(config_file))
    rbac.assign_role("0xAdmin", "admin")

    with open(config_file) as f:
        saved = json.load(f)
    assert saved["user_roles"] == {"0xadmin": ["admin"]}

    reloaded = RBAC(str(config_file))
    assert reloaded.is_authorized("0xadmin", ACTION_FORCE_WITHDRAW_ASSET)
