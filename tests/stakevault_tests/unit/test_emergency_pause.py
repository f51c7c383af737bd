from stakevault.blockchain.emergency_pause import EmergencyPauseManager
from stakevault.database.storage_manager import StorageManager
from stakevault.security.rbac import RBAC

ADMIN = "0x" + "a" * 40
PAUSE_TIME = 1_700_000_000


def _rbac():
    rbac = RBAC()
    rbac.assign_role(ADMIN, "pauser")
    return rbac


def test_manual_pause_and_unpause():
    manager = EmergencyPauseManager(":memory:", authorizer=_rbac(), time_provider=lambda: PAUSE_TIME)
    assert manager.get_status()["is_paused"] is False

    manager.pause_operations(ADMIN, "manual test")
    assert manager.is_paused() is True
    status = manager.get_status()
    assert status["paused_by"] == ADMIN
    assert status["paused_timestamp"] == PAUSE_TIME
    assert status["reason"] == "manual test"

    manager.unpause_operations(ADMIN, "resolved")
    assert manager.is_paused() is False
    manager.close()


def test_unauthorized_access_rejected():
    manager = EmergencyPauseManager(":memory:", authorizer=_rbac())
    try:
        manager.pause_operations("0xEvil")
    except PermissionError:
        pass
    else:
        assert False, "Unauthorized pause should raise PermissionError"
    assert manager.is_paused() is False
    manager.close()


def test_repeated_pause_keeps_first_record():
    manager = EmergencyPauseManager(":memory:", authorizer=_rbac(), time_provider=lambda: PAUSE_TIME)
    manager.pause_operations(ADMIN, "first")
    manager.pause_operations(ADMIN, "second")
    assert manager.get_status()["reason"] == "first"
    manager.close()


def test_without_authorizer_any_caller_allowed():
    manager = EmergencyPauseManager(":memory:")
    manager.pause_operations("0xanyone")
    assert manager.is_paused() is True
    manager.close()


def test_pause_survives_restart(tmp_path):
    db_path = tmp_path / "pause.db"
    manager = EmergencyPauseManager(db_path, authorizer=_rbac())
    manager.pause_operations(ADMIN, "maintenance")
    manager.close()

    restarted = EmergencyPauseManager(db_path, authorizer=_rbac())
    assert restarted.is_paused() is True
    assert restarted.get_status()["reason"] == "maintenance"
    restarted.close()


def test_shared_storage_instance():
    storage = StorageManager(":memory:")
    manager = EmergencyPauseManager(storage=storage)
    manager.pause_operations("0xops")
    assert storage.get("emergency_pause_state")["is_paused"] is True
    storage.close()
