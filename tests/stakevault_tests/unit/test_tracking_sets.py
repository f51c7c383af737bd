from stakevault.core.staking.tracking import TrackedSet


def test_add_reports_insertion_once():
    members = TrackedSet()
    assert members.add(7) is True
    assert members.add(7) is False
    assert len(members) == 1
    assert 7 in members


def test_remove_missing_member_is_noop():
    members = TrackedSet()
    members.add(1)
    assert members.remove(2) is False
    assert members.values() == [1]


def test_remove_swaps_last_member_into_slot():
    members = TrackedSet()
    for value in (10, 20, 30, 40):
        members.add(value)

    assert members.remove(20) is True
    assert members.values() == [10, 40, 30]
    assert 20 not in members
    assert members[1] == 40

    # The moved member can still be removed by value
    assert members.remove(40) is True
    assert members.values() == [10, 30]


def test_remove_last_member():
    members = TrackedSet()
    members.add("a")
    members.add("b")
    assert members.remove("b") is True
    assert members.values() == ["a"]
    assert members.remove("a") is True
    assert len(members) == 0
    assert not members


def test_iteration_snapshot_tolerates_removal():
    members = TrackedSet()
    for value in range(5):
        members.add(value)

    for value in members:
        members.remove(value)

    assert len(members) == 0


def test_readd_after_removal():
    members = TrackedSet()
    members.add(1)
    members.remove(1)
    assert members.add(1) is True
    assert members.values() == [1]
