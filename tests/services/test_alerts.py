from actionradar.services.alerts import AlertSnapshotEntry, build_alert_snapshot, detect_alert_diff


def test_build_alert_snapshot(make_health) -> None:
    items = [make_health(iid=1, has_conflicts=True), make_health(iid=2, has_failed_ci=True)]

    snapshot = build_alert_snapshot(items)

    assert snapshot == {
        items[0].key: AlertSnapshotEntry(has_conflicts=True, has_failed_ci=False),
        items[1].key: AlertSnapshotEntry(has_conflicts=False, has_failed_ci=True),
    }


def test_first_sight_counts_as_new(make_health) -> None:
    """Test that a risky merge request missing from the previous snapshot alerts."""
    item = make_health(iid=1, has_conflicts=True, has_failed_ci=True)

    diff = detect_alert_diff({}, [item])

    assert diff.newly_conflicted == [item]
    assert diff.newly_failed_ci == [item]
    assert not diff.is_empty


def test_only_false_to_true_transitions_alert(make_health) -> None:
    conflicted = make_health(iid=1, has_conflicts=True)
    failed = make_health(iid=2, has_failed_ci=True)
    healthy = make_health(iid=3)
    previous = {
        conflicted.key: AlertSnapshotEntry(has_conflicts=True, has_failed_ci=False),
        failed.key: AlertSnapshotEntry(has_conflicts=True, has_failed_ci=False),
        healthy.key: AlertSnapshotEntry(has_conflicts=True, has_failed_ci=True),
    }

    diff = detect_alert_diff(previous, [conflicted, failed, healthy])

    assert diff.newly_conflicted == []
    assert diff.newly_failed_ci == [failed]


def test_empty_current_list(make_health) -> None:
    previous = build_alert_snapshot([make_health(iid=1, has_conflicts=True)])
    assert detect_alert_diff(previous, []).is_empty
