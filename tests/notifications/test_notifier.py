from src.timesheet_approval.timesheet_approval.notifications.notifier import ChangeEvent, ChangeNotifier


def test_subscribers_receive_only_their_table():
    notifier = ChangeNotifier()
    entries, history = [], []
    notifier.subscribe(entries.append, table="time_entries")
    notifier.subscribe(history.append, table="entry_change_history")

    notifier.publish("time_entries", "1")

    assert entries == [ChangeEvent(table="time_entries", entity_id="1")]
    assert history == []


def test_entity_filter_and_unsubscribe():
    notifier = ChangeNotifier()
    seen = []
    unsubscribe = notifier.subscribe(seen.append, table="time_entries", entity_id="a")

    notifier.publish("time_entries", "b")
    notifier.publish("time_entries", "a")
    unsubscribe()
    notifier.publish("time_entries", "a")

    assert seen == [ChangeEvent(table="time_entries", entity_id="a")]


def test_failing_subscriber_does_not_break_others():
    notifier = ChangeNotifier()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    notifier.subscribe(broken, table="time_entries")
    notifier.subscribe(seen.append, table="time_entries")

    notifier.publish("time_entries", "x")

    assert len(seen) == 1
