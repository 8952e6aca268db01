from datetime import timedelta

from dateutil.parser import isoparse

from finance_tracker import recurrence


def _create_recurring(app_client, headers, **overrides):
    payload = {
        "type": "expense",
        "category": "Kommunal",
        "amount": 45,
        "date": "2024-01-31T00:00:00Z",
        "repeatRule": {"freq": "monthly", "dayOfMonth": 31},
    }
    payload.update(overrides)
    r = app_client.post("/api/recurring", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_month_end_scenario(app_client, headers):
    tx = _create_recurring(app_client, headers)
    assert tx["isRecurring"] is True
    assert isoparse(tx["nextTriggerAt"]) == isoparse("2024-02-29T00:00:00Z")

    r = app_client.patch(
        f"/api/recurring/{tx['id']}",
        json={"date": "2024-03-15T00:00:00Z", "repeatRule": {"freq": "monthly"}},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    updated = r.json()["data"]
    assert updated["repeatRule"] == {"freq": "monthly"}
    assert isoparse(updated["nextTriggerAt"]) == isoparse("2024-04-15T00:00:00Z")


def test_recalculate_flag_recomputes_from_stored_date(app_client, headers):
    tx = _create_recurring(
        app_client,
        headers,
        date="2024-06-05T00:00:00Z",
        repeatRule={"freq": "weekly", "weekday": 5},
    )
    assert isoparse(tx["nextTriggerAt"]) == isoparse("2024-06-07T00:00:00Z")

    r = app_client.patch(
        f"/api/recurring/{tx['id']}", json={"recalculateNextTrigger": True}, headers=headers
    )
    assert r.status_code == 200, r.text
    assert isoparse(r.json()["data"]["nextTriggerAt"]) == isoparse("2024-06-07T00:00:00Z")


def test_amount_patch_keeps_next_trigger(app_client, headers):
    tx = _create_recurring(app_client, headers)
    r = app_client.patch(f"/api/recurring/{tx['id']}", json={"amount": 50}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["amount"] == 50
    assert r.json()["data"]["nextTriggerAt"] == tx["nextTriggerAt"]


def test_repeat_rule_is_required(app_client, headers):
    r = app_client.post(
        "/api/recurring",
        json={"type": "expense", "category": "Kommunal", "amount": 1},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["field"] == "repeatRule"


def test_invalid_rules_name_the_field(app_client, headers):
    cases = [
        ({"freq": "yearly"}, "repeatRule.freq"),
        ({"freq": "monthly", "dayOfMonth": 32}, "repeatRule.dayOfMonth"),
        ({"freq": "weekly", "weekday": 7}, "repeatRule.weekday"),
    ]
    for rule, field in cases:
        r = app_client.post(
            "/api/recurring",
            json={"type": "expense", "category": "Kommunal", "amount": 1, "repeatRule": rule},
            headers=headers,
        )
        assert r.status_code == 400, (rule, r.text)
        assert r.json()["field"] == field


def test_patch_with_invalid_rule_leaves_record_untouched(app_client, headers):
    tx = _create_recurring(app_client, headers)
    r = app_client.patch(
        f"/api/recurring/{tx['id']}", json={"repeatRule": {"freq": "hourly"}}, headers=headers
    )
    assert r.status_code == 400
    listed = app_client.get("/api/recurring", headers=headers).json()["data"]
    assert listed[0]["repeatRule"] == tx["repeatRule"]
    assert listed[0]["nextTriggerAt"] == tx["nextTriggerAt"]


def test_list_is_soonest_first(app_client, headers):
    later = _create_recurring(app_client, headers, date="2024-03-01T00:00:00Z", repeatRule={"freq": "daily"})
    sooner = _create_recurring(app_client, headers, date="2024-01-01T00:00:00Z", repeatRule={"freq": "daily"})
    _plain = app_client.post(
        "/api/transactions",
        json={"type": "expense", "category": "Kommunal", "amount": 3},
        headers=headers,
    )
    assert _plain.status_code == 201

    r = app_client.get("/api/recurring", headers=headers)
    assert r.status_code == 200
    assert [tx["id"] for tx in r.json()["data"]] == [sooner["id"], later["id"]]


def test_due_filter_keeps_only_past_triggers(app_client, headers):
    past = _create_recurring(app_client, headers, date="2024-01-01T00:00:00Z", repeatRule={"freq": "daily"})
    future_date = recurrence.format_timestamp(recurrence.utcnow() + timedelta(days=30))
    _create_recurring(app_client, headers, date=future_date, repeatRule={"freq": "daily"})

    r = app_client.get("/api/recurring", params={"due": "true"}, headers=headers)
    assert [tx["id"] for tx in r.json()["data"]] == [past["id"]]
    assert len(app_client.get("/api/recurring", headers=headers).json()["data"]) == 2


def test_plain_transaction_is_not_found_under_recurring(app_client, headers):
    r = app_client.post(
        "/api/transactions",
        json={"type": "income", "category": "Maas", "amount": 1000},
        headers=headers,
    )
    tx_id = r.json()["data"]["id"]
    r = app_client.patch(f"/api/recurring/{tx_id}", json={"amount": 1}, headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Recurring transaction not found"


def test_other_owner_cannot_touch_recurring(app_client, make_headers):
    owner, stranger = make_headers(), make_headers()
    tx = _create_recurring(app_client, owner)
    r = app_client.patch(f"/api/recurring/{tx['id']}", json={"amount": 1}, headers=stranger)
    assert r.status_code == 404
    assert app_client.get("/api/recurring", headers=stranger).json()["data"] == []


def test_reminder_follows_recurring_lifecycle(app_client, headers, app_notifier):
    tx = _create_recurring(app_client, headers, notify=True)
    scheduled = app_notifier.for_transaction(tx["id"])
    assert len(scheduled) == 1
    first_handle, when = scheduled[0]
    assert when.hour == 10

    r = app_client.patch(
        f"/api/recurring/{tx['id']}", json={"date": "2024-03-15T00:00:00Z"}, headers=headers
    )
    assert r.status_code == 200, r.text
    assert app_notifier.cancelled == [first_handle]
    assert len(app_notifier.for_transaction(tx["id"])) == 2

    r = app_client.delete(f"/api/recurring/{tx['id']}", headers=headers)
    assert r.status_code == 200
    assert len(app_notifier.cancelled) == 2

    r = app_client.delete(f"/api/recurring/{tx['id']}", headers=headers)
    assert r.status_code == 404


def test_turning_notify_off_cancels_reminder(app_client, headers, app_notifier):
    tx = _create_recurring(app_client, headers, notify=True)
    (handle, _), = app_notifier.for_transaction(tx["id"])
    r = app_client.patch(f"/api/recurring/{tx['id']}", json={"notify": False}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["notify"] is False
    assert app_notifier.cancelled == [handle]


def test_reminder_failure_is_best_effort(app_client, headers, app_notifier):
    app_notifier.fail = True
    tx = _create_recurring(app_client, headers, notify=True)
    r = app_client.patch(
        f"/api/recurring/{tx['id']}", json={"date": "2024-05-01T00:00:00Z"}, headers=headers
    )
    assert r.status_code == 200, r.text
    assert app_client.delete(f"/api/recurring/{tx['id']}", headers=headers).status_code == 200


def test_leap_year_scenario_with_recalculate_flag(app_client, headers):
    tx = _create_recurring(app_client, headers, repeatRule={"freq": "monthly"})
    assert isoparse(tx["nextTriggerAt"]) == isoparse("2024-02-29T00:00:00Z")

    r = app_client.patch(
        f"/api/recurring/{tx['id']}",
        json={"date": "2024-03-15T00:00:00Z", "recalculateNextTrigger": True},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert isoparse(r.json()["data"]["nextTriggerAt"]) == isoparse("2024-04-15T00:00:00Z")


def test_same_next_trigger_lists_newest_first(app_client, headers):
    older = _create_recurring(app_client, headers)
    newer = _create_recurring(app_client, headers)
    assert older["nextTriggerAt"] == newer["nextTriggerAt"]

    r = app_client.get("/api/recurring", headers=headers)
    assert [tx["id"] for tx in r.json()["data"]] == [newer["id"], older["id"]]


def test_next_occurrence_past_year_9999_is_400(app_client, headers):
    r = app_client.post(
        "/api/recurring",
        json={
            "type": "expense",
            "category": "Kommunal",
            "amount": 1,
            "date": "9999-12-31T00:00:00Z",
            "repeatRule": {"freq": "daily"},
        },
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["field"] == "date"
    assert app_client.get("/api/recurring", headers=headers).json()["data"] == []


def test_patch_date_past_year_9999_is_400(app_client, headers):
    tx = _create_recurring(app_client, headers)
    r = app_client.patch(
        f"/api/recurring/{tx['id']}", json={"date": "9999-12-31T00:00:00Z"}, headers=headers
    )
    assert r.status_code == 400
    assert r.json()["field"] == "date"
    listed = app_client.get("/api/recurring", headers=headers).json()["data"]
    assert listed[0]["date"] == tx["date"]
