from unittest.mock import MagicMock

import pytest
import requests

from gymdesk.config import Settings
from gymdesk.database import initialize_database, seed_default_plans
from gymdesk.store import (
    RestTableStore,
    SQLiteTableStore,
    StoreError,
    create_store,
)

MEMBER_ROW = {
    "dni": "30111222",
    "name": "Ana Gomez",
    "phone": None,
    "membership_type": "mensual",
    "start_date": "2024-01-15",
    "expiry_date": "2024-02-14",
}


# SQLite store


def test_new_database_has_default_plans(store):
    plans = store.select("membership_types", order_by=("duration_days",))
    assert [p["key"] for p in plans] == ["mensual", "trimestral", "semestral", "anual"]
    assert all(p["is_active"] == 1 for p in plans)


def test_seeding_is_skipped_when_plans_exist(tmp_path):
    conn = initialize_database(str(tmp_path / "seed.db"))
    assert seed_default_plans(conn) == 0
    assert conn.execute("SELECT COUNT(*) FROM membership_types").fetchone()[0] == 4
    conn.close()


def test_insert_returns_stored_row(store):
    row = store.insert("members", MEMBER_ROW)
    assert row["id"] is not None
    assert row["dni"] == "30111222"
    assert row["created_at"]


def test_select_with_filters_and_order(store):
    for day, amount in (("2024-01-10", 10), ("2024-01-15", 20), ("2024-01-20", 30)):
        store.insert(
            "transactions",
            {"type": "income", "amount": amount, "concept": "x", "date": day, "time": "10:00"},
        )
    rows = store.select(
        "transactions",
        gte={"date": "2024-01-10"},
        lte={"date": "2024-01-15"},
        order_by=("date",),
        descending=True,
    )
    assert [r["amount"] for r in rows] == [20, 10]
    assert len(store.select("transactions", limit=1)) == 1


def test_select_null_equality(store):
    store.insert("members", MEMBER_ROW)
    assert len(store.select("members", eq={"phone": None})) == 1


def test_update_returns_rows_and_touches_updated_at(store):
    store.insert("members", MEMBER_ROW)
    store.conn.execute("UPDATE members SET updated_at = '2000-01-01 00:00:00'")
    store.conn.commit()
    updated = store.update("members", {"name": "Ana G."}, eq={"dni": "30111222"})
    assert len(updated) == 1
    assert updated[0]["name"] == "Ana G."
    assert updated[0]["updated_at"] != "2000-01-01 00:00:00"


def test_update_without_match_returns_empty_list(store):
    assert store.update("members", {"name": "Nobody"}, eq={"dni": "0"}) == []


def test_delete_returns_count(store):
    store.insert("members", MEMBER_ROW)
    assert store.delete("members", eq={"dni": "30111222"}) == 1
    assert store.delete("members", eq={"dni": "30111222"}) == 0


def test_duplicate_dni_is_a_store_error(store):
    store.insert("members", MEMBER_ROW)
    with pytest.raises(StoreError, match="UNIQUE"):
        store.insert("members", MEMBER_ROW)


def test_non_positive_amount_is_rejected(store):
    with pytest.raises(StoreError):
        store.insert(
            "transactions",
            {"type": "income", "amount": 0, "concept": "x", "date": "2024-01-15", "time": "10:00"},
        )


def test_unknown_table_and_bad_columns(store):
    with pytest.raises(ValueError, match="Unknown table"):
        store.select("payments")
    with pytest.raises(ValueError, match="Invalid column name"):
        store.select("members", eq={"dni; DROP TABLE members": "1"})


def test_update_and_delete_require_a_filter(store):
    with pytest.raises(ValueError, match="equality filter"):
        store.update("members", {"name": "x"}, eq={})
    with pytest.raises(ValueError, match="equality filter"):
        store.delete("members", eq=None)


# REST store


def make_response(payload=None, status_error=None, content=b"x"):
    response = MagicMock()
    response.content = content
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def rest_store(session):
    return RestTableStore("https://example.test/", "secret-key", timeout=3, session=session)


def test_rest_store_sets_auth_headers(rest_store, session):
    assert session.headers["apikey"] == "secret-key"
    assert session.headers["Authorization"] == "Bearer secret-key"


def test_rest_select_builds_postgrest_query(rest_store, session):
    session.request.return_value = make_response([{"id": 1, **MEMBER_ROW}])

    rows = rest_store.select(
        "members",
        eq={"dni": "30111222", "is_active": True},
        order_by=("created_at", "id"),
        descending=True,
        limit=5,
    )

    assert rows[0]["dni"] == "30111222"
    args, kwargs = session.request.call_args
    assert args == ("GET", "https://example.test/rest/v1/members")
    assert kwargs["params"] == [
        ("select", "*"),
        ("dni", "eq.30111222"),
        ("is_active", "eq.true"),
        ("order", "created_at.desc,id.desc"),
        ("limit", "5"),
    ]
    assert kwargs["timeout"] == 3


def test_rest_range_filters(rest_store, session):
    session.request.return_value = make_response([])
    rest_store.select("checkins", gte={"check_in_time": "2024-01-15T00:00:00"}, lte={"check_in_time": "2024-01-15T23:59:59"})
    params = session.request.call_args.kwargs["params"]
    assert ("check_in_time", "gte.2024-01-15T00:00:00") in params
    assert ("check_in_time", "lte.2024-01-15T23:59:59") in params


def test_rest_insert_asks_for_representation(rest_store, session):
    session.request.return_value = make_response([{"id": 7, **MEMBER_ROW}])
    row = rest_store.insert("members", MEMBER_ROW)
    assert row["id"] == 7
    args, kwargs = session.request.call_args
    assert args[0] == "POST"
    assert kwargs["json"] == [MEMBER_ROW]
    assert kwargs["headers"] == {"Prefer": "return=representation"}


def test_rest_update_and_delete(rest_store, session):
    session.request.return_value = make_response([{"id": 1}, {"id": 2}])
    assert rest_store.delete("transactions", eq={"id": 1}) == 2
    assert session.request.call_args.args[0] == "DELETE"
    assert session.request.call_args.kwargs["params"] == [("id", "eq.1")]

    session.request.return_value = make_response([{"id": 1, "name": "New"}])
    updated = rest_store.update("members", {"name": "New"}, eq={"dni": "1"})
    assert updated == [{"id": 1, "name": "New"}]
    assert session.request.call_args.args[0] == "PATCH"


def test_rest_empty_body_is_empty_list(rest_store, session):
    session.request.return_value = make_response(content=b"")
    assert rest_store.delete("members", eq={"dni": "1"}) == 0


def test_rest_http_error_becomes_store_error(rest_store, session):
    session.request.return_value = make_response(
        {"message": "duplicate key value violates unique constraint"},
        status_error=requests.exceptions.HTTPError("409 Client Error"),
    )
    with pytest.raises(StoreError, match="duplicate key value"):
        rest_store.insert("members", MEMBER_ROW)


@pytest.mark.parametrize("payload", [[{"message": "bad gateway"}], "Bad Gateway", None])
def test_rest_http_error_with_non_object_body(rest_store, session, payload):
    session.request.return_value = make_response(
        payload, status_error=requests.exceptions.HTTPError("502 Server Error")
    )
    with pytest.raises(StoreError, match="502 Server Error"):
        rest_store.select("members")


def test_rest_http_error_with_unreadable_body(rest_store, session):
    response = make_response(status_error=requests.exceptions.HTTPError("503 Server Error"))
    response.json.side_effect = ValueError("not json")
    session.request.return_value = response
    with pytest.raises(StoreError, match="503 Server Error"):
        rest_store.select("members")


def test_rest_connection_error_becomes_store_error(rest_store, session):
    session.request.side_effect = requests.exceptions.ConnectionError("connection refused")
    with pytest.raises(StoreError, match="connection refused"):
        rest_store.select("members")


def test_rest_insert_without_returned_row_is_an_error(rest_store, session):
    session.request.return_value = make_response([])
    with pytest.raises(StoreError, match="returned no row"):
        rest_store.insert("members", MEMBER_ROW)


def test_create_store_picks_adapter(tmp_path):
    remote = create_store(Settings(store_url="https://example.test", store_key="k"))
    assert isinstance(remote, RestTableStore)
    local = create_store(Settings(local_db=str(tmp_path / "local.db")))
    assert isinstance(local, SQLiteTableStore)
    local.conn.close()
