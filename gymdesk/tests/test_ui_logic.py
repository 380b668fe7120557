from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from gymdesk.database_manager import DatabaseManager
from gymdesk.dates import Clock
from gymdesk.models import Member, Transaction
from gymdesk.store import SQLiteTableStore

APP_PATH = str(Path(__file__).resolve().parents[1] / "streamlit_ui" / "app.py")


@pytest.fixture
def local_db(tmp_path, monkeypatch):
    db_path = str(tmp_path / "ui_test.db")
    monkeypatch.setenv("GYMDESK_LOCAL_DB", db_path)
    monkeypatch.delenv("GYMDESK_STORE_URL", raising=False)
    monkeypatch.delenv("GYMDESK_STORE_KEY", raising=False)
    return db_path


def test_app_renders_all_tabs(local_db):
    at = AppTest.from_file(APP_PATH).run(timeout=30)
    assert not at.exception
    assert len(at.tabs) == 3
    assert at.error == []


def test_check_in_shows_member_status(local_db):
    store = SQLiteTableStore.open(local_db)
    DatabaseManager(store).add_member(
        Member("30111222", "Ana Gomez", "anual", "2099-01-01", "2099-12-31")
    )
    store.conn.close()

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    at.text_input(key="checkin_dni_input").input("30111222")
    at.button(key="checkin_submit").click().run(timeout=30)

    assert not at.exception
    assert any("Ana Gomez" in s.value for s in at.success)


def test_missing_configuration_is_reported(monkeypatch):
    for name in ("GYMDESK_LOCAL_DB", "GYMDESK_STORE_URL", "GYMDESK_STORE_KEY"):
        monkeypatch.setenv(name, "")
    at = AppTest.from_file(APP_PATH).run(timeout=30)
    assert "Configuration error" in at.error[0].value


def seed(local_db, members=(), transactions=()):
    store = SQLiteTableStore.open(local_db)
    db_manager = DatabaseManager(store)
    for member in members:
        db_manager.add_member(member)
    for transaction in transactions:
        db_manager.add_transaction(transaction)
    store.conn.close()


def members_table(at):
    return next(df.value for df in at.dataframe if "Expiry" in df.value.columns)


def metric_value(at, label):
    return next(m.value for m in at.metric if m.label == label)


def test_deleted_member_disappears_from_list(local_db):
    seed(local_db, members=[Member("111", "Ana Gomez", "mensual", "2099-01-01", "2099-01-31")])

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    assert list(members_table(at)["DNI"]) == ["111"]
    at.button(key="member_delete_button").click().run(timeout=30)
    at.button(key="confirm_delete_member_111").click().run(timeout=30)

    assert not at.exception
    assert "Member deleted." in [s.value for s in at.success]
    assert not any("Expiry" in df.value.columns for df in at.dataframe)
    assert "No members found." in [i.value for i in at.info]


def test_renewal_refreshes_member_status(local_db):
    seed(local_db, members=[Member("111", "Ana Gomez", "mensual", "2000-01-01", "2000-01-31")])

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    assert list(members_table(at)["Status"]) == ["Expired"]
    at.button(key="member_renew_button").click().run(timeout=30)

    assert not at.exception
    assert any(s.value.startswith("Membership renewed") for s in at.success)
    assert list(members_table(at)["Status"]) == ["Active"]


def test_deleted_transaction_updates_totals(local_db):
    clock = Clock()
    seed(
        local_db,
        transactions=[
            Transaction(type="income", amount=100, concept="Day pass", date=clock.today_str(), time=clock.time_str())
        ],
    )

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    assert metric_value(at, "Transactions") == "1"
    at.button(key="ledger_delete_button").click().run(timeout=30)

    assert not at.exception
    assert "Transaction deleted." in [s.value for s in at.success]
    assert metric_value(at, "Transactions") == "0"
    assert metric_value(at, "Income") == "$0.00"


def test_edit_member_prefills_form_and_locks_dni(local_db):
    seed(local_db, members=[Member("111", "Ana Gomez", "anual", "2099-01-01", "2100-01-01", phone="1155")])

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    at.button(key="member_edit_button").click().run(timeout=30)

    dni_input = next(t for t in at.text_input if t.label == "DNI")
    name_input = next(t for t in at.text_input if t.label == "Name")
    assert dni_input.value == "111"
    assert dni_input.disabled
    assert name_input.value == "Ana Gomez"
    assert next(t for t in at.text_input if t.label == "Phone").value == "1155"

    name_input.input("Ana G.")
    at.button(key="member_form_submit").click().run(timeout=30)

    assert not at.exception
    assert "Member updated successfully." in [s.value for s in at.success]
    assert list(members_table(at)["Name"]) == ["Ana G."]
    assert list(members_table(at)["Plan"]) == ["Anual"]


def test_registering_a_taken_dni_is_refused(local_db):
    seed(local_db, members=[Member("111", "Ana Gomez", "mensual", "2099-01-01", "2099-01-31")])

    at = AppTest.from_file(APP_PATH).run(timeout=30)
    next(t for t in at.text_input if t.label == "DNI").input("111")
    next(t for t in at.text_input if t.label == "Name").input("Someone Else")
    at.button(key="member_form_submit").click().run(timeout=30)

    assert not at.exception
    assert any("already registered" in e.value for e in at.error)
    assert list(members_table(at)["Name"]) == ["Ana Gomez"]
