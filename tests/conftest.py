import json
import os
import re

os.environ["LOG_FILE"] = ""
os.environ["SESSION_PASSWORD"] = "test-session-password-that-is-long-enough"

import bcrypt
import pytest
from gspread.exceptions import GSpreadException, WorksheetNotFound

from coffee_stand.sheets import SheetStore

PRODUCTS_HEADER = ["Name", "Volume", "Price", "Image URL", "Hint"]
USERS_HEADER = ["ID", "Login", "Password", "First name", "Middle name", "Last name",
                "Position", "Icon color"]
HISTORY_HEADER = ["ID", "Timestamp", "Items", "Payment method", "Total", "Employee"]

BOB_PASSWORD = "hunter22"


def _col_index(letters):
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def _parse_cell(ref):
    m = re.fullmatch(r"([A-Z]+)(\d+)", ref)
    return int(m.group(2)), _col_index(m.group(1))


class FakeWorksheet:
    """The slice of gspread.Worksheet the store relies on, kept in memory."""

    def __init__(self, title, rows):
        self.title = title
        self.rows = [list(r) for r in rows]
        self.fail = False

    def _check(self):
        if self.fail:
            raise GSpreadException(f"{self.title} unavailable")

    def get_all_values(self):
        self._check()
        width = max((len(r) for r in self.rows), default=0)
        return [[("" if c is None else str(c)) for c in r] + [""] * (width - len(r))
                for r in self.rows]

    def append_row(self, values, value_input_option="RAW"):
        self._check()
        self.rows.append(list(values))

    def append_rows(self, values, value_input_option="RAW"):
        self._check()
        self.rows.extend(list(v) for v in values)

    def _set(self, row, col, value):
        while len(self.rows) < row:
            self.rows.append([])
        target = self.rows[row - 1]
        while len(target) <= col:
            target.append("")
        target[col] = value

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        row, col = _parse_cell(range_name.split(":")[0])
        for r_off, line in enumerate(values):
            for c_off, value in enumerate(line):
                self._set(row + r_off, col + c_off, value)

    def batch_update(self, data):
        self._check()
        for entry in data:
            self.update(entry["range"], entry["values"])

    def batch_clear(self, ranges):
        self._check()
        for rng in ranges:
            first, last = (int(n) for n in rng.split(":"))
            for line in self.rows[first - 1:last]:
                line[:] = [""] * len(line)

    def delete_rows(self, start_index, end_index=None):
        self._check()
        end_index = end_index or start_index
        del self.rows[start_index - 1:end_index]


class FakeSpreadsheet:
    def __init__(self, sheets):
        self.sheets = {title: FakeWorksheet(title, rows) for title, rows in sheets.items()}

    def worksheet(self, title):
        if title not in self.sheets:
            raise WorksheetNotFound(title)
        return self.sheets[title]


def history_row(order_id, timestamp, items, method, total, employee="Алиса"):
    return [order_id, timestamp, json.dumps(items, ensure_ascii=False), method, total, employee]


@pytest.fixture
def bob_hash():
    return bcrypt.hashpw(BOB_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()


@pytest.fixture
def spreadsheet(bob_hash):
    return FakeSpreadsheet({
        "price": [
            PRODUCTS_HEADER,
            ["Капучино", "0,3 л", "185", "https://example.com/c.jpg", "капучино"],
            ["Эспрессо", "", "100", "", ""],
            ["Латте", "0,3 л", "165,5", "", ""],
        ],
        "users": [
            USERS_HEADER,
            ["1", "alice", "secret1", "Алиса", "", "Иванова", "Бариста", "#32a852"],
            ["2", "bob", bob_hash, "Боб", "", "", "Управляющий", ""],
        ],
        "history": [
            HISTORY_HEADER,
            history_row("order_1", "01.03.2025 09:15:00",
                        [{"name": "Капучино", "volume": "0,3 л", "quantity": 2, "price": 185}],
                        "Карта", 370),
            history_row("order_2", "02.03.2025 12:00:00",
                        [{"name": "Эспрессо", "volume": None, "quantity": 1, "price": 100}],
                        "Наличные", 100, employee="Боб"),
        ],
    })


@pytest.fixture
def store(spreadsheet):
    return SheetStore(spreadsheet, products_sheet="price", users_sheet="users",
                      history_sheet="history")


@pytest.fixture
def app(store):
    from coffee_stand.app import app as flask_app
    flask_app.config.update(TESTING=True, SHEET_STORE=store)
    yield flask_app
    flask_app.config.pop("SHEET_STORE", None)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    resp = client.post("/api/auth/login", json={"login": "alice", "password": "secret1"})
    assert resp.status_code == 200
    return client
