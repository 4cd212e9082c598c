# coffee_stand/sheets.py
"""Spreadsheet-backed store for products, users and sales history.

Every call fetches the worksheet fresh and scans rows linearly; nothing is
cached between requests. Reads raise SheetsError when the API fails, writes
log the failure and return False. Any write on a store opened with only an
API key raises SheetsReadOnly.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from gspread.exceptions import GSpreadException, WorksheetNotFound

from coffee_stand import config
from coffee_stand.defaults import get_default_products
from coffee_stand.models import (
    HEADER_ROW_COUNT, USER_FIELD_COLUMNS, Order, Product, User,
    order_to_row, product_key, product_to_row, row_to_order, row_to_product,
    row_to_user,
)

log = logging.getLogger("coffee_stand.sheets")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
USER_ENTERED = "USER_ENTERED"


class SheetsError(Exception):
    pass


class SheetsNotConfigured(SheetsError):
    pass


class SheetsReadOnly(SheetsError):
    pass


@dataclass
class SyncResult:
    success: bool
    message: str
    added_count: int = 0
    skipped_count: int = 0


def build_client():
    """Service account first (read/write), API key as a read-only fallback."""
    if not config.sheets_configured():
        raise SheetsNotConfigured(
            "Missing Google Sheet ID or sheet name (GOOGLE_SHEET_ID, GOOGLE_SHEET_NAME)")
    if config.service_account_configured():
        log.info("Using service account credentials for Google Sheets")
        creds = Credentials.from_service_account_info({
            "type": "service_account",
            "client_email": config.GOOGLE_SERVICE_ACCOUNT_EMAIL,
            "private_key": config.private_key(),
            "token_uri": TOKEN_URI,
        }, scopes=SCOPES)
        return gspread.authorize(creds), True
    if config.GOOGLE_SHEETS_API_KEY:
        log.warning("Using API key for Google Sheets; writes are disabled")
        return gspread.api_key(config.GOOGLE_SHEETS_API_KEY), False
    raise SheetsNotConfigured(
        "Missing Google Sheets credentials: set GOOGLE_SERVICE_ACCOUNT_EMAIL and "
        "GOOGLE_PRIVATE_KEY, or GOOGLE_SHEETS_API_KEY")


def open_store():
    client, writable = build_client()
    try:
        spreadsheet = client.open_by_key(config.GOOGLE_SHEET_ID)
    except GSpreadException as e:
        raise SheetsError(f"Could not open spreadsheet {config.GOOGLE_SHEET_ID}: {e}") from e
    return SheetStore(
        spreadsheet,
        products_sheet=config.GOOGLE_SHEET_NAME,
        users_sheet=config.GOOGLE_USERS_SHEET_NAME,
        history_sheet=config.GOOGLE_HISTORY_SHEET_NAME,
        writable=writable,
    )


class SheetStore:
    def __init__(self, spreadsheet, products_sheet, users_sheet="users",
                 history_sheet="history", writable=True):
        self.spreadsheet = spreadsheet
        self.products_sheet = products_sheet
        self.users_sheet = users_sheet
        self.history_sheet = history_sheet
        self.writable = writable

    # ---------- low level ----------
    def _worksheet(self, title):
        try:
            return self.spreadsheet.worksheet(title)
        except WorksheetNotFound as e:
            raise SheetsError(f'Worksheet "{title}" not found') from e

    def _data_rows(self, title):
        """All rows below the header, fetched fresh."""
        ws = self._worksheet(title)
        try:
            values = ws.get_all_values()
        except GSpreadException as e:
            raise SheetsError(f'Failed to read worksheet "{title}": {e}') from e
        return ws, values[HEADER_ROW_COUNT:]

    def _require_write(self, operation):
        if not self.writable:
            log.error(f"{operation} requires service account credentials; API key is read-only")
            raise SheetsReadOnly(f"{operation} is not allowed with a read-only API key")

    # --------------------------- PRODUCTS ---------------------------
    def fetch_products(self):
        _, rows = self._data_rows(self.products_sheet)
        products = [p for p in (row_to_product(r, i) for i, r in enumerate(rows)) if p]
        log.info(f"Fetched {len(rows)} product rows, parsed {len(products)} products")
        return products

    def find_product_row(self, name, volume=None) -> Optional[int]:
        _, rows = self._data_rows(self.products_sheet)
        return _find_product_row(rows, name, volume)

    def add_product(self, product: Product) -> bool:
        if not product.name:
            log.error("Attempted to add a product without a name")
            return False
        self._require_write("Add product")
        try:
            ws, rows = self._data_rows(self.products_sheet)
            existing = _find_product_row(rows, product.name, product.volume)
            if existing is not None:
                log.warning(f'Product "{product.name}" ({product.volume or "N/A"}) '
                            f"already exists at row {existing}, skipping add")
                return False
            ws.append_row(product_to_row(product), value_input_option=USER_ENTERED)
        except (SheetsError, GSpreadException) as e:
            log.error(f'Adding product "{product.name}" failed: {e}')
            return False
        log.info(f'Added product "{product.name}" ({product.volume or ""})')
        return True

    def update_product(self, original_name, original_volume, product: Product) -> bool:
        if not original_name:
            log.error("Original product name missing for update")
            return False
        if not product.name:
            log.error("New product name missing for update")
            return False
        self._require_write("Update product")
        try:
            ws, rows = self._data_rows(self.products_sheet)
            row = _find_product_row(rows, original_name, original_volume)
            if row is None:
                log.error(f'Product "{original_name}" ({original_volume or ""}) not found for update')
                return False
            conflict = _find_product_row(rows, product.name, product.volume)
            if conflict is not None and conflict != row:
                log.warning(f'Update conflict: "{product.name}" ({product.volume or ""}) '
                            f"already exists at row {conflict}")
                return False
            ws.update(range_name=f"A{row}:E{row}", values=[product_to_row(product)],
                      value_input_option=USER_ENTERED)
        except (SheetsError, GSpreadException) as e:
            log.error(f'Updating product "{original_name}" failed: {e}')
            return False
        log.info(f"Updated product at row {row}")
        return True

    def delete_product(self, name, volume=None) -> bool:
        if not name:
            log.error("Attempted to delete a product without a name")
            return False
        self._require_write("Delete product")
        try:
            ws, rows = self._data_rows(self.products_sheet)
            row = _find_product_row(rows, name, volume)
            if row is None:
                log.error(f'Product "{name}" ({volume or ""}) not found for deletion')
                return False
            ws.delete_rows(row)
        except (SheetsError, GSpreadException) as e:
            log.error(f'Deleting product "{name}" failed: {e}')
            return False
        log.info(f'Deleted product "{name}" ({volume or ""}) at row {row}')
        return True

    def sync_default_products(self) -> SyncResult:
        """Appends every default product whose name+volume is not in the sheet yet."""
        self._require_write("Sync")
        defaults = get_default_products()
        try:
            existing = {p.key() for p in self.fetch_products()}
            to_add = [p for p in defaults if p.key() not in existing]
            skipped = len(defaults) - len(to_add)
            if not to_add:
                return SyncResult(True, "All example products are already in the sheet.", 0, skipped)
            ws = self._worksheet(self.products_sheet)
            ws.append_rows([product_to_row(p) for p in to_add], value_input_option=USER_ENTERED)
        except (SheetsError, GSpreadException) as e:
            log.error(f"Syncing default products failed: {e}")
            return SyncResult(False, f"Failed to sync example products to Google Sheet. Error detail: {e}")
        log.info(f"Synced {len(to_add)} default products, skipped {skipped}")
        return SyncResult(True, f"Successfully added {len(to_add)} example products to the sheet.",
                          len(to_add), skipped)

    # --------------------------- USERS ---------------------------
    def get_user(self, login) -> Optional[User]:
        login = (login or "").strip()
        if not login:
            return None
        _, rows = self._data_rows(self.users_sheet)
        for row in rows:
            user = row_to_user(row)
            if user and user.login == login:
                return user
        return None

    def update_user(self, login, updates: dict) -> bool:
        """Writes only whitelisted columns; other keys in `updates` are ignored."""
        data = [(USER_FIELD_COLUMNS[k], v) for k, v in updates.items() if k in USER_FIELD_COLUMNS]
        if not data:
            log.info(f"No updatable fields for user {login}")
            return True
        self._require_write("Update user")
        try:
            ws, rows = self._data_rows(self.users_sheet)
            row = None
            for i, r in enumerate(rows):
                user = row_to_user(r)
                if user and user.login == login:
                    row = i + HEADER_ROW_COUNT + 1
                    break
            if row is None:
                log.error(f"User {login} not found for update")
                return False
            ws.batch_update([{"range": f"{col}{row}", "values": [[value or ""]]}
                             for col, value in data])
        except (SheetsError, GSpreadException) as e:
            log.error(f"Updating user {login} failed: {e}")
            return False
        log.info(f"Updated user {login}: {', '.join(k for k in updates if k in USER_FIELD_COLUMNS)}")
        return True

    # --------------------------- SALES HISTORY ---------------------------
    def fetch_orders(self):
        _, rows = self._data_rows(self.history_sheet)
        orders = []
        for i, row in enumerate(rows):
            try:
                order = row_to_order(row)
            except (ValueError, KeyError, TypeError) as e:
                log.warning(f"Skipping malformed history row {i + HEADER_ROW_COUNT + 1}: {e}")
                continue
            if order:
                orders.append(order)
        return orders

    def add_order(self, order: Order) -> bool:
        self._require_write("Add order")
        try:
            self._worksheet(self.history_sheet).append_row(order_to_row(order))
        except (SheetsError, GSpreadException) as e:
            log.error(f"Saving order {order.id} failed: {e}")
            return False
        log.info(f"Saved order {order.id} total={order.total_price}")
        return True

    def delete_order(self, order_id) -> bool:
        if not order_id:
            return False
        self._require_write("Delete order")
        try:
            ws, rows = self._data_rows(self.history_sheet)
            row = None
            for i, r in enumerate(rows):
                if r and str(r[0]).strip() == order_id:
                    row = i + HEADER_ROW_COUNT + 1
                    break
            if row is None:
                log.error(f"Order {order_id} not found for deletion")
                return False
            ws.delete_rows(row)
        except (SheetsError, GSpreadException) as e:
            log.error(f"Deleting order {order_id} failed: {e}")
            return False
        log.info(f"Deleted order {order_id} at row {row}")
        return True

    def clear_orders(self) -> bool:
        self._require_write("Clear history")
        try:
            ws, rows = self._data_rows(self.history_sheet)
            if rows:
                # blank the rows; the API refuses to delete every non-frozen row
                first = HEADER_ROW_COUNT + 1
                ws.batch_clear([f"{first}:{first + len(rows) - 1}"])
        except (SheetsError, GSpreadException) as e:
            log.error(f"Clearing sales history failed: {e}")
            return False
        log.info(f"Cleared {len(rows)} history rows")
        return True


def _find_product_row(rows, name, volume) -> Optional[int]:
    """1-based sheet row of the first name+volume match; None volume matches ''."""
    wanted = product_key(name, volume)
    for i, row in enumerate(rows):
        cells = [str(c).strip() for c in row[:2]] + ["", ""]
        if cells[0] and product_key(cells[0], cells[1]) == wanted:
            return i + HEADER_ROW_COUNT + 1
    return None
