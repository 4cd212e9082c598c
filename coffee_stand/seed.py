# coffee_stand/seed.py
import logging
import sys

from coffee_stand.sheets import SheetsError, SheetsReadOnly, open_store

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")


def main():
    try:
        store = open_store()
    except SheetsError as e:
        print(f"Cannot open spreadsheet: {e}")
        return 1
    try:
        result = store.sync_default_products()
    except SheetsReadOnly as e:
        print(f"Cannot write to spreadsheet: {e}")
        return 1
    print(result.message)
    print(f"Added: {result.added_count}, skipped: {result.skipped_count}")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
