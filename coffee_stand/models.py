# coffee_stand/models.py
import json
import math
import re
import secrets
import string
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

# ----------------- SHEET LAYOUTS (row 1 is a header everywhere) -----------------
HEADER_ROW_COUNT = 1

# products: Name | Volume | Price | Image URL | Hint
PRODUCT_COLUMNS = ("name", "volume", "price", "image_url", "data_ai_hint")

# users: ID | Login | Password | First name | Middle name | Last name | Position | Icon color
USER_COLUMNS = ("id", "login", "password_hash", "first_name", "middle_name",
                "last_name", "position", "icon_color")
USER_FIELD_COLUMNS = {
    "password_hash": "C",
    "first_name": "D",
    "middle_name": "E",
    "last_name": "F",
    "position": "G",
    "icon_color": "H",
}

# history: ID | Timestamp | Items (JSON) | Payment method | Total | Employee
ORDER_COLUMNS = ("id", "timestamp", "items", "payment_method", "total_price", "employee")

CASH, CARD, TRANSFER = "Наличные", "Карта", "Перевод"
PAYMENT_METHODS = (CASH, CARD, TRANSFER)

TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"

# digits with an optional `.`/`,` fraction, as typed into the product form
PRICE_RE = re.compile(r"-?(\d+([.,]\d+)?|[.,]\d+)")


@dataclass
class Product:
    id: Optional[str]
    name: str
    volume: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    data_ai_hint: Optional[str] = None

    def key(self) -> str:
        return product_key(self.name, self.volume)

    def to_dict(self):
        return asdict(self)


@dataclass
class User:
    id: str
    login: str
    password_hash: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    icon_color: Optional[str] = None

    def session_dict(self):
        """Everything but the password, safe to keep in the session cookie."""
        d = asdict(self)
        d.pop("password_hash")
        return d

    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.login


@dataclass
class OrderItem:
    name: str
    price: float
    quantity: int
    volume: Optional[str] = None

    def line_total(self) -> float:
        return self.price * self.quantity


@dataclass
class Order:
    id: str
    items: list = field(default_factory=list)
    total_price: float = 0
    timestamp: str = ""
    payment_method: Optional[str] = None
    employee: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def product_key(name, volume) -> str:
    return f"{name}|{volume or ''}"


def _cell(row, idx):
    if idx >= len(row):
        return ""
    value = row[idx]
    return value.strip() if isinstance(value, str) else value


def _or_none(value):
    return value if value not in ("", None) else None


def clean_text(value) -> str:
    """Stripped string form of a JSON scalar; containers and None give ''."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def generate_local_id(name: str, volume: Optional[str], row_number: int) -> str:
    """Stable id from row content: 32-bit rolling hash, hex, plus the sheet row."""
    h = 0
    for ch in f"{name}-{volume or 'none'}-{row_number}":
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"prod_{abs(h):x}_{row_number}"


def parse_price(value) -> Optional[float]:
    """Plain decimal with `.` or `,`; exponents, nan and inf are not prices."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text or not PRICE_RE.fullmatch(text):
        return None
    return float(text.replace(",", "."))


def row_to_product(row, index: int) -> Optional[Product]:
    """`index` is 0-based within the data rows (header excluded)."""
    if not row or not _cell(row, 0):
        return None
    name = _cell(row, 0)
    volume = _or_none(_cell(row, 1))
    row_number = index + HEADER_ROW_COUNT + 1
    return Product(
        id=generate_local_id(name, volume, row_number),
        name=name,
        volume=volume,
        price=parse_price(_cell(row, 2)),
        image_url=_or_none(_cell(row, 3)),
        data_ai_hint=_or_none(_cell(row, 4)),
    )


def product_to_row(product: Product) -> list:
    return [
        product.name,
        product.volume or "",
        product.price if product.price is not None else "",
        product.image_url or "",
        product.data_ai_hint or "",
    ]


def row_to_user(row) -> Optional[User]:
    if not row or not _cell(row, 1):
        return None
    values = [_cell(row, i) for i in range(len(USER_COLUMNS))]
    data = dict(zip(USER_COLUMNS, values))
    data["id"] = str(data["id"])
    for k in USER_COLUMNS[2:]:
        data[k] = _or_none(data[k])
    return User(**data)


def order_to_row(order: Order) -> list:
    items = [asdict(i) if isinstance(i, OrderItem) else i for i in order.items]
    return [
        order.id,
        order.timestamp,
        json.dumps(items, ensure_ascii=False),
        order.payment_method or "",
        order.total_price,
        order.employee or "",
    ]


def row_to_order(row) -> Optional[Order]:
    """Raises ValueError on a malformed items cell; empty rows give None."""
    if not row or not _cell(row, 0):
        return None
    raw_items = _cell(row, 2)
    items = []
    for it in (json.loads(raw_items) if raw_items else []):
        items.append(OrderItem(
            name=it["name"],
            price=parse_price(it.get("price")) or 0.0,
            quantity=int(it.get("quantity", 1)),
            volume=it.get("volume") or None,
        ))
    total = parse_price(_cell(row, 4))
    if total is None:
        total = sum(i.line_total() for i in items)
    return Order(
        id=str(_cell(row, 0)),
        items=items,
        total_price=total,
        timestamp=str(_cell(row, 1)),
        payment_method=_or_none(_cell(row, 3)),
        employee=_or_none(_cell(row, 5)),
    )


_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_order_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"order_{int(time.time() * 1000)}_{suffix}"


def format_timestamp(dt: datetime) -> str:
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value) -> Optional[datetime]:
    """Accepts `dd.mm.YYYY HH:MM:SS` (what we write) or ISO-8601 (older rows)."""
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        pass
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_product_form(data: dict):
    """Returns (Product without id, errors). Errors map field -> message."""
    errors = {}
    name = clean_text(data.get("name"))
    if len(name) < 2:
        errors["name"] = "Название товара должно содержать не менее 2 символов"

    price = None
    raw_price = data.get("price")
    if raw_price not in (None, ""):
        price = parse_price(raw_price)
        if price is None:
            errors["price"] = "Цена должна быть числом"
        elif price < 0:
            errors["price"] = "Цена должна быть 0 или больше"

    image_url = clean_text(data.get("imageUrl") or data.get("image_url"))
    if image_url and not _is_url(image_url):
        errors["imageUrl"] = "Должен быть действительный URL"

    volume = clean_text(data.get("volume")) or None
    hint = clean_text(data.get("dataAiHint") or data.get("data_ai_hint")) or None

    if errors:
        return None, errors
    return Product(id=None, name=name, volume=volume, price=price,
                   image_url=image_url or None, data_ai_hint=hint), {}
