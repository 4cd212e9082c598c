# coffee_stand/sales.py
from collections import Counter
from datetime import date, datetime, time
from typing import Optional

from coffee_stand.models import (
    PAYMENT_METHODS, Order, OrderItem, clean_text, format_timestamp, new_order_id,
    parse_price, parse_timestamp,
)

SORT_KEYS = ("timestamp", "totalPrice", "paymentMethod", "employee")
DEFAULT_SORT = ("timestamp", "desc")
PRODUCT_SORT_OPTIONS = ("name-asc", "name-desc", "price-asc", "price-desc", "popularity-desc")


class OrderError(ValueError):
    pass


def filter_orders(orders, start: Optional[date] = None, end: Optional[date] = None):
    """Inclusive day range; with no start everything passes."""
    if start is None:
        return list(orders)
    lo = datetime.combine(start, time.min)
    hi = datetime.combine(end or start, time.max)
    out = []
    for o in orders:
        ts = parse_timestamp(o.timestamp)
        if ts and lo <= ts <= hi:
            out.append(o)
    return out


def sort_orders(orders, key: str = DEFAULT_SORT[0], direction: str = DEFAULT_SORT[1]):
    if key not in SORT_KEYS:
        raise ValueError(f"unknown sort key {key!r}")
    reverse = direction == "desc"

    if key == "timestamp":
        # rows with no readable timestamp go last in ascending order
        valid = [o for o in orders if parse_timestamp(o.timestamp)]
        invalid = [o for o in orders if not parse_timestamp(o.timestamp)]
        valid.sort(key=lambda o: parse_timestamp(o.timestamp), reverse=reverse)
        return invalid + valid if reverse else valid + invalid
    if key == "totalPrice":
        return sorted(orders, key=lambda o: o.total_price, reverse=reverse)
    if key == "paymentMethod":
        return sorted(orders, key=lambda o: (o.payment_method or "").casefold(), reverse=reverse)
    return sorted(orders, key=lambda o: (o.employee or "").casefold(), reverse=reverse)


def summarize(orders) -> dict:
    summary = {"total": 0.0}
    summary.update({m: 0.0 for m in PAYMENT_METHODS})
    for o in orders:
        summary["total"] += o.total_price
        if o.payment_method in PAYMENT_METHODS:
            summary[o.payment_method] += o.total_price
    return summary


def format_money(amount: float, currency: str = "RUB") -> str:
    if currency.upper() == "RUB":
        return f"{amount:.0f} ₽"
    return f"{amount:.0f} {currency}"


def summary_text(summary: dict, start: Optional[date] = None, end: Optional[date] = None,
                 currency: str = "RUB") -> str:
    if start and end and end != start:
        period = f"{start:%d.%m.%Y} - {end:%d.%m.%Y}"
    elif start:
        period = f"{start:%d.%m.%Y}"
    else:
        period = "за всё время"
    lines = [f"Статистика продаж ({period}):",
             f"Общая сумма: {format_money(summary['total'], currency)}"]
    for m in PAYMENT_METHODS:
        lines.append(f"{m}: {format_money(summary[m], currency)}")
    return "\n".join(lines)


def product_popularity(orders) -> Counter:
    """Units sold per name|volume key."""
    counts = Counter()
    for o in orders:
        for it in o.items:
            counts[f"{it.name}|{it.volume or ''}"] += it.quantity
    return counts


def sort_products(products, option: str = "name-asc", popularity: Optional[Counter] = None):
    if option not in PRODUCT_SORT_OPTIONS:
        raise ValueError(f"unknown product sort option {option!r}")
    if option.startswith("name"):
        return sorted(products, key=lambda p: (p.name.casefold(), p.volume or ""),
                      reverse=option == "name-desc")
    if option.startswith("price"):
        # products without a price sort last either way
        priced = [p for p in products if p.price is not None]
        unpriced = [p for p in products if p.price is None]
        return sorted(priced, key=lambda p: p.price, reverse=option == "price-desc") + unpriced
    popularity = popularity or Counter()
    return sorted(products, key=lambda p: (-popularity[p.key()], p.name.casefold()))


def build_order(items, payment_method: str, employee: Optional[str] = None,
                now: Optional[datetime] = None) -> Order:
    if not items:
        raise OrderError("Заказ пуст")
    if payment_method not in PAYMENT_METHODS:
        raise OrderError("Выберите способ оплаты")
    if not isinstance(items, list):
        raise OrderError("Некорректная позиция заказа")
    order_items = []
    for raw in items:
        if not isinstance(raw, dict):
            raise OrderError("Некорректная позиция заказа")
        name = clean_text(raw.get("name"))
        price = parse_price(raw.get("price"))
        try:
            quantity = int(raw.get("quantity", 1))
        except (TypeError, ValueError, OverflowError):
            raise OrderError(f"Некорректное количество для {name or 'товара'}")
        if not name or price is None or price < 0:
            raise OrderError("Некорректная позиция заказа")
        if quantity <= 0:
            raise OrderError(f"Некорректное количество для {name}")
        order_items.append(OrderItem(name=name, price=price, quantity=quantity,
                                     volume=(clean_text(raw.get("volume")) or None)))
    return Order(
        id=new_order_id(),
        items=order_items,
        total_price=sum(i.line_total() for i in order_items),
        timestamp=format_timestamp(now or datetime.now()),
        payment_method=payment_method,
        employee=employee,
    )
