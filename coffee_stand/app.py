# coffee_stand/app.py
import logging
import smtplib
from datetime import date, timedelta
from email.mime.text import MIMEText
from urllib.parse import urlparse, urljoin

import requests
from flask import Flask, request, jsonify
from flask_login import login_required, current_user

from coffee_stand import config
from coffee_stand.models import clean_text, validate_product_form
from coffee_stand.passwords import (
    hash_password, needs_password_change, validate_new_password, verify_password,
)
from coffee_stand.sales import (
    DEFAULT_SORT, OrderError, build_order, filter_orders, product_popularity,
    sort_orders, sort_products, summarize, summary_text,
)
from coffee_stand.session import (
    EncryptedCookieSessionInterface, login_manager, login as session_login,
    logout as session_logout, update_session_user,
)
from coffee_stand.sheets import SheetsError, SheetsReadOnly, open_store

app = Flask(__name__)
app.secret_key = config.SESSION_PASSWORD
app.config.update(
    SESSION_COOKIE_NAME=config.SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE=config.SESSION_COOKIE_SECURE,
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
    PERMANENT_SESSION_LIFETIME=timedelta(days=config.SESSION_MAX_AGE_DAYS),
)
app.session_interface = EncryptedCookieSessionInterface(config.SESSION_PASSWORD)
login_manager.init_app(app)

# ---------- Logging & notify ----------
log = logging.getLogger("coffee_stand")
log.setLevel(logging.INFO)
if config.LOG_FILE:
    fh = logging.FileHandler(config.LOG_FILE)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    log.addHandler(fh)
ch = logging.StreamHandler()
ch.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
log.addHandler(ch)


def notify(msg: str):
    try:
        if config.SLACK_WEBHOOK_URL:
            requests.post(config.SLACK_WEBHOOK_URL, json={"text": msg}, timeout=5)
    except Exception as e:
        log.warning(f"Slack notify failed: {e}")
    try:
        if config.SMTP_HOST and config.ALERT_EMAIL_TO:
            m = MIMEText(msg)
            m["Subject"] = f"[{config.SITE_NAME}] Notification"
            m["From"] = config.SMTP_USER or "noreply@localhost"
            m["To"] = config.ALERT_EMAIL_TO
            with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=5) as s:
                s.starttls()
                if config.SMTP_USER and config.SMTP_PASS:
                    s.login(config.SMTP_USER, config.SMTP_PASS)
                s.send_message(m)
    except Exception as e:
        log.warning(f"Email notify failed: {e}")


def get_store():
    """Sheets client is built once and reused; row data is never cached."""
    store = app.config.get("SHEET_STORE")
    if store is None:
        store = open_store()
        app.config["SHEET_STORE"] = store
    return store


def is_safe_url(target):
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ("http", "https") and ref_url.netloc == test_url.netloc


def error(message, status):
    return jsonify({"error": message}), status


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_day(value):
    if not value:
        return None
    return date.fromisoformat(value)


@login_manager.unauthorized_handler
def unauthorized():
    return error("Не авторизован", 401)


# --------------------------- AUTH ---------------------------
@app.post("/api/auth/login")
def login_post():
    data = json_body()
    login = clean_text(data.get("login"))
    password = data.get("password")
    if not isinstance(password, str):
        password = ""
    if not login or not password:
        return error("Логин и пароль обязательны", 400)

    log.info(f"Login attempt for {login}")
    user = get_store().get_user(login)
    if not user or not verify_password(password, user.password_hash):
        log.info(f"Invalid credentials for {login}")
        notify(f"Failed login attempt for {login}")
        return error("Неверный логин или пароль", 401)

    session_login(user)
    warn = needs_password_change(user.password_hash)
    next_url = clean_text(data.get("callbackUrl")) or "/"
    if not is_safe_url(next_url):
        next_url = "/"
    log.info(f"Successful login for {login}, password warning: {warn}")
    return jsonify({"user": user.session_dict(), "showPasswordChangeWarning": warn, "next": next_url})


@app.post("/api/auth/logout")
def logout_post():
    if current_user.is_authenticated:
        log.info(f"Logging out {current_user.login}")
    else:
        log.info("Logout without an active session")
    session_logout()
    return jsonify({"message": "Выход выполнен успешно"})


@app.get("/api/auth/user")
def user_get():
    if not current_user.is_authenticated:
        return jsonify({"user": None})
    return jsonify({"user": current_user.data})


@app.put("/api/auth/user")
@login_required
def user_put():
    data = json_body()
    updates = {}
    for field, key in (("first_name", "firstName"), ("middle_name", "middleName"),
                       ("last_name", "lastName")):
        value = clean_text(data.get(key))
        if value:
            updates[field] = value

    if updates:
        if not get_store().update_user(current_user.login, updates):
            notify(f"Profile update failed for {current_user.login}")
            return error("Не удалось обновить данные пользователя в таблице", 500)
    else:
        log.info(f"No profile changes for {current_user.login}")

    user = update_session_user(updates)
    return jsonify({"user": user})


@app.post("/api/auth/change-password")
@login_required
def change_password():
    data = json_body()
    current, new = data.get("currentPassword"), data.get("newPassword")
    current = current if isinstance(current, str) else ""
    new = new if isinstance(new, str) else ""
    problem = validate_new_password(current, new)
    if problem:
        return error(problem, 400)

    store = get_store()
    user = store.get_user(current_user.login)
    if not user or not user.password_hash:
        log.error(f"No stored password for {current_user.login}")
        return error("Не удалось проверить пользователя", 500)
    if not verify_password(current, user.password_hash):
        log.info(f"Wrong current password for {current_user.login}")
        return error("Текущий пароль неверен", 400)

    if not store.update_user(user.login, {"password_hash": hash_password(new)}):
        notify(f"Password change failed for {user.login}")
        return error("Не удалось обновить пароль в таблице", 500)
    log.info(f"Password changed for {user.login}")
    return jsonify({"message": "Пароль успешно изменен"})


# --------------------------- PRODUCTS ---------------------------
@app.get("/api/products")
@login_required
def products_list():
    option = request.args.get("sort", "name-asc")
    store = get_store()
    products = store.fetch_products()
    popularity = product_popularity(store.fetch_orders()) if option == "popularity-desc" else None
    try:
        products = sort_products(products, option, popularity)
    except ValueError as e:
        return error(str(e), 400)
    return jsonify({"products": [p.to_dict() for p in products]})


@app.post("/api/products")
@login_required
def products_add():
    product, errors = validate_product_form(json_body())
    if errors:
        return jsonify({"error": "Некорректные данные товара", "fields": errors}), 400
    store = get_store()
    if store.find_product_row(product.name, product.volume) is not None:
        return error("Такой товар уже существует", 409)
    if not store.add_product(product):
        notify(f"Adding product {product.name} failed")
        return error("Не удалось добавить товар", 500)
    return jsonify({"product": product.to_dict()}), 201


@app.put("/api/products")
@login_required
def products_update():
    data = json_body()
    original_name = clean_text(data.get("originalName"))
    if not original_name:
        return error("Не указан исходный товар", 400)
    product, errors = validate_product_form(data)
    if errors:
        return jsonify({"error": "Некорректные данные товара", "fields": errors}), 400
    original_volume = clean_text(data.get("originalVolume")) or None
    if not get_store().update_product(original_name, original_volume, product):
        return error("Не удалось обновить товар", 400)
    return jsonify({"product": product.to_dict()})


@app.delete("/api/products")
@login_required
def products_delete():
    data = json_body()
    name = clean_text(data.get("name"))
    if not name:
        return error("Не указано название товара", 400)
    if not get_store().delete_product(name, clean_text(data.get("volume")) or None):
        return error("Не удалось удалить товар", 404)
    return jsonify({"message": "Товар удален"})


@app.post("/api/products/sync")
@login_required
def products_sync():
    result = get_store().sync_default_products()
    body = {
        "success": result.success,
        "message": result.message,
        "addedCount": result.added_count,
        "skippedCount": result.skipped_count,
    }
    if not result.success:
        notify(f"Default product sync failed: {result.message}")
        return jsonify(body), 500
    return jsonify(body)


# --------------------------- SALES HISTORY ---------------------------
@app.get("/api/orders")
@login_required
def orders_list():
    try:
        start = parse_day(request.args.get("from"))
        end = parse_day(request.args.get("to"))
    except ValueError:
        return error("Дата должна быть в формате ГГГГ-ММ-ДД", 400)
    key = request.args.get("sort", DEFAULT_SORT[0])
    direction = request.args.get("direction", DEFAULT_SORT[1])

    orders = filter_orders(get_store().fetch_orders(), start, end)
    try:
        orders = sort_orders(orders, key, direction)
    except ValueError as e:
        return error(str(e), 400)
    summary = summarize(orders)
    return jsonify({
        "orders": [o.to_dict() for o in orders],
        "summary": summary,
        "summaryText": summary_text(summary, start, end, config.CURRENCY),
    })


@app.post("/api/orders")
@login_required
def orders_create():
    data = json_body()
    try:
        order = build_order(data.get("items") or [], data.get("paymentMethod"),
                            employee=current_user.display_name())
    except OrderError as e:
        return error(str(e), 400)
    if not get_store().add_order(order):
        notify(f"Saving order {order.id} failed")
        return error("Не удалось сохранить заказ", 500)
    return jsonify({"order": order.to_dict()}), 201


@app.delete("/api/orders/<order_id>")
@login_required
def orders_delete(order_id):
    if not get_store().delete_order(order_id):
        return error(f"Заказ {order_id} не найден", 404)
    return jsonify({"message": f"Заказ {order_id} удален"})


@app.delete("/api/orders")
@login_required
def orders_clear():
    if not get_store().clear_orders():
        notify(f"Clearing sales history failed (user {current_user.login})")
        return error("Не удалось очистить историю продаж", 500)
    return jsonify({"message": "История продаж очищена"})


# --------------------------- ERRORS ---------------------------
@app.errorhandler(SheetsReadOnly)
def sheets_read_only(e):
    log.error(f"Write refused on {request.path}: {e}")
    return error("Таблица доступна только для чтения", 403)


@app.errorhandler(SheetsError)
def sheets_unavailable(e):
    log.error(f"Spreadsheet error on {request.path}: {e}")
    return error("Сервис таблиц недоступен", 503)


@app.errorhandler(404)
def not_found(e):
    return error("Не найдено", 404)


@app.errorhandler(500)
def server_error(e):
    log.error(f"Unhandled error on {request.path}: {getattr(e, 'original_exception', e)}")
    return error("Внутренняя ошибка сервера", 500)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=True)
