# coffee_stand/session.py
"""Encrypted cookie sessions and the Flask-Login glue on top of them.

The whole session dict travels in one Fernet token; the server keeps no
session state. The logged-in user is stored as a plain dict (never the
password) and rebuilt on every request by the login manager.
"""
import base64
import hashlib
import json
import logging

from cryptography.fernet import Fernet, InvalidToken
from flask import session
from flask.sessions import SecureCookieSession, SessionInterface
from flask_login import LoginManager, UserMixin, login_user, logout_user

from coffee_stand import config

log = logging.getLogger("coffee_stand.session")

USER_KEY = "user"


def fernet_for(password: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(password.encode()).digest())
    return Fernet(key)


class EncryptedCookieSessionInterface(SessionInterface):
    session_class = SecureCookieSession

    def __init__(self, password: str):
        if len(password) < config.MIN_SESSION_PASSWORD_LENGTH:
            log.error(f"SESSION_PASSWORD is too short ({len(password)} chars); "
                      f"use at least {config.MIN_SESSION_PASSWORD_LENGTH}")
        self.fernet = fernet_for(password)

    def open_session(self, app, request):
        token = request.cookies.get(self.get_cookie_name(app))
        if not token:
            return self.session_class()
        ttl = int(app.permanent_session_lifetime.total_seconds())
        try:
            data = json.loads(self.fernet.decrypt(token.encode(), ttl=ttl))
        except (InvalidToken, ValueError):
            log.info("Discarding expired or undecryptable session cookie")
            return self.session_class()
        return self.session_class(data)

    def save_session(self, app, session, response):
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)
        secure = self.get_cookie_secure(app)
        samesite = self.get_cookie_samesite(app)
        httponly = self.get_cookie_httponly(app)

        if session.accessed:
            response.vary.add("Cookie")

        if not session:
            if session.modified:
                response.delete_cookie(name, domain=domain, path=path, secure=secure,
                                       samesite=samesite, httponly=httponly)
                response.vary.add("Cookie")
            return

        if not self.should_set_cookie(app, session):
            return

        token = self.fernet.encrypt(json.dumps(dict(session)).encode()).decode()
        response.set_cookie(
            name,
            token,
            expires=self.get_expiration_time(app, session),
            httponly=httponly,
            domain=domain,
            path=path,
            secure=secure,
            samesite=samesite,
        )
        response.vary.add("Cookie")


# ---------- Flask-Login ----------
login_manager = LoginManager()


class SessionUser(UserMixin):
    def __init__(self, data: dict):
        self.data = dict(data)
        self.id = str(data["id"])
        self.login = data["login"]

    def display_name(self) -> str:
        parts = [p for p in (self.data.get("first_name"), self.data.get("last_name")) if p]
        return " ".join(parts) or self.login


@login_manager.user_loader
def load_user(user_id):
    data = session.get(USER_KEY)
    if data and str(data.get("id")) == user_id:
        return SessionUser(data)
    return None


def login(user) -> SessionUser:
    """`user` is a models.User; the password hash never reaches the cookie."""
    data = user.session_dict()
    session.permanent = True
    session[USER_KEY] = data
    su = SessionUser(data)
    login_user(su)
    return su


def update_session_user(updates: dict) -> dict:
    data = dict(session.get(USER_KEY) or {})
    data.update(updates)
    session[USER_KEY] = data
    return data


def logout():
    logout_user()
    session.clear()
