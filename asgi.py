"""
asgi.py -- Application assembly for the listauth example app.

The one place that decides which lists exist and how auth is attached to
them. api/main.py knows nothing about a "User" list; auth/ only knows the
AuthConfig it is given.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from auth.factory import create_auth
from auth.models import AuthConfig, InitFirstItemConfig
from core.fields import password, text
from core.models import AdminConfig, AppConfig, ListConfig

auth = create_auth(
    AuthConfig(
        list_key="User",
        identity_field="email",
        secret_field="password",
        init_first_item=InitFirstItemConfig(fields=["name", "email", "password"]),
    )
)


def build_app_config() -> AppConfig:
    return auth.with_auth(
        AppConfig(
            lists={
                "User": ListConfig(
                    fields={
                        "name": text(is_required=True),
                        "email": text(is_required=True, is_unique=True),
                        "password": password(),
                    },
                    label="User",
                    plural="Users",
                )
            },
            admin=AdminConfig(),
        )
    )


app_config = build_app_config()
app = create_app(app_config)
