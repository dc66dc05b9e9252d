from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

REQUIRED_ENV = (
    "GOOGLE_ADS_DEVELOPER_TOKEN",
    "GOOGLE_ADS_CLIENT_ID",
    "GOOGLE_ADS_CLIENT_SECRET",
    "GOOGLE_ADS_REFRESH_TOKEN",
    "GOOGLE_ADS_CUSTOMER_ID",
)


def clean_customer_id(value: Optional[str]) -> str:
    return (value or "").replace("-", "").strip()


@dataclass(frozen=True)
class Settings:
    """Credentials and server options, resolved once at process start."""

    developer_token: str
    client_id: str
    client_secret: str
    refresh_token: str
    customer_id: str
    login_customer_id: str = ""
    shared_key: str = field(default="", repr=False)
    port: int = 8080

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> "Settings":
        if environ is None:
            if dotenv:
                # an existing environment always wins over .env
                load_dotenv(override=False)
            environ = os.environ

        missing = [k for k in REQUIRED_ENV if not (environ.get(k) or "").strip()]
        if missing:
            raise ConfigError(f"Missing required env: {', '.join(missing)}")

        try:
            port = int(environ.get("PORT", "8080"))
        except ValueError as exc:
            raise ConfigError(f"PORT must be an integer, got {environ.get('PORT')!r}") from exc

        return cls(
            developer_token=environ["GOOGLE_ADS_DEVELOPER_TOKEN"].strip(),
            client_id=environ["GOOGLE_ADS_CLIENT_ID"].strip(),
            client_secret=environ["GOOGLE_ADS_CLIENT_SECRET"].strip(),
            refresh_token=environ["GOOGLE_ADS_REFRESH_TOKEN"].strip(),
            customer_id=clean_customer_id(environ["GOOGLE_ADS_CUSTOMER_ID"]),
            login_customer_id=clean_customer_id(environ.get("GOOGLE_ADS_LOGIN_CUSTOMER_ID")),
            shared_key=(environ.get("MCP_SHARED_KEY") or "").strip(),
            port=port,
        )

    def ads_client_config(self, login_customer_id: Optional[str] = None) -> Dict[str, Any]:
        """Dict accepted by ``GoogleAdsClient.load_from_dict``."""
        cfg: Dict[str, Any] = {
            "developer_token": self.developer_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "use_proto_plus": True,
        }
        final_login = clean_customer_id(login_customer_id) or self.login_customer_id
        if final_login:
            cfg["login_customer_id"] = final_login
        return cfg
