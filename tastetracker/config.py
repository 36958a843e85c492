import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
DEFAULT_DATABASE_URL = f"sqlite:///{BASE_DIR / 'tastetracker.db'}"


def load_environment() -> None:
    if ENV_PATH.exists():
        load_dotenv(dotenv_path=ENV_PATH, override=False)
        return

    discovered = find_dotenv(usecwd=True)
    if discovered:
        load_dotenv(dotenv_path=discovered, override=False)


@dataclass(frozen=True)
class Settings:
    shop_domain: str
    admin_token: str
    api_version: str = "2025-01"
    database_url: str = DEFAULT_DATABASE_URL
    port: int = 3000
    storefront_domain: str = "alfiecoffee.co.uk"
    storefront_platform_domain: str = "alfiecoffee.myshopify.com"
    remote_timeout: float = 10.0

    @property
    def allowed_origins(self) -> tuple[str, ...]:
        return tuple(
            f"https://{domain}"
            for domain in (self.storefront_domain, self.storefront_platform_domain)
            if domain
        )


def _env(name: str) -> str:
    raw = os.getenv(name, "").strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in {"'", '"'}:
        raw = raw[1:-1].strip()
    return raw


def _parse_number(name: str, raw: str, cast):
    try:
        return cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid {name}: {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_environment()

    shop_domain = _env("SHOPIFY_SHOP_DOMAIN")
    admin_token = _env("SHOPIFY_ADMIN_TOKEN")

    if not shop_domain:
        raise RuntimeError("Missing SHOPIFY_SHOP_DOMAIN. Check the environment or .env file.")

    if not admin_token:
        raise RuntimeError("Missing SHOPIFY_ADMIN_TOKEN. Check the environment or .env file.")

    # Accept a pasted admin URL as well as a bare domain.
    shop_domain = shop_domain.removeprefix("https://").removeprefix("http://").rstrip("/")

    port_raw = _env("PORT")
    timeout_raw = _env("REMOTE_TIMEOUT_SECONDS")

    return Settings(
        shop_domain=shop_domain,
        admin_token=admin_token,
        api_version=_env("SHOPIFY_API_VERSION") or "2025-01",
        database_url=_env("DATABASE_URL") or DEFAULT_DATABASE_URL,
        port=_parse_number("PORT", port_raw, int) if port_raw else 3000,
        storefront_domain=_env("STOREFRONT_DOMAIN") or "alfiecoffee.co.uk",
        storefront_platform_domain=_env("STOREFRONT_PLATFORM_DOMAIN") or "alfiecoffee.myshopify.com",
        remote_timeout=(
            _parse_number("REMOTE_TIMEOUT_SECONDS", timeout_raw, float) if timeout_raw else 10.0
        ),
    )
