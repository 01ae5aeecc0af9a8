import os
from dataclasses import dataclass
from typing import Optional


class ConfigurationError(RuntimeError):
    """Missing or invalid settings."""


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.strip()
    return val or default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def normalize_domain(domain: Optional[str]) -> Optional[str]:
    if not domain:
        return domain
    domain = domain.strip().lower()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    return domain.rstrip("/")


@dataclass(frozen=True)
class StoreConfig:
    name: str
    domain: Optional[str]
    token: Optional[str]
    secret: Optional[str]
    env_prefix: str

    def missing(self) -> list[str]:
        out = []
        if not self.domain:
            out.append(f"{self.env_prefix}_STORE_DOMAIN")
        if not self.token:
            out.append(f"{self.env_prefix}_ACCESS_TOKEN")
        return out


@dataclass(frozen=True)
class Settings:
    source: StoreConfig
    destination: StoreConfig
    api_version: str = "2025-04"
    base_url: Optional[str] = None
    location_name: str = "Online Warehouse"
    mirror_customer_id: Optional[str] = None
    mirror_order_tag: str = "MIRROR ORDER"
    annotation_namespace: str = "custom"
    annotation_enabled_key: str = "mirror_enabled"
    annotation_price_key: str = "mirror_price"
    feed_page_size: int = 50
    destination_page_size: int = 250
    http_timeout: float = 20.0
    webhook_deadline: float = 4.5
    webhook_workers: int = 8
    admin_token: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        source = StoreConfig(
            name="source",
            domain=normalize_domain(_env("SOURCE_STORE_DOMAIN")),
            token=_env("SOURCE_ACCESS_TOKEN"),
            secret=_env("SOURCE_WEBHOOK_SECRET"),
            env_prefix="SOURCE",
        )
        destination = StoreConfig(
            name="destination",
            domain=normalize_domain(_env("DESTINATION_STORE_DOMAIN")),
            token=_env("DESTINATION_ACCESS_TOKEN"),
            secret=_env("DESTINATION_WEBHOOK_SECRET"),
            env_prefix="DESTINATION",
        )
        base_url = _env("BASE_URL")
        return cls(
            source=source,
            destination=destination,
            api_version=_env("API_VERSION", "2025-04"),
            base_url=base_url.rstrip("/") if base_url else None,
            location_name=_env("DESTINATION_LOCATION_NAME", "Online Warehouse"),
            mirror_customer_id=_env("MIRROR_CUSTOMER_ID"),
            mirror_order_tag=_env("MIRROR_ORDER_TAG", "MIRROR ORDER"),
            annotation_namespace=_env("ANNOTATION_NAMESPACE", "custom"),
            annotation_enabled_key=_env("ANNOTATION_ENABLED_KEY", "mirror_enabled"),
            annotation_price_key=_env("ANNOTATION_PRICE_KEY", "mirror_price"),
            feed_page_size=min(max(_env_int("FEED_PAGE_SIZE", 50), 1), 250),
            destination_page_size=min(max(_env_int("DESTINATION_PAGE_SIZE", 250), 1), 250),
            http_timeout=_env_float("HTTP_TIMEOUT_SEC", 20.0),
            webhook_deadline=_env_float("WEBHOOK_DEADLINE_SEC", 4.5),
            webhook_workers=max(_env_int("WEBHOOK_WORKERS", 8), 1),
            admin_token=_env("ADMIN_TOKEN"),
            log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError listing every missing setting among `names`.

        Accepted names: "source", "destination" (domain + token), "source_secret",
        "destination_secret", "mirror_customer_id", "base_url", "admin_token".
        """
        missing: list[str] = []
        for name in names:
            if name == "source":
                missing += self.source.missing()
            elif name == "destination":
                missing += self.destination.missing()
            elif name == "source_secret" and not self.source.secret:
                missing.append("SOURCE_WEBHOOK_SECRET")
            elif name == "destination_secret" and not self.destination.secret:
                missing.append("DESTINATION_WEBHOOK_SECRET")
            elif name == "mirror_customer_id" and not self.mirror_customer_id:
                missing.append("MIRROR_CUSTOMER_ID")
            elif name == "base_url" and not self.base_url:
                missing.append("BASE_URL")
            elif name == "admin_token" and not self.admin_token:
                missing.append("ADMIN_TOKEN")
        if missing:
            raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")
