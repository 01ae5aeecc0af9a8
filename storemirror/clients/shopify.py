from typing import Any, Iterator, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from ..utils.logger import debug, warn

CONNECT_TIMEOUT = 5


class ShopifyError(Exception):
    """Any failure talking to a store's Admin API."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientError(ShopifyError):
    """Timeouts, throttling and 5xx: safe for the caller to try again later."""

    def __init__(self, message: str, status: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message, status)
        self.retry_after = retry_after


class AuthError(ShopifyError):
    pass


class NotFound(ShopifyError):
    pass


class UserErrors(ShopifyError):
    """A write was rejected (REST 422 or a GraphQL userErrors array)."""

    def __init__(self, message: str, errors: Any = None, status: Optional[int] = None):
        super().__init__(message, status)
        self.errors = errors or []


class SchemaError(ShopifyError):
    """A response did not have the shape we asked for."""


# One immediate retry, reads only. Writes surface TransientError to the caller.
_read_retry = retry(
    reraise=True,
    stop=stop_after_attempt(2),
    retry=retry_if_exception_type(TransientError),
)


def _error_text(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return (r.text or "")[:500]
    if isinstance(body, dict) and "errors" in body:
        return str(body["errors"])[:500]
    return str(body)[:500]


class StoreClient:
    """REST + GraphQL access to one store's Admin API."""

    def __init__(
        self,
        name: str,
        domain: str,
        token: str,
        api_version: str = "2025-04",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.name = name
        self.domain = domain
        self.api_version = api_version
        self.timeout = (CONNECT_TIMEOUT, timeout)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": token,
        })

    @property
    def admin_base(self) -> str:
        return f"https://{self.domain}/admin/api/{self.api_version}"

    def url(self, path: str) -> str:
        if path.startswith("https://"):
            return path
        return f"{self.admin_base}/{path.lstrip('/')}"

    # =========================================================
    # Transport
    # =========================================================

    def _send(self, method: str, path: str, params: Optional[dict] = None, payload: Any = None) -> requests.Response:
        url = self.url(path)
        try:
            r = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientError(f"{method} {path} on {self.name} timed out: {e}")
        except requests.ConnectionError as e:
            raise TransientError(f"{method} {path} on {self.name} connection failed: {e}")

        if r.status_code in (200, 201, 202):
            return r
        text = _error_text(r)
        msg = f"{method} {path} on {self.name} failed {r.status_code}: {text}"
        if r.status_code in (401, 403):
            raise AuthError(msg, r.status_code)
        if r.status_code == 404:
            raise NotFound(msg, r.status_code)
        if r.status_code == 422:
            raise UserErrors(msg, errors=text, status=r.status_code)
        if r.status_code == 429 or r.status_code >= 500:
            retry_after = r.headers.get("Retry-After")
            raise TransientError(msg, r.status_code, float(retry_after) if retry_after else None)
        raise ShopifyError(msg, r.status_code)

    @staticmethod
    def _json(r: requests.Response) -> dict:
        if not r.content:
            return {}
        try:
            body = r.json()
        except ValueError:
            raise SchemaError(f"non-JSON response from {r.url}")
        if not isinstance(body, dict):
            raise SchemaError(f"expected a JSON object from {r.url}")
        return body

    # =========================================================
    # REST
    # =========================================================

    @_read_retry
    def get(self, path: str, params: Optional[dict] = None) -> dict:
        return self._json(self._send("GET", path, params=params))

    @_read_retry
    def _get_page(self, url: str, params: Optional[dict]) -> requests.Response:
        return self._send("GET", url, params=params)

    def get_pages(self, path: str, key: str, params: Optional[dict] = None, limit: int = 250) -> Iterator[dict]:
        """Yield every item under `key`, following Link rel="next" cursors."""
        url: Optional[str] = path
        query: Optional[dict] = dict(params or {}, limit=limit)
        while url:
            r = self._get_page(url, query)
            items = self._json(r).get(key)
            if items is None:
                raise SchemaError(f"GET {path} on {self.name}: missing '{key}'")
            yield from items
            url = (r.links.get("next") or {}).get("url")
            query = None  # the next-page URL carries page_info + limit

    def post(self, path: str, payload: dict) -> dict:
        return self._json(self._send("POST", path, payload=payload))

    def put(self, path: str, payload: dict) -> dict:
        return self._json(self._send("PUT", path, payload=payload))

    # =========================================================
    # GraphQL
    # =========================================================

    def _graphql(self, document: str, variables: Optional[dict]) -> dict:
        r = self._send("POST", "graphql.json", payload={"query": document, "variables": variables or {}})
        body = self._json(r)
        errors = body.get("errors")
        if errors:
            messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors] \
                if isinstance(errors, list) else [str(errors)]
            if any("throttl" in m.lower() for m in messages):
                raise TransientError(f"GraphQL throttled on {self.name}: {messages}")
            raise ShopifyError(f"GraphQL errors on {self.name}: {messages}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise SchemaError(f"GraphQL response on {self.name} missing data")
        cost = (body.get("extensions") or {}).get("cost") or {}
        available = (cost.get("throttleStatus") or {}).get("currentlyAvailable")
        if available is not None and available < 100:
            debug(f"[{self.name}] low GraphQL budget", available=available)
        return data

    @_read_retry
    def query(self, document: str, variables: Optional[dict] = None) -> dict:
        return self._graphql(document, variables)

    def mutate(self, document: str, variables: dict, field: str) -> dict:
        """Run a mutation and return data[field]; raise UserErrors if it reports any."""
        data = self._graphql(document, variables)
        block = data.get(field)
        if not isinstance(block, dict):
            raise SchemaError(f"mutation {field} on {self.name}: missing payload")
        errs = block.get("userErrors") or []
        if errs:
            msg = "; ".join(f"{e.get('message')} (field={e.get('field')})" for e in errs if isinstance(e, dict))
            warn(f"[{self.name}] {field} userErrors", errors=msg)
            raise UserErrors(f"{field} on {self.name}: {msg}", errors=errs)
        return block
