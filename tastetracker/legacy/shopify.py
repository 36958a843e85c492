import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from ..errors import MalformedDataError, RemoteApiError, RemoteTransportError

logger = logging.getLogger("tastetracker.shopify")
logger.setLevel(logging.INFO)

METAFIELD_NAMESPACE = "tastetracker"
METAFIELD_KEY = "passport"

GET_PASSPORT_QUERY = """
query GetPassport($id: ID!, $namespace: String!, $key: String!) {
  customer(id: $id) {
    metafield(namespace: $namespace, key: $key) {
      value
    }
  }
}
"""

SAVE_PASSPORT_MUTATION = """
mutation SavePassport($id: ID!, $namespace: String!, $key: String!, $value: String!) {
  customerUpdate(input: {
    id: $id,
    metafields: [{
      namespace: $namespace,
      key: $key,
      type: "json",
      value: $value
    }]
  }) {
    userErrors {
      field
      message
    }
  }
}
"""


@dataclass(frozen=True)
class ShopifyConfig:
    shop_domain: str
    admin_token: str
    api_version: str = "2025-01"
    namespace: str = METAFIELD_NAMESPACE
    key: str = METAFIELD_KEY
    timeout: float = 10.0

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"


def customer_gid(customer_id: Union[str, int]) -> str:
    return f"gid://shopify/Customer/{customer_id}"


def parse_passport_value(value: str) -> dict[str, Any]:
    try:
        passport = json.loads(value)
    except ValueError as exc:
        raise MalformedDataError(f"Passport metafield is not valid JSON: {exc}") from exc
    if not isinstance(passport, dict):
        raise MalformedDataError(f"Passport metafield is a JSON {type(passport).__name__}, expected an object")
    return passport


class ShopifyMetafieldClient:
    """Reads and writes the passport JSON kept in a Shopify customer metafield."""

    def __init__(self, config: ShopifyConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            transport=transport,
            headers={
                "X-Shopify-Access-Token": config.admin_token,
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def graphql(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        try:
            response = self._client.post(
                self.config.endpoint,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.HTTPError as exc:
            logger.error("Shopify request failed: %s", exc)
            raise RemoteTransportError(f"Shopify request failed: {exc}") from exc

        if not response.is_success:
            logger.error("HTTP error from Shopify: status=%s body=%s", response.status_code, response.text[:500])
            raise RemoteTransportError(f"HTTP {response.status_code} from Shopify", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteTransportError(
                "Shopify returned a non-JSON response", status_code=response.status_code
            ) from exc

        errors = payload.get("errors")
        if errors:
            logger.error("GraphQL errors from Shopify: %s", json.dumps(errors))
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message") if isinstance(first, dict) else None
            raise RemoteApiError(message or "Shopify GraphQL error")

        return payload.get("data") or {}

    def fetch_legacy_passport(self, customer_id: Union[str, int]) -> dict[str, Any]:
        data = self.graphql(
            GET_PASSPORT_QUERY,
            {"id": customer_gid(customer_id), "namespace": self.config.namespace, "key": self.config.key},
        )
        customer = data.get("customer") or {}
        metafield = customer.get("metafield") or {}
        value = metafield.get("value")
        if not value:
            return {}

        try:
            return parse_passport_value(value)
        except MalformedDataError as exc:
            logger.error("Ignoring legacy passport for customer %s: %s", customer_id, exc)
            return {}

    def save_legacy_passport(self, customer_id: Union[str, int], passport: dict[str, Any]) -> None:
        data = self.graphql(
            SAVE_PASSPORT_MUTATION,
            {
                "id": customer_gid(customer_id),
                "namespace": self.config.namespace,
                "key": self.config.key,
                "value": json.dumps(passport),
            },
        )
        user_errors = (data.get("customerUpdate") or {}).get("userErrors") or []
        if user_errors:
            logger.error("Metafield save errors for customer %s: %s", customer_id, user_errors)
            raise RemoteApiError(user_errors[0].get("message") or "Metafield save failed")
