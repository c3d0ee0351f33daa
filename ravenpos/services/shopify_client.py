"""Shopify Admin API client for inventory pushes."""
import requests
from typing import Any, Dict, Optional
from flask import current_app


class ShopifyClient:
    """Pushes inventory level changes to a single Shopify location."""

    API_URL = "https://{store_name}.myshopify.com/admin/api/{api_version}"

    def __init__(
        self,
        store_name: str,
        access_token: str,
        location_id: str,
        api_version: str = '2024-01',
        timeout: int = 10,
        http=None
    ):
        """
        Initialize Shopify client.

        Args:
            store_name: Shop subdomain (the part before .myshopify.com)
            access_token: Admin API access token
            location_id: Location whose stock RavenPOS mirrors
            api_version: Admin API version
            timeout: Request timeout in seconds
            http: requests-compatible session (defaults to a new requests.Session)
        """
        if not store_name or not access_token or not location_id:
            raise ValueError("store_name, access_token and location_id are required")

        self.base_url = self.API_URL.format(store_name=store_name, api_version=api_version)
        self.location_id = location_id
        self.timeout = timeout
        self.http = http or requests.Session()
        self.headers = {
            'X-Shopify-Access-Token': access_token,
            'Content-Type': 'application/json'
        }

    @classmethod
    def from_config(cls, config) -> Optional['ShopifyClient']:
        """Build a client from app config, or None when sync is not configured."""
        store_name = config.get('SHOPIFY_STORE_NAME')
        access_token = config.get('SHOPIFY_ACCESS_TOKEN')
        location_id = config.get('SHOPIFY_LOCATION_ID')
        if not (store_name and access_token and location_id):
            return None
        return cls(
            store_name=store_name,
            access_token=access_token,
            location_id=location_id,
            api_version=config.get('SHOPIFY_API_VERSION', '2024-01'),
            timeout=config.get('SHOPIFY_TIMEOUT', 10),
        )

    def adjust_inventory(self, inventory_item_id: str, adjustment: int) -> Dict[str, Any]:
        """
        Adjust available stock by a relative amount (negative to decrease).

        Raises:
            requests.HTTPError: If Shopify rejects the adjustment
        """
        payload = {
            'location_id': self.location_id,
            'inventory_item_id': inventory_item_id,
            'available_adjustment': adjustment,
        }
        return self._post('/inventory_levels/adjust.json', payload)

    def set_inventory_level(self, inventory_item_id: str, available: int) -> Dict[str, Any]:
        """
        Set available stock to an absolute value.

        Raises:
            requests.HTTPError: If Shopify rejects the update
        """
        payload = {
            'location_id': self.location_id,
            'inventory_item_id': inventory_item_id,
            'available': available,
        }
        return self._post('/inventory_levels/set.json', payload)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        current_app.logger.info(f"[SHOPIFY] POST {path} item={payload['inventory_item_id']}")

        try:
            response = self.http.post(url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            current_app.logger.error(f"[SHOPIFY] Error on {path}: {e.response.status_code} {e.response.text}")
            raise
        except Exception as e:
            current_app.logger.error(f"[SHOPIFY] Unexpected error: {str(e)}")
            raise


def get_shopify_client() -> Optional[ShopifyClient]:
    """Shopify client of the current Flask application (None if disabled)."""
    return current_app.extensions.get('shopify')
