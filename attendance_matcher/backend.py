"""
Backend REST client.

Thin wrapper around the hosted backend's PostgREST interface
(`<url>/rest/v1/<table>`). Transport failures and 5xx responses become
StoreUnavailable; 4xx responses become BackendRequestError.
"""

from typing import Any, Dict, List, Optional

import requests

from .config import Config
from .exceptions import BackendRequestError, StoreUnavailable
from .logging_config import get_logger

logger = get_logger(__name__)


class BackendClient:
    """
    Table-level access to the backend.

    Args:
        config: Service configuration (URL, key, timeout)
        session: Optional requests.Session, mainly for tests
    """

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        self.base_url = f'{config.supabase_url}/rest/v1'
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'apikey': config.supabase_key,
            'Authorization': f'Bearer {config.supabase_key}',
            'Content-Type': 'application/json',
        })

    def select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET rows from a table using PostgREST query params."""
        return self._request('GET', table, params=params)

    def count(self, table: str, params: Optional[Dict[str, str]] = None) -> int:
        """Exact row count via the Content-Range header."""
        response = self._send(
            'HEAD', table,
            params=params or {},
            headers={'Prefer': 'count=exact'},
        )
        content_range = response.headers.get('Content-Range', '')
        total = content_range.rpartition('/')[2]
        if not total.isdigit():
            raise StoreUnavailable(f'Backend returned no row count for {table}')
        return int(total)

    def insert(
        self,
        table: str,
        rows: Any,
        on_conflict: Optional[str] = None,
        resolution: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        POST rows and return the stored representation.

        Args:
            table: Table name
            rows: Row dict or list of row dicts
            on_conflict: Comma-separated unique columns for upserts
            resolution: 'merge-duplicates' or 'ignore-duplicates'
        """
        prefer = ['return=representation']
        if resolution:
            prefer.append(f'resolution={resolution}')
        params = {'on_conflict': on_conflict} if on_conflict else {}
        return self._request(
            'POST', table,
            params=params,
            json=rows,
            headers={'Prefer': ','.join(prefer)},
        )

    def update(
        self,
        table: str,
        filters: Dict[str, str],
        values: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """PATCH rows matching the filters."""
        return self._request(
            'PATCH', table,
            params=filters,
            json=values,
            headers={'Prefer': 'return=representation'},
        )

    def _request(self, method: str, table: str, **kwargs) -> List[Dict[str, Any]]:
        response = self._send(method, table, **kwargs)
        if not response.content:
            return []
        return response.json()

    def _send(self, method: str, table: str, **kwargs) -> requests.Response:
        url = f'{self.base_url}/{table}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error(f'❌ Timeout calling {method} {url}')
            raise StoreUnavailable(f'Timeout calling backend ({table})') from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f'❌ Connection error calling {method} {url}')
            raise StoreUnavailable(f'Cannot reach backend ({table})') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'❌ Error calling {method} {url}: {e}')
            raise StoreUnavailable(f'Backend request failed ({table}): {e}') from e

        if response.status_code >= 500:
            logger.error(f'❌ Backend error {response.status_code} on {method} {table}: {response.text}')
            raise StoreUnavailable(f'Backend error {response.status_code} ({table})')
        if response.status_code >= 400:
            raise BackendRequestError(response.status_code, response.text)

        return response
