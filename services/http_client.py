"""
Midtrans HTTP client.

Every outbound call to the gateway goes through HttpClient, which
attaches credentials and the timeout, and turns every failure into a
GatewayError carried by a GatewayResult. Calls are never retried here.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from config import MidtransConfig
from models.errors import GatewayError
from models.result import GatewayResult

logger = logging.getLogger(__name__)

CLIENT_VERSION = '1.0.0'
USER_AGENT = f'midtrans-gateway-python/{CLIENT_VERSION}'

DEFAULT_ERROR_MESSAGE = 'Midtrans API Error'
NETWORK_ERROR_MESSAGE = 'Network error: Unable to reach Midtrans API'


def extract_error_message(body: Any) -> str:
    """
    Pick the most specific message from a gateway error body.

    Priority: joined error_messages, status_message, message, then a
    generic fallback.
    """
    if isinstance(body, dict):
        error_messages = body.get('error_messages')
        if isinstance(error_messages, list) and error_messages:
            return ', '.join(str(message) for message in error_messages)
        if body.get('status_message'):
            return str(body['status_message'])
        if body.get('message'):
            return str(body['message'])
    return DEFAULT_ERROR_MESSAGE


def _decode_body(raw: bytes) -> Any:
    text = raw.decode('utf-8', errors='replace')
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return text


def _clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Drop None values and stringify the rest for the query string."""
    query = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = 'true' if value else 'false'
        else:
            query[key] = str(value)
    return query


class HttpClient:
    """
    Single funnel for requests to the Midtrans REST APIs.

    Features:
    - Basic auth with the server key (or client key when asked)
    - Per-call timeout from config
    - Error normalization into GatewayError
    - Request/response logging outside production only
    """

    def __init__(
        self,
        config: MidtransConfig,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize the client.

        Args:
            config: Midtrans configuration
            session: Optional externally managed aiohttp session
        """
        self.config = config
        self.timeout = config.timeout
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True

    async def stop(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'HttpClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def build_headers(self, auth_type: str = 'server') -> Dict[str, str]:
        """
        Headers sent with every request.

        Args:
            auth_type: 'server' for the server key, 'client' for the client key
        """
        if auth_type == 'server':
            credential = self.config.get_server_auth_header()
        elif auth_type == 'client':
            credential = self.config.get_client_auth_header()
        else:
            raise ValueError(f"Unknown auth type: {auth_type}")

        return {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
            'Authorization': f'Basic {credential}',
            'User-Agent': USER_AGENT
        }

    async def request(
        self,
        method: str,
        base_url: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        auth_type: str = 'server'
    ) -> GatewayResult:
        """
        Perform one round trip.

        Args:
            method: HTTP method
            base_url: Capability base URL from config.base_urls
            path: Endpoint path, starting with '/'
            params: Query parameters (None values are dropped)
            body: JSON-serializable request body
            auth_type: 'server' or 'client'

        Returns:
            GatewayResult with the decoded body, or the GatewayError
        """
        url = f"{base_url}{path}"

        try:
            headers = self.build_headers(auth_type)
            data = json.dumps(body) if body is not None else None
            query = _clean_params(params)
        except (TypeError, ValueError) as e:
            return self._failure(GatewayError(f"Request error: {e}", 0), method, url)

        if self._session is None or self._session.closed:
            await self.start()

        try:
            async with self._session.request(
                method,
                url,
                params=query,
                data=data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                status = response.status
                raw = await response.read()
        except aiohttp.InvalidURL as e:
            return self._failure(GatewayError(f"Request error: invalid URL {e}", 0), method, url)
        except asyncio.TimeoutError:
            return self._failure(GatewayError(NETWORK_ERROR_MESSAGE, 0), method, url, "timeout")
        except aiohttp.ClientError as e:
            return self._failure(GatewayError(NETWORK_ERROR_MESSAGE, 0), method, url, str(e))

        decoded = _decode_body(raw)

        if 200 <= status < 300:
            if not self.config.is_production():
                logger.info(f"Midtrans API response: {method} {url} status={status} data={decoded}")
            return GatewayResult.success(decoded)

        error = GatewayError(extract_error_message(decoded), status, decoded)
        if not self.config.is_production():
            logger.error(f"Midtrans API error: {method} {url} status={status} data={decoded}")
        return GatewayResult.failure(error)

    def _failure(
        self,
        error: GatewayError,
        method: str,
        url: str,
        detail: Optional[str] = None
    ) -> GatewayResult:
        if not self.config.is_production():
            suffix = f" ({detail})" if detail else ""
            logger.error(f"Midtrans request failed: {method} {url}: {error.message}{suffix}")
        return GatewayResult.failure(error)

    async def get(
        self,
        base_url: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        auth_type: str = 'server'
    ) -> GatewayResult:
        return await self.request('GET', base_url, path, params=params, auth_type=auth_type)

    async def post(
        self,
        base_url: str,
        path: str,
        body: Any = None,
        auth_type: str = 'server'
    ) -> GatewayResult:
        return await self.request('POST', base_url, path, body={} if body is None else body,
                                  auth_type=auth_type)

    async def put(
        self,
        base_url: str,
        path: str,
        body: Any = None,
        auth_type: str = 'server'
    ) -> GatewayResult:
        return await self.request('PUT', base_url, path, body={} if body is None else body,
                                  auth_type=auth_type)

    async def patch(
        self,
        base_url: str,
        path: str,
        body: Any = None,
        auth_type: str = 'server'
    ) -> GatewayResult:
        return await self.request('PATCH', base_url, path, body={} if body is None else body,
                                  auth_type=auth_type)

    async def delete(
        self,
        base_url: str,
        path: str,
        auth_type: str = 'server'
    ) -> GatewayResult:
        return await self.request('DELETE', base_url, path, auth_type=auth_type)
