from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from httpx_retries import RetryTransport, Retry
from aiolimiter import AsyncLimiter


logger = logging.getLogger(__name__)


class AmoAPIError(Exception):
  """Raised for failed amoCRM calls and for records that could not be read or written."""

  def __init__(
    self,
    message: str,
    status_code: Optional[int] = None,
    body: Optional[str] = None,
  ):
    super().__init__(message)
    self.message = message
    self.status_code = status_code
    self.body = body


class RequestExecutor(Protocol):
  async def request(
    self,
    path: str,
    method: str,
    params: Mapping[str, Any],
    subdomain: Optional[str] = None,
  ) -> Optional[Dict[str, Any]]: ...


class AmoClient:
  """
  Minimal async client for amoCRM REST API v2.

  Features:
  - GET  /api/v2/{entity}?id=...        (read, params go to the query string)
  - POST /api/v2/{entity} {"add"|"update": [...]}   (write, JSON body)

  Notes:
  - One client serves several accounts; the target is picked per call by
    subdomain and authorized with that subdomain's OAuth access token.
  - An empty answer (204 No Content or an empty body) is returned as None.
  - Provides basic retry/backoff for 429/5xx.
  """

  DOMAIN = "amocrm.ru"
  GET = "GET"
  POST = "POST"

  _access_tokens: Dict[str, str]
  _default_subdomain: Optional[str]
  _domain: str
  _timeout: httpx.Timeout
  _rate_limit: AsyncLimiter
  _client: Optional[httpx.AsyncClient]
  _retry: Retry
  _transport: RetryTransport

  def __init__(
    self,
    access_tokens: Mapping[str, str],
    default_subdomain: Optional[str] = None,
    domain: str = DOMAIN,
    timeout_seconds: float = 30.0,
    rate_limit_per_window: int = 7,
    rate_limit_window_seconds: int = 1,
    max_retries: int = 3,
    backoff_base_seconds: float = 0.5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
  ) -> None:
    self._access_tokens = dict(access_tokens)
    if default_subdomain is None and len(self._access_tokens) == 1:
      default_subdomain = next(iter(self._access_tokens))
    self._default_subdomain = default_subdomain
    self._domain = domain.strip(".")
    self._timeout = httpx.Timeout(timeout_seconds)
    self._rate_limit = AsyncLimiter(rate_limit_per_window, rate_limit_window_seconds)
    self._client = None
    self._retry = Retry(
      total=max_retries,
      backoff_factor=backoff_base_seconds,
      backoff_jitter=0.1,
      status_forcelist=[429, 500, 502, 503, 504],
      # writes are not idempotent: a 5xx on "add" may already be committed
      allowed_methods=["GET"],
    )
    self._transport = RetryTransport(transport=transport, retry=self._retry)

  async def __aenter__(self) -> "AmoClient":
    self._ensure_client()
    return self

  async def __aexit__(self, exc_type, exc, tb) -> None:
    await self.aclose()

  async def aclose(self) -> None:
    if self._client is not None:
      await self._client.aclose()
      self._client = None

  def _ensure_client(self) -> httpx.AsyncClient:
    if self._client is None:
      self._client = httpx.AsyncClient(
        headers={"Content-Type": "application/json"},
        timeout=self._timeout,
        transport=self._transport,
      )
    return self._client

  def base_url(self, subdomain: Optional[str] = None) -> str:
    subdomain = subdomain or self._default_subdomain
    if not subdomain:
      raise AmoAPIError("No subdomain given and no default subdomain configured")
    return f"https://{subdomain}.{self._domain}"

  def _auth_headers(self, subdomain: Optional[str]) -> Dict[str, str]:
    subdomain = subdomain or self._default_subdomain
    token = self._access_tokens.get(subdomain) if subdomain else None
    if not token:
      raise AmoAPIError(f"No access token configured for subdomain {subdomain!r}")
    return {"Authorization": f"Bearer {token}"}

  async def _request_with_rate_limit(
    self, method: str, url: str, **kwargs
  ) -> httpx.Response:
    """
    Send an HTTP request under the shared AsyncLimiter.

    Notes:
    - Rate limiting is enforced via AsyncLimiter to stay under the account's request quota.
    - Retries and backoff for 429/5xx are handled by the configured RetryTransport.
    """
    client = self._ensure_client()
    async with self._rate_limit:
      return await client.request(method, url, **kwargs)

  async def request(
    self,
    path: str,
    method: str,
    params: Mapping[str, Any],
    subdomain: Optional[str] = None,
  ) -> Optional[Dict[str, Any]]:
    """
    Call an API v2 endpoint of the given account.

    Args:
        path: Endpoint path, e.g. "/api/v2/leads".
        method: "GET" (params become the query string) or "POST" (JSON body).
        params: Query parameters or write payload.
        subdomain: Account subdomain; the client default when omitted.

    Returns:
        Decoded JSON object, or None when the server answered with no content.
    """
    method = method.upper()
    url = self.base_url(subdomain) + path
    headers = self._auth_headers(subdomain)

    if method == self.GET:
      kwargs: Dict[str, Any] = {"params": dict(params)}
    elif method == self.POST:
      kwargs = {"json": dict(params)}
    else:
      raise AmoAPIError(f"Unsupported method {method!r} for {path}")

    logger.debug("%s %s params=%s", method, url, params)
    resp = await self._request_with_rate_limit(method, url, headers=headers, **kwargs)
    if resp.is_error:
      raise AmoAPIError(
        f"amoCRM API error ({method} {path}): {resp.status_code}",
        resp.status_code,
        resp.text,
      )

    if resp.status_code == 204 or not resp.content.strip():
      logger.debug("Empty response for %s %s", method, url)
      return None

    try:
      data = resp.json()
    except ValueError:
      raise AmoAPIError(
        f"Invalid JSON in response ({method} {path})", resp.status_code, resp.text
      )

    if not isinstance(data, dict):
      raise AmoAPIError(
        f"Unexpected response type ({method} {path}): {type(data).__name__}",
        resp.status_code,
        resp.text,
      )
    return data
