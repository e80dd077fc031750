"""httpx adapter for the remote ledger API.

Provides the two capabilities the core operations take as plain callables:

- ``fetch_page(window, page, page_size)`` -- one page of money records.
- ``mutate(kind, record_id, payload)`` -- update (payload) or delete (None)
  one record.

Authentication is not implemented here. Pass a bearer ``access_token`` or
any ``httpx.Auth`` (for example an OAuth 1.0a signer) and it is applied to
every request. Failures are raised as
:class:`~ledger_query.errors.TransportError`; retrying is left to callers.
"""

from __future__ import annotations

import json
import logging

import httpx

from ledger_query.errors import TransportError
from ledger_query.models import REMOTE_KINDS, DateWindow, Record, record_from_dict

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.zaim.net"
MONEY_PATH = "/v2/home/money"


class LedgerClient:
    """Thin synchronous client over ``httpx.Client``.

    Args:
        base_url: Root URL of the remote API.
        access_token: Bearer token sent in the ``Authorization`` header.
        auth: An ``httpx.Auth`` used instead of (or as well as) the token.
        timeout: Request timeout in seconds. Default: 30.
        transport: Optional ``httpx`` transport, e.g. ``httpx.MockTransport``.
        http_client: A preconfigured ``httpx.Client``. The caller keeps
            ownership and :meth:`close` leaves it open.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        access_token: str | None = None,
        auth: httpx.Auth | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"accept": "application/json"}
        if access_token:
            headers["authorization"] = f"Bearer {access_token}"

        if http_client is not None:
            self._http = http_client
            self._owns_http = False
            self._headers = headers
            self._auth = auth
        else:
            self._http = httpx.Client(
                base_url=self.base_url,
                headers=headers,
                auth=auth,
                timeout=timeout,
                transport=transport,
            )
            self._owns_http = True
            self._headers = {}
            # Already installed on the owned client.
            self._auth = None

    # -- capabilities -------------------------------------------------------

    def fetch_page(self, window: DateWindow, page: int, page_size: int) -> list[Record]:
        """Fetch one page of records dated within *window*.

        Entries that cannot be decoded are skipped with a warning, and a body
        without a ``money`` list yields an empty page.

        Raises:
            TransportError: On timeout, connection failure or HTTP error.
        """
        params = {
            "mapping": 1,
            "start_date": window.start,
            "end_date": window.end,
            "page": page,
            "limit": page_size,
        }
        response = self._request("GET", MONEY_PATH, params=params)

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            logger.warning("Ledger response is not JSON: %s", exc)
            return []

        entries = body.get("money") if isinstance(body, dict) else None
        if not isinstance(entries, list):
            logger.warning("Ledger response has no 'money' list")
            return []

        records: list[Record] = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping non-object money entry: %r", entry)
                continue
            try:
                records.append(record_from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed money entry %r: %s", entry.get("id"), exc)
        return records

    def mutate(self, kind: str, record_id: int, payload: dict | None) -> dict:
        """Update (*payload* given) or delete (*payload* is None) one record.

        An update body always carries ``mapping=1``, as reads do.

        Args:
            kind: ``"outflow"``, ``"inflow"`` or ``"transfer"``.
            record_id: Remote id of the record.
            payload: Fields to write, or None to delete.

        Returns:
            The decoded response body, or an empty dict if it has none.

        Raises:
            TransportError: On an unknown kind or any request failure.
        """
        remote_kind = REMOTE_KINDS.get(kind)
        if remote_kind is None:
            raise TransportError(f"Cannot write record {record_id}: unknown kind {kind!r}")

        path = f"{MONEY_PATH}/{remote_kind}/{record_id}"
        if payload is None:
            response = self._request("DELETE", path)
        else:
            response = self._request("PUT", path, json={"mapping": 1, **payload})

        if not response.content:
            return {}
        try:
            body = response.json()
        except json.JSONDecodeError:
            return {}
        return body if isinstance(body, dict) else {}

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> LedgerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- internals ----------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        url = path if self._owns_http else f"{self.base_url}{path}"
        if self._auth is not None:
            kwargs["auth"] = self._auth
        try:
            response = self._http.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "%s %s returned HTTP %d: %s",
                method,
                path,
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise TransportError(
                f"{method} {path} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        return response
