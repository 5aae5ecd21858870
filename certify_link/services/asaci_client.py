"""
ASACI client: HTTP access to the certificate issuance provider.

A thin synchronous wrapper around httpx.Client. Every method maps to
one ASACI endpoint and returns the decoded JSON body (or raw bytes
for downloads). Failures are normalized to ExternalServiceError:

    401/403           -> ASACI_AUTHENTICATION_ERROR
    other 4xx/5xx     -> ASACI_API_ERROR (upstream status and body in details)
    transport/timeout -> ASACI_CONNECTION_ERROR

The bearer token obtained from generate_token() is kept on the
instance and sent with every later request. With ASACI_EMAIL and
ASACI_PASSWORD set, the first authenticated call obtains it. The API
shares one client per process (get_shared_asaci_client) so the token
outlives a single request.
"""

import logging
from functools import lru_cache
from typing import Any

import httpx

from certify_link.config import get_settings
from certify_link.exceptions import ErrorCode, ExternalServiceError, InvalidInputError

logger = logging.getLogger(__name__)

ASACI_SERVICE_NAME = "asaci"
MAX_ERROR_BODY_LENGTH = 2000

ORDER_ACTIONS = frozenset({
    "approve",
    "reject",
    "cancel",
    "suspend",
    "submit-for-confirmation",
    "confirm-delivery",
})
TRANSACTION_ACTIONS = frozenset({"approve", "reject", "cancel"})


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:MAX_ERROR_BODY_LENGTH]


def extract_reference(response: Any) -> str | None:
    """Find the production reference in an ASACI response body."""
    if not isinstance(response, dict):
        return None
    if response.get("reference"):
        return str(response["reference"])
    data = response.get("data")
    if isinstance(data, dict) and data.get("reference"):
        return str(data["reference"])
    if isinstance(data, list) and data and isinstance(data[0], dict):
        reference = data[0].get("reference")
        return str(reference) if reference else None
    return None


def extract_download_url(response: Any) -> str | None:
    """Find a certificate download link in an ASACI response body."""
    if not isinstance(response, dict):
        return None
    candidates = [response]
    if isinstance(response.get("data"), dict):
        candidates.append(response["data"])
    for body in candidates:
        for key in ("download_link", "download_url", "certificate_url", "url"):
            if body.get(key):
                return str(body[key])
    return None


class AsaciClient:

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
        token: str | None = None,
        email: str | None = None,
        password: str | None = None,
        client_name: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.email = email
        self.password = password
        self.client_name = client_name

        headers = {"Accept": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, transport: httpx.BaseTransport | None = None) -> "AsaciClient":
        settings = get_settings()
        return cls(
            base_url=settings.ASACI_BASE_URL,
            timeout=settings.ASACI_TIMEOUT,
            api_key=settings.ASACI_API_KEY or None,
            email=settings.ASACI_EMAIL or None,
            password=settings.ASACI_PASSWORD or None,
            client_name=settings.ASACI_CLIENT_NAME,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "AsaciClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url) and bool(
            self.token or self._http.headers.get("X-API-Key")
            or (self.email and self.password)
        )

    def production_download_url(self, reference: str) -> str:
        return f"{self.base_url}/productions/{reference}/download"

    # --- Transport ---

    def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        retry_on_expiry: bool = True,
    ) -> Any:
        headers = {}
        if authenticated:
            self.ensure_token()
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self._http.request(
                method, path, json=json, params=params, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if (
                status == 401 and authenticated and retry_on_expiry
                and self.token and self.email and self.password
            ):
                # Stored token expired; log in again once
                logger.info("ASACI rejected the stored token, renewing it")
                self.token = None
                return self._request(
                    method, path, json=json, params=params, retry_on_expiry=False
                )
            logger.warning("ASACI %s %s returned %d", method, path, status)
            code = (
                ErrorCode.ASACI_AUTHENTICATION_ERROR
                if status in (401, 403)
                else ErrorCode.ASACI_API_ERROR
            )
            raise ExternalServiceError(
                ASACI_SERVICE_NAME,
                f"ASACI request failed with status {status}",
                code=code,
                details={
                    "status_code": status,
                    "endpoint": path,
                    "body": _error_body(e.response),
                },
            )
        except httpx.TimeoutException as e:
            logger.error("ASACI %s %s timed out: %s", method, path, e)
            raise ExternalServiceError(
                ASACI_SERVICE_NAME,
                "ASACI request timed out",
                code=ErrorCode.ASACI_CONNECTION_ERROR,
                details={"endpoint": path, "timeout": True},
            )
        except httpx.RequestError as e:
            logger.error("ASACI %s %s failed: %s", method, path, e)
            raise ExternalServiceError(
                ASACI_SERVICE_NAME,
                "Could not reach ASACI",
                code=ErrorCode.ASACI_CONNECTION_ERROR,
                details={"endpoint": path, "error": e.__class__.__name__},
            )

        if not response.content:
            return {}
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.content

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, json: Any = None) -> Any:
        return self._request("POST", path, json=json if json is not None else {})

    def _put(self, path: str, json: Any) -> Any:
        return self._request("PUT", path, json=json)

    def _download(self, path: str) -> bytes:
        content = self._request("GET", path)
        if isinstance(content, bytes):
            return content
        raise ExternalServiceError(
            ASACI_SERVICE_NAME,
            "ASACI returned JSON where a file was expected",
            code=ErrorCode.ASACI_API_ERROR,
            details={"endpoint": path},
        )

    # --- Authentication ---

    def generate_token(
        self, email: str, password: str, client_name: str | None = None
    ) -> dict[str, Any]:
        """Obtain a bearer token and keep it for later calls."""
        response = self._request(
            "POST",
            "/auth/tokens",
            json={
                "email": email,
                "password": password,
                "client_name": client_name or self.client_name,
            },
            authenticated=False,
        )
        token = None
        if isinstance(response, dict):
            token = response.get("token") or response.get("access_token")
            data = response.get("data")
            if not token and isinstance(data, dict):
                token = data.get("token") or data.get("access_token")
        if token:
            self.token = token
            logger.info("Obtained ASACI token for %s", email)
        return response

    def ensure_token(self) -> None:
        if self.token or not (self.email and self.password):
            return
        self.generate_token(self.email, self.password, self.client_name)

    def validate_otp(self, otp: str) -> dict[str, Any]:
        return self._post("/auth/otp/validate", {"otp": otp})

    def resend_otp(self) -> dict[str, Any]:
        return self._post("/auth/otp/resend")

    def forgot_password(self, email: str) -> dict[str, Any]:
        return self._request(
            "POST", "/auth/forgot-password", json={"email": email},
            authenticated=False,
        )

    def reset_password(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST", "/auth/reset-password", json=payload, authenticated=False
        )

    def send_welcome(self, user_id: str) -> dict[str, Any]:
        return self._post("/auth/welcome/send", {"user_id": user_id})

    def set_initial_password(
        self, user_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return self._post(f"/auth/welcome/{user_id}/set-password", payload)

    def get_current_user(self) -> dict[str, Any]:
        return self._get("/auth/user")

    def list_tokens(self) -> dict[str, Any]:
        return self._get("/auth/tokens")

    def revoke_tokens(self, token_ids: list[str] | None = None) -> dict[str, Any]:
        return self._post("/auth/tokens/revoke", {"token_ids": token_ids or []})

    def delete_current_token(self) -> dict[str, Any]:
        response = self._request("DELETE", "/auth/tokens")
        self.token = None
        return response

    # --- Productions ---

    def create_production(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/productions", payload)

    def list_productions(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        return self._get("/productions", {"page": page, "limit": limit})

    def download_production(self, reference: str) -> bytes:
        return self._download(f"/productions/{reference}/download")

    def fetch_production(
        self, policy_number: str, organization_code: str
    ) -> dict[str, Any]:
        return self._get(
            "/productions/fetch",
            {"policy_number": policy_number, "organization_code": organization_code},
        )

    # --- Orders ---

    def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/orders", payload)

    def list_orders(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._get("/orders", params)

    def get_order(self, reference: str) -> dict[str, Any]:
        return self._get(f"/orders/{reference}")

    def update_order(self, reference: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._put(f"/orders/{reference}", payload)

    def order_action(
        self, reference: str, action: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """approve, reject, cancel, suspend, submit-for-confirmation or confirm-delivery."""
        if action not in ORDER_ACTIONS:
            raise InvalidInputError(f"Unknown order action '{action}'")
        return self._post(f"/orders/{reference}/{action}", payload)

    def get_order_statuses(self) -> dict[str, Any]:
        return self._get("/orders/statuses")

    def get_delivered_order_statistics(self) -> dict[str, Any]:
        return self._get("/orders/statistics/delivered")

    # --- Certificates ---

    def list_certificates(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return self._get("/certificates", params)

    def get_certificate(self, reference: str) -> dict[str, Any]:
        return self._get(f"/certificates/{reference}")

    def download_certificate(self, reference: str) -> bytes:
        return self._download(f"/certificates/{reference}/download")

    def cancel_certificate(
        self, reference: str, reason: str | None = None
    ) -> dict[str, Any]:
        return self._post(f"/certificates/{reference}/cancel", {"reason": reason})

    def suspend_certificate(
        self, reference: str, reason: str | None = None
    ) -> dict[str, Any]:
        return self._post(f"/certificates/{reference}/suspend", {"reason": reason})

    def check_certificate(self, reference: str) -> dict[str, Any]:
        return self._post(f"/certificates/{reference}/check")

    def get_related_certificates(self, reference: str) -> dict[str, Any]:
        return self._get(f"/certificates/{reference}/related")

    def get_certificate_types(self) -> dict[str, Any]:
        return self._get("/certificate-types")

    def get_certificate_variants(self) -> dict[str, Any]:
        return self._get("/certificate-variants")

    def get_certificate_usage_statistics(self) -> dict[str, Any]:
        return self._get("/certificates/statistics/usage")

    def get_available_certificate_statistics(self) -> dict[str, Any]:
        return self._get("/certificates/statistics/available")

    def get_used_certificate_statistics(self) -> dict[str, Any]:
        return self._get("/certificates/statistics/used")

    # --- Transactions ---

    def create_transaction(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._post("/transactions", payload)

    def list_transactions(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return self._get("/transactions", params)

    def get_transaction(self, reference: str) -> dict[str, Any]:
        return self._get(f"/transactions/{reference}")

    def update_transaction(
        self, reference: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return self._put(f"/transactions/{reference}", payload)

    def transaction_action(
        self, reference: str, action: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """approve, reject or cancel."""
        if action not in TRANSACTION_ACTIONS:
            raise InvalidInputError(f"Unknown transaction action '{action}'")
        return self._post(f"/transactions/{reference}/{action}", payload)

    def get_transaction_statistics(self) -> dict[str, Any]:
        return self._get("/transactions/statistics")


@lru_cache()
def get_shared_asaci_client() -> AsaciClient:
    """Process-wide client, created on first use."""
    return AsaciClient.from_settings()
