from __future__ import annotations

import re
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from app.integrations.errors import ProviderError


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[a-z]{2,}$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^a-z0-9]+")


class EmailFinder(Protocol):
    name: str

    def find_email(self, first_name: str, last_name: str, domain_or_company: str) -> str | None: ...

    def verify_email(self, email: str) -> bool: ...


class StubEmailFinder:
    name = "stub-email-finder"

    def find_email(self, first_name: str, last_name: str, domain_or_company: str) -> str | None:
        local = ".".join(part for part in (_slug(first_name), _slug(last_name)) if part)
        if not local:
            return None
        target = domain_or_company.strip().lower()
        domain = target if "." in target else f"{_slug(target)}.com"
        if domain == ".com":
            return None
        return f"{local}@{domain}"

    def verify_email(self, email: str) -> bool:
        return bool(_EMAIL_RE.match(email.strip()))


def _slug(value: str) -> str:
    return _NON_WORD.sub("", value.lower())


class IcypeasEmailFinder:
    """Email search and verification against the Icypeas HTTP API.

    Email search is asynchronous on the provider side: a search may come back
    with a pending status, in which case the request is re-issued up to
    ``max_attempts`` times, ``poll_interval`` seconds apart. Exhausting the
    attempts is a "not found" result, not an error.
    """

    name = "icypeas"
    pending_statuses = frozenset({"NONE", "SCHEDULED", "IN_PROGRESS"})

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://app.icypeas.com/api",
        max_attempts: int = 5,
        poll_interval: float = 2.0,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": api_key, "Content-Type": "application/json"},
        )

    def find_email(self, first_name: str, last_name: str, domain_or_company: str) -> str | None:
        payload = {"firstname": first_name, "lastname": last_name, "domainOrCompany": domain_or_company}
        for attempt in range(self.max_attempts):
            data = self._post("/email-search", payload)
            if not data.get("success"):
                raise ProviderError(self.name, str(data.get("message") or "email search failed"))

            item = data.get("item")
            if not isinstance(item, dict):
                raise ProviderError(self.name, "unexpected email search response")
            email = item.get("email")
            if email:
                return str(email)
            if item.get("status") not in self.pending_statuses:
                raise ProviderError(self.name, f"unexpected email search status: {item.get('status')}")

            if attempt + 1 < self.max_attempts:
                self._sleep(self.poll_interval)
        return None

    def verify_email(self, email: str) -> bool:
        data = self._post("/email-verification", {"email": email})
        return bool(data.get("isValid", False))

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, str(exc)) from exc
        except ValueError as exc:
            raise ProviderError(self.name, "response is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected response shape")
        return data
