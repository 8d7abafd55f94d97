from __future__ import annotations

import http.cookiejar
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from app.learnhub.modules.enrollments.utils import build_success_url, checkout_verb, format_money, is_valid_email

logger = logging.getLogger(__name__)


class CheckoutError(RuntimeError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass(frozen=True)
class CheckoutResult:
    status: int
    success_url: str
    verb: str
    amount_display: str
    body: dict[str, Any] | None = None


def _cookie_opener() -> urllib.request.OpenerDirector:
    # The CSRF token is bound to the session cookie, so both requests share a jar.
    return urllib.request.build_opener(urllib.request.HTTPCookieProcessor(http.cookiejar.CookieJar()))


@dataclass(frozen=True)
class CheckoutClient:
    """
    Client half of checkout: cheap email check, POST /enrollments, and the
    success URL to navigate to. The server validates again on its own.
    """

    base_url: str
    timeout_seconds: int = 30
    opener: urllib.request.OpenerDirector = field(default_factory=_cookie_opener, repr=False, compare=False)

    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, Any]:
        url = self.base_url.rstrip("/") + path
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        if data is not None:
            req.add_header("Content-Type", "application/json")
        req.add_header("Accept", "application/json")
        req.add_header("Cache-Control", "no-store")
        for k, v in (headers or {}).items():
            req.add_header(k, v)
        try:
            with self.opener.open(req, timeout=self.timeout_seconds) as resp:
                status, raw = resp.status, resp.read()
        except urllib.error.HTTPError as e:
            status, raw = e.code, e.read()
        try:
            body = json.loads(raw.decode("utf-8")) if raw else None
        except ValueError:
            body = None
        return status, body

    def _csrf_token(self) -> str:
        status, body = self._request("GET", "/auth/csrf")
        token = body.get("csrf_token") if isinstance(body, dict) else None
        if not 200 <= status < 300 or not token:
            raise CheckoutError(f"Checkout failed ({status})", status=status)
        return str(token)

    def submit(
        self,
        email: str,
        course_type: str,
        slug: str,
        *,
        price: float = 4999,
        currency: str = "INR",
    ) -> CheckoutResult:
        trimmed = (email or "").strip()
        if not trimmed:
            raise CheckoutError("Please enter your email")
        if not is_valid_email(trimmed):
            raise CheckoutError("Please enter a valid email address")

        amount = float(price)
        payload = {
            "userEmail": trimmed,
            "courseType": course_type,
            "courseSlug": slug,
            "status": "pending",
            "amount": int(amount) if amount.is_integer() else amount,
            "currency": str(currency).upper(),
        }
        try:
            token = self._csrf_token()
            status, body = self._request("POST", "/enrollments", payload, headers={"X-CSRF-Token": token})
        except CheckoutError:
            raise
        except Exception as e:
            logger.warning("Checkout request failed (%s/%s): %s", course_type, slug, e)
            raise CheckoutError("Something went wrong") from e

        if not 200 <= status < 300:
            msg = None
            if isinstance(body, dict):
                msg = body.get("error") or body.get("message")
            raise CheckoutError(str(msg) if msg else f"Checkout failed ({status})", status=status)

        return CheckoutResult(
            status=status,
            success_url=build_success_url(course_type, slug),
            verb=checkout_verb(course_type),
            amount_display=format_money(payload["amount"], payload["currency"]),
            body=body if isinstance(body, dict) else None,
        )
