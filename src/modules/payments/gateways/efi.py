"""Efí (Gerencianet) HTTP clients for PIX collections and card charges.

Every request carries an explicit ``(connect, read)`` timeout so a
stalled upstream cannot pin a worker.  OAuth tokens are cached in the
Django cache until shortly before they expire.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

import requests
import structlog
from django.conf import settings
from django.core.cache import cache

from modules.payments.exceptions import GatewayError
from modules.payments.gateways.base import CardCharge, CardChargeRequest, PixCollection

logger = structlog.get_logger(__name__)

TOKEN_SAFETY_SECONDS = 60


def _timeout() -> Tuple[int, int]:
    return (settings.GATEWAY_CONNECT_TIMEOUT, settings.GATEWAY_READ_TIMEOUT)


def _cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def _card_customer(customer: Dict[str, Any]) -> Dict[str, Any]:
    """Drop blank fields; a 14-digit document goes out as a juridical person."""
    payload = {k: v for k, v in customer.items() if v}
    document = payload.pop("cpf", "")
    if len(document) == 11:
        payload["cpf"] = document
    elif len(document) == 14:
        payload["juridical_person"] = {
            "corporate_name": payload.get("name", ""),
            "cnpj": document,
        }
    return payload


def _charge_lines(request: CardChargeRequest) -> Tuple[Dict[str, Any], bool]:
    """Book lines plus shipping, or one order line when they do not add up.

    Efí computes the charge as items + shippings - discount, which must
    equal the order total to the cent.
    """
    items = [
        {
            "name": str(line["title"])[:255],
            "value": _cents(Decimal(str(line["price"]))),
            "amount": int(line["quantity"]),
        }
        for line in request.items
    ]
    shipping = _cents(request.shipping)
    expected = sum(i["value"] * i["amount"] for i in items) + shipping
    expected -= _cents(request.discount)
    if items and expected == _cents(request.amount):
        lines: Dict[str, Any] = {"items": items}
        if shipping > 0:
            lines["shippings"] = [{"name": "Frete", "value": shipping}]
        return lines, True

    if items:
        logger.warning(
            "gateway.card_lines_mismatch",
            order_id=request.order_id,
            expected_cents=expected,
            amount_cents=_cents(request.amount),
        )
    single = {"name": f"Pedido {request.order_id}", "value": _cents(request.amount), "amount": 1}
    return {"items": [single]}, False

class EfiAuth:
    """Client-credentials token for one Efí API (PIX or charges)."""

    def __init__(
        self,
        base_url: str,
        token_path: str,
        cache_key: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_path = token_path
        self.cache_key = cache_key
        self.session = session or requests.Session()
        if settings.EFI_CERT_PATH:
            self.session.cert = settings.EFI_CERT_PATH

    def access_token(self) -> str:
        token = cache.get(self.cache_key)
        if token:
            return token

        try:
            response = self.session.post(
                f"{self.base_url}{self.token_path}",
                json={"grant_type": "client_credentials"},
                auth=(settings.EFI_CLIENT_ID, settings.EFI_CLIENT_SECRET),
                timeout=_timeout(),
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            raise GatewayError(
                "Efí authentication failed",
                status_code=exc.response.status_code if exc.response is not None else None,
            ) from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise GatewayError(f"Efí authentication error: {exc}") from exc

        token = data.get("access_token")
        if not token:
            raise GatewayError("Efí authentication returned no access_token")
        ttl = max(int(data.get("expires_in", 3600)) - TOKEN_SAFETY_SECONDS, 1)
        cache.set(self.cache_key, token, ttl)
        return token

    def headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers


class _EfiClient:
    def __init__(self, auth: EfiAuth) -> None:
        self.auth = auth

    def _request(
        self,
        method: str,
        path: str,
        *,
        reference: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> requests.Response:
        url = f"{self.auth.base_url}{path}"
        try:
            return self.auth.session.request(
                method,
                url,
                json=json,
                headers=self.auth.headers(idempotency_key),
                timeout=_timeout(),
            )
        except requests.exceptions.RequestException as exc:
            logger.warning(
                "gateway.request_failed", method=method, path=path, reference=reference
            )
            raise GatewayError(
                f"Efí request error: {exc}", reference=reference
            ) from exc

    @staticmethod
    def _json(response: requests.Response, reference: Optional[str]) -> Dict[str, Any]:
        try:
            return response.json() if response.content else {}
        except ValueError as exc:
            raise GatewayError(
                "Efí returned a malformed body",
                status_code=response.status_code,
                reference=reference,
                body=response.text,
            ) from exc

    @staticmethod
    def _raise_for_status(response: requests.Response, reference: Optional[str]) -> None:
        if response.status_code >= 400:
            logger.warning(
                "gateway.http_error",
                status_code=response.status_code,
                reference=reference,
                body=response.text[:300],
            )
            raise GatewayError(
                f"Efí HTTP {response.status_code}",
                status_code=response.status_code,
                reference=reference,
                body=response.text,
            )


class EfiPixGateway(_EfiClient):
    """PIX collections (``/v2/cob``) on the Efí PIX API."""

    def __init__(self, auth: Optional[EfiAuth] = None) -> None:
        super().__init__(
            auth
            or EfiAuth(settings.EFI_PIX_BASE_URL, "/oauth/token", "efi:pix:token")
        )

    def create_collection(
        self, txid: str, amount: Decimal, description: str, ttl_seconds: int
    ) -> PixCollection:
        body = {
            "calendario": {"expiracao": ttl_seconds},
            "valor": {"original": f"{amount:.2f}"},
            "chave": settings.EFI_PIX_KEY,
            "solicitacaoPagador": description[:140],
        }
        response = self._request("PUT", f"/v2/cob/{txid}", reference=txid, json=body)
        self._raise_for_status(response, txid)
        cob = self._json(response, txid)

        loc_id = (cob.get("loc") or {}).get("id")
        if loc_id is None:
            raise GatewayError("Efí collection without loc.id", reference=txid)
        qr_response = self._request("GET", f"/v2/loc/{loc_id}/qrcode", reference=txid)
        self._raise_for_status(qr_response, txid)
        qr = self._json(qr_response, txid)

        qr_code = qr.get("qrcode") or cob.get("pixCopiaECola") or ""
        image = qr.get("imagemQrcode") or ""
        if not qr_code:
            raise GatewayError("Efí collection without QR code", reference=txid)
        logger.info("gateway.pix_collection_created", txid=txid, loc_id=loc_id)
        return PixCollection(
            txid=txid,
            qr_code=qr_code,
            qr_code_base64=image.split(",", 1)[-1],
            status=cob.get("status", "ATIVA"),
        )

    def get_status(self, txid: str) -> str:
        response = self._request("GET", f"/v2/cob/{txid}", reference=txid)
        self._raise_for_status(response, txid)
        data = self._json(response, txid)
        status = data.get("status") or ""
        # A received PIX may still report ATIVA on the cob but list it in "pix".
        if data.get("pix") and status.upper() == "ATIVA":
            return "ATIVA-RECEBIDA"
        return status

    def cancel(self, txid: str) -> bool:
        try:
            response = self._request(
                "PATCH",
                f"/v2/cob/{txid}",
                reference=txid,
                json={"status": "REMOVIDA_PELO_USUARIO_RECEBEDOR"},
            )
        except GatewayError:
            return False
        if response.status_code == 404:
            logger.info("gateway.pix_cancel_not_found", txid=txid)
            return True
        if response.status_code >= 400:
            logger.warning(
                "gateway.pix_cancel_failed", txid=txid, status_code=response.status_code
            )
            return False
        return True


class EfiCardGateway(_EfiClient):
    """Credit-card charges (``/v1/charge``) on the Efí charges API."""

    def __init__(self, auth: Optional[EfiAuth] = None) -> None:
        super().__init__(
            auth
            or EfiAuth(settings.EFI_CARD_BASE_URL, "/v1/authorize", "efi:card:token")
        )

    def create_charge(self, request: CardChargeRequest) -> CardCharge:
        credit_card: Dict[str, Any] = {
            "customer": _card_customer(request.customer),
            "installments": request.installments,
            "payment_token": request.payment_token,
            "billing_address": request.billing_address,
        }
        body: Dict[str, Any] = {
            "metadata": {"custom_id": str(request.order_id)},
            "payment": {"credit_card": credit_card},
        }
        lines, itemized = _charge_lines(request)
        body.update(lines)
        if itemized and request.discount > 0:
            credit_card["discount"] = {
                "type": "currency",
                "value": _cents(request.discount),
            }
        reference = f"order-{request.order_id}"
        response = self._request(
            "POST",
            "/v1/charge/one-step",
            reference=reference,
            json=body,
            idempotency_key=reference,
        )
        self._raise_for_status(response, reference)
        data = self._json(response, reference).get("data") or {}
        charge_id = data.get("charge_id")
        logger.info(
            "gateway.card_charge_created",
            order_id=request.order_id,
            charge_id=charge_id,
            status=data.get("status"),
        )
        return CardCharge(
            charge_id=str(charge_id) if charge_id is not None else None,
            status=str(data.get("status") or ""),
            raw=data,
        )

    def get_status(self, charge_id: str) -> str:
        response = self._request("GET", f"/v1/charge/{charge_id}", reference=charge_id)
        self._raise_for_status(response, charge_id)
        data = self._json(response, charge_id).get("data") or {}
        return str(data.get("status") or "")

    def cancel(self, charge_id: str) -> bool:
        try:
            response = self._request(
                "POST", f"/v1/charge/{charge_id}/cancel", reference=charge_id
            )
        except GatewayError:
            return False
        if response.status_code == 404:
            logger.info("gateway.card_cancel_not_found", charge_id=charge_id)
            return True
        if response.status_code >= 400:
            logger.warning(
                "gateway.card_cancel_failed",
                charge_id=charge_id,
                status_code=response.status_code,
            )
            return False
        return True
