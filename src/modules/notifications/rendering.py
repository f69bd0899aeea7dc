"""Email composition.

An email is a subject plus an ordered list of named content blocks.
Each block is a plain function of the context returning its text and
HTML halves (or ``None`` to be left out); ``TEMPLATES`` picks the blocks
for each ``EmailKind``.  Callers may pass their own block list to
override the default layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from django.conf import settings
from django.utils.html import escape, format_html

from modules.notifications.constants import EmailKind


@dataclass(frozen=True)
class Block:
    text: str
    html: str


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


BlockRenderer = Callable[[Mapping[str, Any]], Optional[Block]]


def brl(value: Any) -> str:
    if value in (None, ""):
        return "-"
    return f"R$ {Decimal(str(value)):.2f}"


def _greeting(ctx: Mapping[str, Any]) -> Optional[Block]:
    name = ctx.get("customer_name") or ""
    return Block(f"Olá, {name}!", format_html("<p>Olá, <strong>{}</strong>!</p>", name))


def _paid_client(ctx: Mapping[str, Any]) -> Optional[Block]:
    line = f"Recebemos o seu pagamento. O pedido #{ctx['order_id']} foi CONFIRMADO."
    return Block(line, format_html("<p>{}</p>", line))


def _paid_seller(ctx: Mapping[str, Any]) -> Optional[Block]:
    line = (
        f"Novo pedido pago: #{ctx['order_id']} "
        f"({ctx.get('payment_method_label', '')}) de {ctx.get('customer_name', '')}."
    )
    contact = f"Contato: {ctx.get('email', '')} {ctx.get('phone', '')}".strip()
    return Block(
        f"{line}\n{contact}",
        format_html("<p>{}</p><p>{}</p>", line, contact),
    )


def _items(ctx: Mapping[str, Any]) -> Optional[Block]:
    items: Sequence[Mapping[str, Any]] = ctx.get("items") or ()
    if not items:
        return None
    text = [f"- {i['title']} {i['quantity']}x {brl(i['price'])}" for i in items]
    rows = "".join(
        format_html(
            "<tr><td>{}</td><td>{}x</td><td>{}</td></tr>",
            i["title"],
            i["quantity"],
            brl(i["price"]),
        )
        for i in items
    )
    return Block("Itens:\n" + "\n".join(text), f"<table>{rows}</table>")


def _totals(ctx: Mapping[str, Any]) -> Optional[Block]:
    shipping = ctx.get("shipping")
    shipping_label = brl(shipping) if shipping and Decimal(str(shipping)) > 0 else "Grátis"
    lines = [f"Frete: {shipping_label}"]
    if ctx.get("discount_amount") and Decimal(str(ctx["discount_amount"])) > 0:
        lines.append(f"Desconto ({ctx.get('coupon_code', '')}): -{brl(ctx['discount_amount'])}")
    lines.append(f"Total: {brl(ctx.get('total'))}")
    return Block("\n".join(lines), "".join(format_html("<p>{}</p>", line) for line in lines))


def _address(ctx: Mapping[str, Any]) -> Optional[Block]:
    address = ctx.get("address_line")
    if not address:
        return None
    line = f"Endereço de entrega: {address}"
    note = ctx.get("note")
    text = line if not note else f"{line}\nObservação do cliente: {note}"
    html = format_html("<p>{}</p>", line)
    if note:
        html += format_html("<p><strong>Observação do cliente:</strong> {}</p>", note)
    return Block(text, html)


def _payout(ctx: Mapping[str, Any]) -> Optional[Block]:
    lines = [
        f"Pedido: #{ctx['order_id']}",
        f"Valor bruto: {brl(ctx.get('amount_gross'))}",
        f"Valor líquido: {brl(ctx.get('amount_net'))}",
    ]
    if ctx.get("pix_key"):
        lines.append(f"Chave PIX: {ctx['pix_key']}")
    if ctx.get("provider_ref"):
        lines.append(f"Identificador do envio: {ctx['provider_ref']}")
    if ctx.get("end_to_end_id"):
        lines.append(f"EndToEndId: {ctx['end_to_end_id']}")
    return Block("\n".join(lines), "".join(format_html("<p>{}</p>", line) for line in lines))


def _payout_reason(ctx: Mapping[str, Any]) -> Optional[Block]:
    reason = ctx.get("reason")
    if not reason:
        return None
    line = f"Motivo: {reason}"
    return Block(line, format_html("<p>{}</p>", line))


def _note(ctx: Mapping[str, Any]) -> Optional[Block]:
    note = ctx.get("note_line")
    if not note:
        return None
    return Block(note, format_html("<p>{}</p>", note))


def _card_schedule(ctx: Mapping[str, Any]) -> Optional[Block]:
    line = (
        f"O repasse do pedido #{ctx['order_id']} (cartão) será enviado após "
        f"{ctx.get('card_delay_days', settings.PAYOUT_CARD_DELAY_DAYS)} dias, "
        "quando o valor for liquidado pela operadora."
    )
    return Block(line, format_html("<p>{}</p>", line))


def _footer(ctx: Mapping[str, Any]) -> Optional[Block]:
    brand = ctx.get("brand") or settings.STORE_NAME
    return Block(f"-- \n{brand}", format_html("<hr><p><small>{}</small></p>", brand))


BLOCKS: Dict[str, BlockRenderer] = {
    "greeting": _greeting,
    "paid_client": _paid_client,
    "paid_seller": _paid_seller,
    "items": _items,
    "totals": _totals,
    "address": _address,
    "payout": _payout,
    "payout_reason": _payout_reason,
    "note": _note,
    "card_schedule": _card_schedule,
    "footer": _footer,
}


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    blocks: Tuple[str, ...]


TEMPLATES: Dict[str, EmailTemplate] = {
    EmailKind.ORDER_PAID_CLIENT: EmailTemplate(
        "Pagamento CONFIRMADO (#{order_id}) - {brand}",
        ("greeting", "paid_client", "items", "totals", "address", "footer"),
    ),
    EmailKind.ORDER_PAID_SELLER: EmailTemplate(
        "Novo pedido pago (#{order_id}) - {brand}",
        ("paid_seller", "items", "totals", "address", "footer"),
    ),
    EmailKind.PAYOUT_CONFIRMED: EmailTemplate(
        "Repasse confirmado (#{order_id}) - {brand}",
        ("payout", "note", "footer"),
    ),
    EmailKind.PAYOUT_FAILED: EmailTemplate(
        "Repasse NÃO realizado (#{order_id}) - {brand}",
        ("payout", "payout_reason", "footer"),
    ),
    EmailKind.CARD_PAYOUT_SCHEDULED: EmailTemplate(
        "Repasse agendado (#{order_id}) - {brand}",
        ("card_schedule", "totals", "footer"),
    ),
}


def render_email(
    kind: str,
    context: Mapping[str, Any],
    blocks: Optional[Iterable[str]] = None,
) -> RenderedEmail:
    """Compose ``kind`` from ``context``.

    Raises ``KeyError`` for an unknown kind or block name.
    """
    template = TEMPLATES[kind]
    ctx = {"brand": settings.STORE_NAME, **context}
    rendered: List[Block] = []
    for name in blocks if blocks is not None else template.blocks:
        block = BLOCKS[name](ctx)
        if block is not None:
            rendered.append(block)

    subject = template.subject.format(order_id=ctx.get("order_id", ""), brand=ctx["brand"])
    text = "\n\n".join(block.text for block in rendered)
    html = (
        f"<html><body><h2>{escape(subject)}</h2>"
        + "".join(block.html for block in rendered)
        + "</body></html>"
    )
    return RenderedEmail(subject=subject, text=text, html=html)
