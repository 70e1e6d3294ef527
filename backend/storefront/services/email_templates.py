"""
Transactional email templates.

Each builder returns ``(subject, html_content, text_content)``.
"""
from html import escape
from typing import Any, Optional

from storefront.core.config import settings
from storefront.core.i18n import Language, email_subject, resolve_language, translate
from storefront.services.pricing import format_price

TRACKING_URL = "https://parcelsapp.com/en/tracking/{code}"


def tracking_url(tracking_code: str) -> str:
    return TRACKING_URL.format(code=tracking_code)


def _layout(title: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: system-ui, sans-serif; line-height: 1.5; color: #1f2937; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #111827; color: white; padding: 24px; border-radius: 12px 12px 0 0; }}
        .content {{ background: #f9fafb; padding: 24px; border-radius: 0 0 12px 12px; }}
        .button {{ display: inline-block; margin-top: 16px; padding: 12px 24px; background: #111827; color: white; text-decoration: none; border-radius: 6px; }}
        table {{ width: 100%; border-collapse: collapse; }}
        td {{ padding: 6px 0; }}
        .footer {{ text-align: center; padding: 20px; color: #6b7280; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1 style="margin: 0;">{escape(title)}</h1></div>
        <div class="content">{body}</div>
        <div class="footer"><p>{escape(settings.store_name)}</p></div>
    </div>
</body>
</html>
"""


def _customer_name(order: Any, language: Language) -> str:
    address = order.shipping_address or {}
    name = address.get("firstName")
    if not name and getattr(order, "user", None) is not None:
        name = order.user.first_name
    return name or translate(language, "Labels", "customer")


def _money(amount: Any, currency: str, language: Language) -> str:
    return format_price(amount, currency, language.value.lower())


def order_confirmation(order: Any) -> tuple[str, str, str]:
    language = resolve_language(order.language)
    subject = email_subject(language, "confirmation", order.order_number)
    name = _customer_name(order, language)

    rows = "".join(
        f"<tr><td>{escape(item.product_snapshot.get('name', ''))} × {item.quantity}</td>"
        f"<td style=\"text-align:right\">{_money(item.total_price, item.currency, language)}</td></tr>"
        for item in order.items
    )
    totals = [
        ("subtotal", order.subtotal_amount),
        ("shipping", order.shipping_amount),
        ("tax", order.tax_amount),
        ("total", order.total_amount),
    ]
    total_rows = "".join(
        f"<tr><td>{translate(language, 'Labels', key)}</td>"
        f"<td style=\"text-align:right\">{_money(value, order.currency, language)}</td></tr>"
        for key, value in totals
    )
    body = f"""
<p>{escape(translate(language, "Labels", "greeting", name=name))}</p>
<p>{translate(language, "Labels", "thanks")}</p>
<table>{rows}</table>
<hr/>
<table>{total_rows}</table>
"""
    text_lines = [
        translate(language, "Labels", "greeting", name=name),
        translate(language, "Labels", "thanks"),
        "",
        *[
            f"- {item.product_snapshot.get('name', '')} x{item.quantity}: "
            f"{_money(item.total_price, item.currency, language)}"
            for item in order.items
        ],
        "",
        f"{translate(language, 'Labels', 'total')}: {_money(order.total_amount, order.currency, language)}",
    ]
    return subject, _layout(subject, body), "\n".join(text_lines)


def admin_new_order(order: Any) -> tuple[str, str, str]:
    subject = f"Nouvelle commande : {order.total_amount} {order.currency} ({order.order_number})"
    address = order.shipping_address or {}
    customer = f"{address.get('firstName', '')} {address.get('lastName', '')}".strip() or "Client"
    link = f"{settings.site_url}/admin/orders/{order.id}"
    body = f"""
<p><strong>{escape(order.order_number)}</strong></p>
<p>Client : {escape(customer)} ({escape(order.order_email or '')})</p>
<p>Articles : {len(order.items)}</p>
<p>Total : {order.total_amount} {order.currency}</p>
<a class="button" href="{link}">Voir la commande</a>
"""
    text = f"{subject}\nClient : {customer}\nArticles : {len(order.items)}\n{link}"
    return subject, _layout(subject, body), text


def order_shipped(order: Any, tracking_code: str, carrier: Optional[str]) -> tuple[str, str, str]:
    language = resolve_language(order.language)
    subject = email_subject(language, "shipped", order.order_number)
    name = _customer_name(order, language)
    url = tracking_url(tracking_code)
    carrier_name = carrier or "Transporteur"
    intro = translate(language, "Labels", "shippedBody", carrier=carrier_name)
    body = f"""
<p>{escape(translate(language, "Labels", "greeting", name=name))}</p>
<p>{escape(intro)}</p>
<p>{escape(tracking_code)}</p>
<a class="button" href="{url}">{translate(language, "Labels", "tracking")}</a>
"""
    text = f"{translate(language, 'Labels', 'greeting', name=name)}\n{intro}\n{tracking_code}\n{url}"
    return subject, _layout(subject, body), text


def order_delivered(order: Any) -> tuple[str, str, str]:
    language = resolve_language(order.language)
    subject = email_subject(language, "delivered", order.order_number)
    name = _customer_name(order, language)
    message = translate(language, "Labels", "deliveredBody")
    body = f"<p>{escape(translate(language, 'Labels', 'greeting', name=name))}</p><p>{escape(message)}</p>"
    return subject, _layout(subject, body), f"{translate(language, 'Labels', 'greeting', name=name)}\n{message}"


def order_refunded(order: Any, cancelled: bool = False) -> tuple[str, str, str]:
    language = resolve_language(order.language)
    kind = "cancelled" if cancelled else "refunded"
    subject = email_subject(language, kind, order.order_number)
    name = _customer_name(order, language)
    if cancelled:
        message = translate(language, "Labels", "cancelledBody")
    else:
        message = translate(
            language,
            "Labels",
            "refundedBody",
            amount=_money(order.total_amount, order.currency, language),
        )
    body = f"<p>{escape(translate(language, 'Labels', 'greeting', name=name))}</p><p>{escape(message)}</p>"
    return subject, _layout(subject, body), f"{translate(language, 'Labels', 'greeting', name=name)}\n{message}"


def return_label(order: Any, label_url: str, tracking_code: Optional[str]) -> tuple[str, str, str]:
    language = resolve_language(order.language)
    subject = email_subject(language, "returnLabel", order.order_number)
    name = _customer_name(order, language)
    message = translate(language, "Labels", "returnLabelBody")
    body = f"""
<p>{escape(translate(language, "Labels", "greeting", name=name))}</p>
<p>{escape(message)}</p>
<p>{escape(tracking_code or '')}</p>
<a class="button" href="{label_url}">{translate(language, "Labels", "downloadLabel")}</a>
"""
    text = f"{translate(language, 'Labels', 'greeting', name=name)}\n{message}\n{label_url}"
    return subject, _layout(subject, body), text


def admin_refund_request(order: Any, reason: str, request_type: str) -> tuple[str, str, str]:
    subject = f"Demande de remboursement : {order.order_number}"
    link = f"{settings.site_url}/admin/orders/{order.id}"
    body = f"""
<p>Commande <strong>{escape(order.order_number)}</strong> ({escape(order.order_email or '')})</p>
<p>Type : {escape(request_type)}</p>
<p>Raison : {escape(reason)}</p>
<p>Montant : {order.total_amount} {order.currency}</p>
<a class="button" href="{link}">Voir la commande</a>
"""
    text = f"{subject}\nType : {request_type}\nRaison : {reason}\n{link}"
    return subject, _layout(subject, body), text


def admin_contact_message(name: str, email: str, subject: Optional[str], message: str) -> tuple[str, str, str]:
    title = f"Nouveau message de contact : {subject or name}"
    body = f"""
<p>De : {escape(name)} &lt;{escape(email)}&gt;</p>
<p style="white-space: pre-wrap">{escape(message)}</p>
"""
    text = f"De : {name} <{email}>\n\n{message}"
    return title, _layout(title, body), text
