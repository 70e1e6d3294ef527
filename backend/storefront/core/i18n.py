"""
Localization helpers: supported languages and message dictionaries.
"""
from enum import Enum
from typing import Optional

from storefront.core.config import settings


class Language(str, Enum):
    FR = "FR"
    EN = "EN"


DICTIONARIES: dict[Language, dict[str, dict[str, str]]] = {
    Language.FR: {
        "Emails": {
            "confirmation": "Confirmation de votre commande {orderNumber}",
            "shipped": "Votre commande {orderNumber} a été expédiée",
            "delivered": "Votre commande {orderNumber} a été livrée",
            "refunded": "Votre commande {orderNumber} a été remboursée",
            "cancelled": "Votre commande {orderNumber} a été annulée",
            "returnLabel": "Étiquette de retour pour la commande {orderNumber}",
        },
        "Labels": {
            "greeting": "Bonjour {name},",
            "thanks": "Merci pour votre commande !",
            "subtotal": "Sous-total",
            "shipping": "Livraison",
            "tax": "Taxes",
            "total": "Total",
            "tracking": "Suivre mon colis",
            "shippedBody": "Votre colis est en route avec {carrier}.",
            "deliveredBody": "Votre colis a été livré. Nous espérons qu'il vous plaira !",
            "refundedBody": "Le remboursement de {amount} a été émis sur votre moyen de paiement.",
            "cancelledBody": "Votre commande a été annulée. Aucun montant ne sera prélevé.",
            "returnLabelBody": "Voici votre étiquette de retour prépayée.",
            "downloadLabel": "Télécharger l'étiquette",
            "customer": "Client",
        },
        "OrderStatus": {
            "statusPending": "En attente",
            "statusPaid": "Payée",
            "statusShipped": "Expédiée",
            "statusInTransit": "En transit",
            "statusDelivered": "Livrée",
            "statusCancelled": "Annulée",
            "statusRefunded": "Remboursée",
            "statusRefundRequested": "Remboursement demandé",
        },
    },
    Language.EN: {
        "Emails": {
            "confirmation": "Your order {orderNumber} is confirmed",
            "shipped": "Your order {orderNumber} has shipped",
            "delivered": "Your order {orderNumber} has been delivered",
            "refunded": "Your order {orderNumber} has been refunded",
            "cancelled": "Your order {orderNumber} has been cancelled",
            "returnLabel": "Return label for order {orderNumber}",
        },
        "Labels": {
            "greeting": "Hello {name},",
            "thanks": "Thank you for your order!",
            "subtotal": "Subtotal",
            "shipping": "Shipping",
            "tax": "Tax",
            "total": "Total",
            "tracking": "Track my package",
            "shippedBody": "Your package is on its way with {carrier}.",
            "deliveredBody": "Your package has been delivered. We hope you love it!",
            "refundedBody": "A refund of {amount} has been issued to your payment method.",
            "cancelledBody": "Your order has been cancelled. You will not be charged.",
            "returnLabelBody": "Here is your prepaid return label.",
            "downloadLabel": "Download label",
            "customer": "Customer",
        },
        "OrderStatus": {
            "statusPending": "Pending",
            "statusPaid": "Paid",
            "statusShipped": "Shipped",
            "statusInTransit": "In transit",
            "statusDelivered": "Delivered",
            "statusCancelled": "Cancelled",
            "statusRefunded": "Refunded",
            "statusRefundRequested": "Refund requested",
        },
    },
}

ORDER_STATUS_KEYS = {
    "PENDING": "statusPending",
    "PAID": "statusPaid",
    "SHIPPED": "statusShipped",
    "IN_TRANSIT": "statusInTransit",
    "DELIVERED": "statusDelivered",
    "CANCELLED": "statusCancelled",
    "REFUNDED": "statusRefunded",
    "REFUND_REQUESTED": "statusRefundRequested",
}


def resolve_language(locale: Optional[str]) -> Language:
    """Map a locale string (``fr``, ``en-CA``, ``EN``...) to a Language."""
    if locale:
        code = locale.split("-")[0].split("_")[0].upper()
        if code in Language.__members__:
            return Language[code]
    return Language[settings.default_locale.upper()]


def order_status_key(status: str) -> str:
    return ORDER_STATUS_KEYS.get(status, "")


def translate(language: Language | str, section: str, key: str, **params: str) -> str:
    """Look up a message, falling back to English, then to the key itself."""
    lang = language if isinstance(language, Language) else resolve_language(language)
    text = DICTIONARIES[lang].get(section, {}).get(key)
    if text is None:
        text = DICTIONARIES[Language.EN].get(section, {}).get(key, key)
    return text.format(**params) if params else text


def email_subject(language: Language | str, kind: str, order_number: str) -> str:
    return translate(language, "Emails", kind, orderNumber=order_number)
