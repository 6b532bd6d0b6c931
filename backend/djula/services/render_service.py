# /djula/services/render_service.py

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from djula.config import strings
from djula.config.strings import localized
from djula.models.actions import Action, ActionType, find_action
from djula.models.conversation import OutboundMessage
from djula.models.domain import Order, PaymentMethod, PaymentMethodType, PaymentTransaction, Product

# This module turns a reply and the turn's actions into WhatsApp messages.
# It is pure: it never sends anything and never touches the network.

logger = logging.getLogger(__name__)

# WhatsApp Cloud API limits
MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_LIST_ROWS = 10
MAX_ROW_TITLE = 24
MAX_ROW_DESCRIPTION = 72
MAX_LIST_BUTTON = 20
MAX_SECTION_TITLE = 24
MAX_INTERACTIVE_BODY = 1024
MAX_CAPTION = 1024
MAX_TEXT_BODY = 4096

MAX_PRODUCTS_IN_LIST = 10
PRODUCTS_SHOWN_INDIVIDUALLY = 3
MAX_SIMILAR_CARDS = 3
MAX_ORDERS_SHOWN_INDIVIDUALLY = 3
DETAIL_DESCRIPTION_CHARS = 200

PRIMARY_PAYMENT_TYPES = (PaymentMethodType.MOBILE_MONEY.value, PaymentMethodType.DIGITAL_WALLET.value)
EXCLUDED_PAYMENT_TYPES = (PaymentMethodType.BANK_TRANSFER.value,)


def _clip(text: str, limit: int) -> str:
    return (text or "")[:limit]


def format_amount(amount: float) -> str:
    """12500.0 -> '12 500'; cents are kept only when present."""
    number = f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"
    return number.replace(",", " ")


def format_price(amount: float, currency: str = "FCFA") -> str:
    return f"{format_amount(amount)} {currency}"


# --- Message builders ---

def text_message(body: str) -> OutboundMessage:
    return OutboundMessage(type="text", body={"body": _clip(body, MAX_TEXT_BODY)})


def image_message(link: str, caption: Optional[str] = None) -> OutboundMessage:
    body = {"link": link}
    if caption:
        body["caption"] = _clip(caption, MAX_CAPTION)
    return OutboundMessage(type="image", body=body)


def button_message(body: str, buttons: Sequence[Tuple[str, str]], header_image: Optional[str] = None) -> OutboundMessage:
    """An interactive reply-button message; only the first three (id, title) pairs are kept."""
    interactive = {
        "type": "button",
        "body": {"text": _clip(body, MAX_INTERACTIVE_BODY)},
        "action": {
            "buttons": [
                {"type": "reply", "reply": {"id": button_id, "title": _clip(title, MAX_BUTTON_TITLE)}}
                for button_id, title in list(buttons)[:MAX_BUTTONS]
            ]
        },
    }
    if header_image:
        interactive["header"] = {"type": "image", "image": {"link": header_image}}
    return OutboundMessage(type="interactive", body=interactive)


def list_message(body: str, button: str, section_title: str, rows: Sequence[Tuple[str, str, str]]) -> OutboundMessage:
    """An interactive list message with one section of at most ten (id, title, description) rows."""
    return OutboundMessage(
        type="interactive",
        body={
            "type": "list",
            "body": {"text": _clip(body, MAX_INTERACTIVE_BODY)},
            "action": {
                "button": _clip(button, MAX_LIST_BUTTON),
                "sections": [{
                    "title": _clip(section_title, MAX_SECTION_TITLE),
                    "rows": [
                        {
                            "id": row_id,
                            "title": _clip(title, MAX_ROW_TITLE),
                            "description": _clip(description, MAX_ROW_DESCRIPTION),
                        }
                        for row_id, title, description in list(rows)[:MAX_LIST_ROWS]
                    ],
                }],
            },
        },
    )


def text_with_suggestions(text: str, suggestions: List[str]) -> OutboundMessage:
    if suggestions:
        buttons = [(f"suggestion_{i}", label) for i, label in enumerate(suggestions[:MAX_BUTTONS])]
        return button_message(text, buttons)
    return text_message(text)


# --- Products ---

def _product_card(product: Product, language: str) -> OutboundMessage:
    price = format_price(product.price, product.currency)
    if product.primary_image:
        return image_message(product.primary_image, strings.PRODUCT_CAPTION.format(name=product.name, price=price))
    return text_message(localized(strings.PRODUCT_CARD, language).format(name=product.name, price=price))


def render_product_detail(product: Product, language: str) -> List[OutboundMessage]:
    messages = []
    if product.primary_image:
        messages.append(image_message(product.primary_image, product.name))
    body = localized(strings.PRODUCT_DETAIL, language).format(
        name=product.name,
        price=format_price(product.price, product.currency),
        stock=localized(strings.IN_STOCK if product.in_stock else strings.OUT_OF_STOCK, language),
        description=_clip(product.description, DETAIL_DESCRIPTION_CHARS),
    )
    messages.append(button_message(body, [
        (f"add_cart_{product.id}", localized(strings.ADD_TO_CART, language)),
        (f"buy_now_{product.id}", localized(strings.BUY_NOW, language)),
        (f"product_{product.id}", localized(strings.MORE_INFO, language)),
    ]))
    return messages


def render_similar_products(products: List[Product], language: str) -> List[OutboundMessage]:
    if not products:
        return []
    messages = [text_message(localized(strings.SIMILAR_PRODUCTS_HEADER, language))]
    messages.extend(_product_card(p, language) for p in products[:MAX_SIMILAR_CARDS])
    return messages


def render_product_collection(products: List[Product], language: str, recommendations: bool = False) -> List[OutboundMessage]:
    """
    Up to ten products go into a single list message. Larger result sets show
    the first three as image cards followed by category filter buttons. A list
    holds at most ten rows.
    """
    if not products:
        return [text_message(localized(strings.NO_PRODUCTS_FOUND, language))]

    if len(products) <= MAX_PRODUCTS_IN_LIST:
        if recommendations:
            body = f"{localized(strings.RECOMMENDATIONS_HEADER, language)}\n{localized(strings.RECOMMENDATIONS_BODY, language)}"
            button, section = strings.RECOMMENDATIONS_BUTTON, strings.RECOMMENDATIONS_SECTION
        else:
            header = localized(strings.PRODUCT_LIST_HEADER, language).format(count=len(products))
            body = f"{header}\n\n{localized(strings.PRODUCT_LIST_BODY, language)}"
            button, section = strings.PRODUCT_LIST_BUTTON, strings.PRODUCT_LIST_SECTION
        rows = [(f"product_{p.id}", p.name, format_price(p.price, p.currency)) for p in products]
        return [list_message(body, localized(button, language), localized(section, language), rows)]

    messages = [_product_card(p, language) for p in products[:PRODUCTS_SHOWN_INDIVIDUALLY]]
    categories = list(dict.fromkeys(p.category for p in products if p.category))[:MAX_BUTTONS]
    filter_body = localized(strings.CATEGORY_FILTER_BODY, language).format(count=len(products))
    if categories:
        messages.append(button_message(filter_body, [(f"filter_{c}", c) for c in categories]))
    else:
        messages.append(text_message(filter_body))
    return messages


# --- Payments ---

def _pay_id(method: PaymentMethod, order_id: Optional[str]) -> str:
    return f"pay_{method.id}_{order_id}" if order_id else f"pay_{method.id}"


def _payment_description(method: PaymentMethod, language: str) -> str:
    descriptions = strings.PAYMENT_DESCRIPTIONS.get(language) or strings.PAYMENT_DESCRIPTIONS[strings.DEFAULT_LANGUAGE]
    return descriptions.get(method.type) or localized(strings.PAYMENT_DESCRIPTION_OTHER, language)


def render_payment_options(methods: List[PaymentMethod], order_id: Optional[str], language: str) -> List[OutboundMessage]:
    """
    Mobile money and wallets are offered first as up to three buttons; the
    remaining methods (bank transfers excluded) follow as buttons, or as a list
    when there are more than three of them.
    """
    if order_id:
        header = localized(strings.PAYMENT_OPTIONS_HEADER, language).format(order_id=order_id)
    else:
        header = localized(strings.PAYMENT_OPTIONS_HEADER_NO_ORDER, language)
    messages = [text_message(header)]

    primary = [m for m in methods if m.type in PRIMARY_PAYMENT_TYPES]
    secondary = [m for m in methods if m.type not in PRIMARY_PAYMENT_TYPES and m.type not in EXCLUDED_PAYMENT_TYPES]
    if not primary and not secondary:
        messages.append(text_message(localized(strings.PAYMENT_METHOD_UNAVAILABLE, language)))
        return messages

    if primary:
        messages.append(button_message(
            localized(strings.PRIMARY_PAYMENT_BODY, language),
            [(_pay_id(m, order_id), m.name) for m in primary[:MAX_BUTTONS]],
        ))

    if len(secondary) > MAX_BUTTONS:
        messages.append(list_message(
            localized(strings.SECONDARY_PAYMENT_LIST_BODY, language),
            localized(strings.SECONDARY_PAYMENT_BUTTON, language),
            localized(strings.SECONDARY_PAYMENT_SECTION, language),
            [(_pay_id(m, order_id), m.name, _payment_description(m, language)) for m in secondary],
        ))
    elif secondary:
        messages.append(button_message(
            localized(strings.SECONDARY_PAYMENT_BODY, language),
            [(_pay_id(m, order_id), m.name) for m in secondary],
        ))
    return messages


def render_payment_instructions(transaction: PaymentTransaction, method: PaymentMethod, language: str) -> List[OutboundMessage]:
    amount = format_amount(transaction.amount)
    if method.type == PaymentMethodType.MOBILE_MONEY.value:
        body = localized(strings.MOBILE_MONEY_INSTRUCTIONS, language).format(
            method=method.name,
            merchant_number=transaction.merchant_number or method.merchant_number or "",
            amount=amount,
            currency=transaction.currency,
            reference=transaction.reference,
        )
        return [text_message(body)]
    if transaction.payment_link:
        body = localized(strings.PAYMENT_LINK_INSTRUCTIONS, language).format(
            amount=amount, currency=transaction.currency, link=transaction.payment_link,
        )
        return [text_message(body)]
    return []


# --- Orders ---

def _status_label(order: Order, language: str) -> str:
    labels = strings.ORDER_STATUS_LABELS.get(language) or strings.ORDER_STATUS_LABELS[strings.DEFAULT_LANGUAGE]
    return labels.get(order.status.value, order.status.value)


def render_order_status(order: Order, language: str) -> OutboundMessage:
    payment_labels = strings.PAYMENT_STATUS_LABELS.get(language) or strings.PAYMENT_STATUS_LABELS[strings.DEFAULT_LANGUAGE]
    body = localized(strings.ORDER_STATUS, language).format(
        icon=strings.ORDER_STATUS_ICONS.get(order.status.value, "📋"),
        order_id=order.id,
        status=_status_label(order, language),
        date=order.created_at.strftime("%d/%m/%Y"),
        total=format_amount(order.total_amount),
        currency=order.currency,
        payment_status=payment_labels.get(order.payment_status.value, order.payment_status.value),
    )
    if order.tracking_number:
        body += localized(strings.ORDER_TRACKING, language).format(tracking_number=order.tracking_number)
    return text_message(body)


def render_recent_orders(orders: List[Order], language: str) -> List[OutboundMessage]:
    if not orders:
        return [text_message(localized(strings.NO_ORDERS_FOUND, language))]
    messages = [text_message(localized(strings.RECENT_ORDERS_HEADER, language))]
    if len(orders) <= MAX_ORDERS_SHOWN_INDIVIDUALLY:
        messages.extend(render_order_status(order, language) for order in orders)
        return messages

    row_title = localized(strings.ORDER_ROW_TITLE, language)
    rows = [
        (f"track_order_{o.id}", row_title.format(order_id=o.id), f"{_status_label(o, language)} - {o.created_at.strftime('%d/%m/%Y')}")
        for o in orders
    ]
    messages.append(list_message(
        localized(strings.RECENT_ORDERS_BODY, language),
        localized(strings.RECENT_ORDERS_BUTTON, language),
        localized(strings.RECENT_ORDERS_SECTION, language),
        rows,
    ))
    return messages


def render_order_confirmation(order: Order, language: str) -> List[OutboundMessage]:
    items = "\n".join(
        strings.ORDER_ITEM_LINE.format(
            quantity=item.quantity,
            name=item.name or item.product_id,
            subtotal=format_price(item.price * item.quantity, order.currency),
        )
        for item in order.items
    )
    summary = localized(strings.ORDER_CONFIRMATION, language).format(
        order_id=order.id,
        items=items,
        total=format_amount(order.total_amount + order.shipping_fee),
        currency=order.currency,
    )
    return [
        text_message(summary),
        button_message(localized(strings.ORDER_NEXT_STEPS, language), [
            (f"pay_order_{order.id}", localized(strings.PAY_NOW, language)),
            (f"track_order_{order.id}", localized(strings.TRACK_ORDER, language)),
            ("suggestion_0", localized(strings.CONTINUE_SHOPPING, language)),
        ]),
    ]


# --- Action presenters ---
# Each presenter renders one action kind. The first action in PRESENTERS order
# found in a turn decides the presentation; anything else falls back to the
# composed reply with quick-reply buttons.

Presenter = Callable[[Action, str, List[str], List[Action], str], List[OutboundMessage]]


def _present_product_detail(action, text, suggestions, actions, language):
    messages = render_product_detail(action.payload["product"], language)
    similar = find_action(actions, ActionType.SHOW_SIMILAR_PRODUCTS)
    if similar:
        messages.extend(render_similar_products(similar.payload.get("products") or [], language))
    return messages


def _present_products(action, text, suggestions, actions, language):
    products = action.payload.get("products") or []
    if len(products) == 1:
        return render_product_detail(products[0], language)
    return render_product_collection(products, language)


def _present_payment(action, text, suggestions, actions, language):
    transaction, method = action.payload["transaction"], action.payload["method"]
    messages = render_payment_instructions(transaction, method, language)
    messages.append(text_with_suggestions(text, suggestions))
    return messages


def _present_payment_methods(action, text, suggestions, actions, language):
    return render_payment_options(action.payload.get("methods") or [], action.payload.get("order_id"), language)


def _present_unavailable_method(action, text, suggestions, actions, language):
    messages = [text_message(localized(strings.PAYMENT_METHOD_UNAVAILABLE, language))]
    methods = action.payload.get("methods") or []
    if methods:
        messages.extend(render_payment_options(methods, action.payload.get("order_id"), language))
    return messages


def _present_order_created(action, text, suggestions, actions, language):
    return render_order_confirmation(action.payload["order"], language)


def _present_order_status(action, text, suggestions, actions, language):
    return [render_order_status(action.payload["order"], language)]


def _present_order_cancelled(action, text, suggestions, actions, language):
    order = action.payload["order"]
    return [text_message(localized(strings.ORDER_CANCELLED, language).format(order_id=order.id))]


def _present_recent_orders(action, text, suggestions, actions, language):
    return render_recent_orders(action.payload.get("orders") or [], language)


def _present_end(action, text, suggestions, actions, language):
    return [text_message(localized(strings.END_CONVERSATION, language))]


PRESENTERS: Dict[ActionType, Presenter] = {
    ActionType.END_CONVERSATION: _present_end,
    ActionType.SHOW_PRODUCT_DETAIL: _present_product_detail,
    ActionType.SHOW_PRODUCTS: _present_products,
    ActionType.PROCESS_PAYMENT: _present_payment,
    ActionType.SHOW_PAYMENT_METHODS: _present_payment_methods,
    ActionType.PAYMENT_METHOD_UNAVAILABLE: _present_unavailable_method,
    ActionType.CREATE_ORDER: _present_order_created,
    ActionType.CANCEL_ORDER: _present_order_cancelled,
    ActionType.CHECK_ORDER_STATUS: _present_order_status,
    ActionType.SHOW_RECENT_ORDERS: _present_recent_orders,
}


def render(text: str, suggestions: List[str], actions: List[Action], language: str = strings.DEFAULT_LANGUAGE) -> List[OutboundMessage]:
    """Returns the ordered messages to send for one turn. Never returns an empty list."""
    for action_type, presenter in PRESENTERS.items():
        action = find_action(actions, action_type)
        if action is None:
            continue
        try:
            messages = presenter(action, text, suggestions, actions, language)
        except (KeyError, AttributeError, ValueError) as e:
            logger.error(f"Could not render {action_type.value}, falling back to the text reply: {e}")
            break
        if messages:
            return messages

    messages = []
    ticket = find_action(actions, ActionType.CREATE_SUPPORT_TICKET)
    if ticket:
        messages.append(text_message(
            localized(strings.SUPPORT_TICKET_CREATED, language).format(ticket_id=ticket.payload["ticket"].id)
        ))
    messages.append(text_with_suggestions(text, suggestions))
    recommended = find_action(actions, ActionType.SHOW_RECOMMENDATIONS)
    if recommended and recommended.payload.get("products"):
        messages.extend(render_product_collection(recommended.payload["products"], language, recommendations=True))
    return messages
