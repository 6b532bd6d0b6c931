# /djula/config/strings.py

# This file contains all user-facing strings, keyed by language code, so they
# can be updated or localized without changing application logic.

DEFAULT_LANGUAGE = "fr"


def localized(entry: dict, language: str | None) -> str:
    """Returns the entry for `language`, falling back to the default language."""
    return entry.get(language or DEFAULT_LANGUAGE) or entry[DEFAULT_LANGUAGE]


# Errors and fallbacks
APOLOGY = {
    "fr": "Désolé, une erreur s'est produite. Veuillez réessayer plus tard.",
    "en": "Sorry, something went wrong. Please try again later.",
}
APOLOGY_SUGGESTIONS = {
    "fr": ["Aide", "Réessayer", "Contacter support"],
    "en": ["Help", "Try again", "Contact support"],
}
COMPOSE_FALLBACK = {
    "fr": "Je m'excuse, mais j'ai rencontré un problème technique. Comment puis-je vous aider autrement?",
    "en": "I apologize, but I ran into a technical problem. How else can I help you?",
}
ACTION_ERROR = {
    "fr": "Une erreur s'est produite lors du traitement de votre demande.",
    "en": "An error occurred while processing your request.",
}

# Inbound placeholders for non-text messages
IMAGE_PLACEHOLDER = "[Image received]"
AUDIO_PLACEHOLDER = "[Audio received]"
VIDEO_PLACEHOLDER = "[Video received]"
DOCUMENT_PLACEHOLDER = "[Document received]"
LOCATION_PLACEHOLDER = "[Location received: {latitude}, {longitude}]"
UNSUPPORTED_PLACEHOLDER = "[Unsupported message received]"
EMPTY_PLACEHOLDER = "[Empty message received]"

# Quick replies, keyed by intent type and refinement
SUGGESTED_REPLIES = {
    "fr": {
        "CATALOG_BROWSE_WITH_PRODUCTS": ["Voir plus de détails", "Autres produits", "Filtrer par prix"],
        "CATALOG_BROWSE": ["Voir les produits", "Catégories", "Filtrer par prix"],
        "PRODUCT_QUERY_WITH_DETAIL": ["Ajouter au panier", "Acheter maintenant", "Produits similaires"],
        "PRODUCT_QUERY": ["Plus d'infos", "Ajouter au panier", "Produits similaires"],
        "ORDER_PLACEMENT_CREATED": ["Payer maintenant", "Suivre commande", "Continuer mes achats"],
        "ORDER_PLACEMENT": ["Confirmer commande", "Modifier panier", "Options de livraison"],
        "ORDER_STATUS": ["Suivre commande", "Contacter support", "Annuler commande"],
        "PAYMENT": ["Aide au paiement", "Autres méthodes", "Contacter support"],
        "CUSTOMER_SUPPORT": ["FAQ", "Mes commandes", "Retourner au catalogue"],
        "UNKNOWN": ["Catalogue produits", "Mes commandes", "Aide"],
    },
    "en": {
        "CATALOG_BROWSE_WITH_PRODUCTS": ["More details", "Other products", "Filter by price"],
        "CATALOG_BROWSE": ["See products", "Categories", "Filter by price"],
        "PRODUCT_QUERY_WITH_DETAIL": ["Add to cart", "Buy now", "Similar products"],
        "PRODUCT_QUERY": ["More info", "Add to cart", "Similar products"],
        "ORDER_PLACEMENT_CREATED": ["Pay now", "Track order", "Keep shopping"],
        "ORDER_PLACEMENT": ["Confirm order", "Edit cart", "Delivery options"],
        "ORDER_STATUS": ["Track order", "Contact support", "Cancel order"],
        "PAYMENT": ["Payment help", "Other methods", "Contact support"],
        "CUSTOMER_SUPPORT": ["FAQ", "My orders", "Back to catalog"],
        "UNKNOWN": ["Product catalog", "My orders", "Help"],
    },
}

# Product presentation
PRODUCT_LIST_HEADER = {
    "fr": "📋 *{count} Produits Trouvés*\nVoici les produits qui correspondent à votre recherche:",
    "en": "📋 *{count} Products Found*\nHere are the products matching your search:",
}
PRODUCT_LIST_BODY = {
    "fr": "Sélectionnez un produit pour voir les détails:",
    "en": "Select a product to see its details:",
}
PRODUCT_LIST_BUTTON = {"fr": "Voir les produits", "en": "See products"}
PRODUCT_LIST_SECTION = {"fr": "Produits disponibles", "en": "Available products"}
RECOMMENDATIONS_HEADER = {"fr": "🌟 *Recommandé pour vous:*", "en": "🌟 *Recommended for you:*"}
RECOMMENDATIONS_BODY = {
    "fr": "Des produits sélectionnés en fonction de vos préférences:",
    "en": "Products picked for your preferences:",
}
RECOMMENDATIONS_BUTTON = {"fr": "Voir recommandations", "en": "See picks"}
RECOMMENDATIONS_SECTION = {"fr": "Recommandations", "en": "Recommendations"}
CATEGORY_FILTER_BODY = {
    "fr": "Nous avons trouvé {count} produits. Filtrer par catégorie:",
    "en": "We found {count} products. Filter by category:",
}
NO_PRODUCTS_FOUND = {
    "fr": "Désolé, aucun produit n'a été trouvé correspondant à votre recherche.",
    "en": "Sorry, no product matched your search.",
}
PRODUCT_NOT_FOUND = {
    "fr": "Désolé, ce produit n'est plus disponible.",
    "en": "Sorry, this product is no longer available.",
}
PRODUCT_DETAIL = {
    "fr": "*{name}*\n\n💰 *Prix:* {price}\n📦 *Stock:* {stock}\n\n{description}",
    "en": "*{name}*\n\n💰 *Price:* {price}\n📦 *Stock:* {stock}\n\n{description}",
}
IN_STOCK = {"fr": "✅ Disponible", "en": "✅ Available"}
OUT_OF_STOCK = {"fr": "❌ Rupture de stock", "en": "❌ Out of stock"}
ADD_TO_CART = {"fr": "Ajouter au panier", "en": "Add to cart"}
BUY_NOW = {"fr": "Acheter maintenant", "en": "Buy now"}
MORE_INFO = {"fr": "Plus d'infos", "en": "More info"}
SIMILAR_PRODUCTS_HEADER = {
    "fr": "📌 *Produits similaires qui pourraient vous intéresser:*",
    "en": "📌 *Similar products you may like:*",
}
PRODUCT_CARD = {"fr": "✨ *{name}*\nPrix: {price}", "en": "✨ *{name}*\nPrice: {price}"}
PRODUCT_CAPTION = "{name}: {price}"

# Payments
PAYMENT_OPTIONS_HEADER = {
    "fr": "💳 *Options de Paiement*\n\nVeuillez choisir votre méthode de paiement préférée pour votre commande #{order_id}",
    "en": "💳 *Payment Options*\n\nPlease choose your preferred payment method for order #{order_id}",
}
PAYMENT_OPTIONS_HEADER_NO_ORDER = {
    "fr": "💳 *Options de Paiement*\n\nVeuillez choisir votre méthode de paiement préférée",
    "en": "💳 *Payment Options*\n\nPlease choose your preferred payment method",
}
PRIMARY_PAYMENT_BODY = {"fr": "Options Mobile Money:", "en": "Mobile Money options:"}
SECONDARY_PAYMENT_BODY = {"fr": "Autres options de paiement:", "en": "Other payment options:"}
SECONDARY_PAYMENT_LIST_BODY = {"fr": "Choisissez une option de paiement:", "en": "Choose a payment option:"}
SECONDARY_PAYMENT_BUTTON = {"fr": "Voir les options", "en": "See options"}
SECONDARY_PAYMENT_SECTION = {"fr": "Options de paiement", "en": "Payment options"}
PAYMENT_DESCRIPTIONS = {
    "fr": {
        "mobile_money": "Paiement via mobile",
        "digital_wallet": "Portefeuille électronique",
        "card": "Carte bancaire",
        "cash_on_delivery": "Paiement à la livraison",
        "ussd": "Paiement par code USSD",
        "qr_code": "Paiement par QR code",
    },
    "en": {
        "mobile_money": "Pay by mobile",
        "digital_wallet": "Digital wallet",
        "card": "Bank card",
        "cash_on_delivery": "Cash on delivery",
        "ussd": "USSD code payment",
        "qr_code": "QR code payment",
    },
}
PAYMENT_DESCRIPTION_OTHER = {"fr": "Autre méthode de paiement", "en": "Other payment method"}
MOBILE_MONEY_INSTRUCTIONS = {
    "fr": (
        "*Instructions de Paiement {method}*\n\n"
        "1. Ouvrez l'application {method} sur votre téléphone\n"
        "2. Sélectionnez \"Payer\"\n"
        "3. Entrez le numéro: *{merchant_number}*\n"
        "4. Montant: *{amount} {currency}*\n"
        "5. Référence: *{reference}*\n\n"
        "Une fois le paiement effectué, votre commande sera traitée automatiquement."
    ),
    "en": (
        "*{method} Payment Instructions*\n\n"
        "1. Open the {method} app on your phone\n"
        "2. Select \"Pay\"\n"
        "3. Enter the number: *{merchant_number}*\n"
        "4. Amount: *{amount} {currency}*\n"
        "5. Reference: *{reference}*\n\n"
        "Your order is processed automatically once the payment is made."
    ),
}
PAYMENT_LINK_INSTRUCTIONS = {
    "fr": "*Finaliser votre paiement*\n\nVeuillez cliquer sur le lien suivant pour finaliser votre paiement de {amount} {currency}:\n\n{link}",
    "en": "*Complete your payment*\n\nPlease follow this link to pay {amount} {currency}:\n\n{link}",
}
PAYMENT_METHOD_UNAVAILABLE = {
    "fr": "Ce moyen de paiement n'est pas disponible. Veuillez en choisir un autre.",
    "en": "This payment method is not available. Please choose another one.",
}
NO_ACTIVE_ORDER = {
    "fr": "Vous n'avez pas de commande en cours.",
    "en": "You have no order in progress.",
}

# Orders
ORDER_CONFIRMATION = {
    "fr": "🛍️ *Confirmation de Commande #{order_id}*\n\n📦 *Articles:*\n{items}\n\n💵 *Total:* {total} {currency}",
    "en": "🛍️ *Order Confirmation #{order_id}*\n\n📦 *Items:*\n{items}\n\n💵 *Total:* {total} {currency}",
}
ORDER_ITEM_LINE = "• {quantity}x {name} - {subtotal}"
ORDER_NEXT_STEPS = {"fr": "Que souhaitez-vous faire maintenant?", "en": "What would you like to do next?"}
PAY_NOW = {"fr": "Payer maintenant", "en": "Pay now"}
TRACK_ORDER = {"fr": "Suivre ma commande", "en": "Track my order"}
CONTINUE_SHOPPING = {"fr": "Continuer mes achats", "en": "Keep shopping"}
ORDER_STATUS = {
    "fr": "{icon} *État de commande #{order_id}*\n\n*Statut:* {status}\n*Date:* {date}\n*Montant:* {total} {currency}\n*Paiement:* {payment_status}",
    "en": "{icon} *Order status #{order_id}*\n\n*Status:* {status}\n*Date:* {date}\n*Amount:* {total} {currency}\n*Payment:* {payment_status}",
}
ORDER_TRACKING = {
    "fr": "\n\n📍 *Suivi:* {tracking_number}",
    "en": "\n\n📍 *Tracking:* {tracking_number}",
}
ORDER_CANCELLED = {
    "fr": "❌ Votre commande #{order_id} a été annulée.",
    "en": "❌ Your order #{order_id} has been cancelled.",
}
RECENT_ORDERS_HEADER = {"fr": "📋 *Vos commandes récentes:*", "en": "📋 *Your recent orders:*"}
RECENT_ORDERS_BODY = {
    "fr": "Sélectionnez une commande pour voir les détails:",
    "en": "Select an order to see its details:",
}
RECENT_ORDERS_BUTTON = {"fr": "Voir les commandes", "en": "See orders"}
RECENT_ORDERS_SECTION = {"fr": "Vos commandes", "en": "Your orders"}
ORDER_ROW_TITLE = {"fr": "Commande #{order_id}", "en": "Order #{order_id}"}
NO_ORDERS_FOUND = {
    "fr": "Vous n'avez pas encore passé de commande chez nous.",
    "en": "You haven't placed an order with us yet.",
}
ORDER_STATUS_LABELS = {
    "fr": {
        "DRAFT": "Brouillon", "PENDING": "En attente", "CONFIRMED": "Confirmée",
        "PROCESSING": "En traitement", "SHIPPED": "Expédiée", "DELIVERED": "Livrée",
        "CANCELLED": "Annulée", "RETURNED": "Retournée",
    },
    "en": {
        "DRAFT": "Draft", "PENDING": "Pending", "CONFIRMED": "Confirmed",
        "PROCESSING": "Processing", "SHIPPED": "Shipped", "DELIVERED": "Delivered",
        "CANCELLED": "Cancelled", "RETURNED": "Returned",
    },
}
PAYMENT_STATUS_LABELS = {
    "fr": {"PENDING": "En attente", "PROCESSING": "En cours", "COMPLETED": "Complété", "FAILED": "Échoué", "REFUNDED": "Remboursé"},
    "en": {"PENDING": "Pending", "PROCESSING": "Processing", "COMPLETED": "Completed", "FAILED": "Failed", "REFUNDED": "Refunded"},
}
ORDER_STATUS_ICONS = {
    "DRAFT": "📝", "PENDING": "⏳", "CONFIRMED": "✅", "PROCESSING": "🔄",
    "SHIPPED": "🚚", "DELIVERED": "📦", "CANCELLED": "❌", "RETURNED": "↩️",
}

# Support
SUPPORT_TICKET_CREATED = {
    "fr": "Votre ticket de support #{ticket_id} a été créé. Notre équipe vous contactera bientôt.",
    "en": "Your support ticket #{ticket_id} has been created. Our team will contact you soon.",
}
DEFAULT_SUPPORT_ISSUE = "Assistance requested"
END_CONVERSATION = {
    "fr": "Merci d'avoir échangé avec nous. N'hésitez pas à revenir si vous avez d'autres questions!",
    "en": "Thanks for chatting with us. Come back any time if you have more questions!",
}

# Intent topic labels for conversation statistics
INTENT_TOPICS = {
    "fr": {
        "CATALOG_BROWSE": "Parcourir le catalogue",
        "PRODUCT_QUERY": "Informations sur les produits",
        "ORDER_PLACEMENT": "Passer une commande",
        "ORDER_STATUS": "État des commandes",
        "PAYMENT": "Paiements",
        "CUSTOMER_SUPPORT": "Support client",
        "UNKNOWN": "Divers",
    },
    "en": {
        "CATALOG_BROWSE": "Browsing the catalog",
        "PRODUCT_QUERY": "Product information",
        "ORDER_PLACEMENT": "Placing an order",
        "ORDER_STATUS": "Order status",
        "PAYMENT": "Payments",
        "CUSTOMER_SUPPORT": "Customer support",
        "UNKNOWN": "Miscellaneous",
    },
}
