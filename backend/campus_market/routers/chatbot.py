import logging
from typing import Optional

from fastapi import APIRouter
from openai import OpenAI, OpenAIError

from campus_market.config import config
from campus_market.models.chat import ChatbotRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chatbot", tags=["Chatbot"])

SYSTEM_PROMPT = (
    "You are Campus Market's AI Assistant, a friendly chatbot for a college campus marketplace. "
    "Keep responses concise (2-3 sentences) and practical. You can help with finding products, "
    "recommendations, how to buy and sell items, accounts and profiles, orders, the wallet and "
    "general platform questions. If unsure, say so and suggest related help."
)

# First matching group wins
FALLBACK_REPLIES = [
    (("product", "buy", "find"),
     "Check out All Products to browse items by category, price, and condition!"),
    (("sell",),
     "Use Sell Item in the navbar to list your products and start earning!"),
    (("help", "how"),
     "The Getting Started guide has everything you need to know about Campus Market!"),
    (("price", "cost", "afford"),
     "Browse by price range - items are available for every budget!"),
    (("category", "type"),
     "Use the filters on the All Products page - Electronics, Textbooks, Furniture & more!"),
    (("account", "profile"),
     "Click your profile icon (top right) to manage your account and settings!"),
    (("cart", "checkout"),
     "Click the cart icon to view items and proceed to checkout!"),
]
DEFAULT_FALLBACK = (
    "Try asking me about:\n- Finding products\n- How to buy or sell\n- Platform features\n- Your account"
)


def fallback_reply(message: str) -> str:
    text = message.lower()
    for keywords, reply in FALLBACK_REPLIES:
        if any(keyword in text for keyword in keywords):
            return "Let me help you better!\n\n" + reply
    return "Let me help you better!\n\n" + DEFAULT_FALLBACK


def get_openai_client() -> Optional[OpenAI]:
    if not config.OPENAI_API_KEY:
        return None
    return OpenAI(api_key=config.OPENAI_API_KEY)


@router.post("")
def chat(data: ChatbotRequest):
    client = get_openai_client()
    if client is None:
        return {"reply": fallback_reply(data.message), "source": "fallback"}

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages += [{"role": turn.role, "content": turn.content} for turn in data.history]
    messages.append({"role": "user", "content": data.message})

    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=messages,
            max_tokens=300,
            temperature=0.7,
        )
        reply = ""
        if response.choices:
            reply = (response.choices[0].message.content or "").strip()
    except OpenAIError as e:
        logger.warning("Chatbot request failed: %s", e)
        reply = ""

    if not reply:
        return {"reply": fallback_reply(data.message), "source": "fallback"}
    return {"reply": reply, "source": "ai"}
