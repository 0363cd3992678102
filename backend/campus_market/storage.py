"""
Data access layer.

One function per query shape. Callers pass an open Session; functions that
mutate commit before returning. Wallet and order operations write the balance
change and its ledger row in the same transaction.
"""
import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, col

from campus_market.models.category_db import Category
from campus_market.models.chat_support_db import ChatSupportMessage
from campus_market.models.favorite_db import Favorite
from campus_market.models.listing import ListingFilters
from campus_market.models.listing_db import Listing
from campus_market.models.message_db import Message
from campus_market.models.order_db import Order
from campus_market.models.review_db import Review
from campus_market.models.user_db import User
from campus_market.models.wallet_db import WalletTransaction

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")
SUPPORT_REPLY = "Thanks for your message! Our support team will get back to you soon."


class StorageError(Exception):
    """Base class for errors raised by the data access layer."""


class NotFoundError(StorageError):
    pass


class ConflictError(StorageError):
    pass


class PermissionDeniedError(StorageError):
    pass


class InvalidOperationError(StorageError):
    pass


class InsufficientFundsError(InvalidOperationError):
    pass


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


# ---------- Users ----------

def get_user(session: Session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> Optional[User]:
    return session.exec(
        select(User).where(func.lower(User.username) == username.lower())
    ).first()


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(
        select(User).where(func.lower(User.email) == email.lower())
    ).first()


def create_user(session: Session, **fields) -> User:
    user = User(**fields)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise InvalidOperationError("Username or email already registered")
    session.refresh(user)
    logger.info("Created user %s (id=%s)", user.username, user.id)
    return user


def update_user(session: Session, user: User, changes: Dict[str, Any]) -> User:
    for key, value in changes.items():
        setattr(user, key, value)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def public_user(user: User, private: bool = False) -> Dict[str, Any]:
    """User fields safe to return; the wallet balance only for the owner."""
    exclude = {"hashed_password"} if private else {"hashed_password", "wallet_balance"}
    return user.model_dump(mode="json", exclude=exclude)


# ---------- Categories ----------

def get_categories(session: Session) -> List[Category]:
    return list(session.exec(select(Category).order_by(Category.id)).all())


def get_category(session: Session, category_id: int) -> Optional[Category]:
    return session.get(Category, category_id)


def get_category_by_slug(session: Session, slug: str) -> Optional[Category]:
    return session.exec(select(Category).where(Category.slug == slug)).first()


def create_category(session: Session, name: str, slug: str) -> Category:
    category = Category(name=name, slug=slug, item_count=0)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def _adjust_item_count(session: Session, category_id: int, delta: int) -> None:
    category = session.get(Category, category_id)
    if category is not None:
        category.item_count = max(category.item_count + delta, 0)
        session.add(category)


# ---------- Listings ----------

LISTING_SORTS = {
    "newest": (col(Listing.created_at).desc(), col(Listing.id).desc()),
    "oldest": (col(Listing.created_at).asc(), col(Listing.id).asc()),
    "price_asc": (col(Listing.price).asc(), col(Listing.id).desc()),
    "price_desc": (col(Listing.price).desc(), col(Listing.id).desc()),
}


def get_listings(session: Session, filters: ListingFilters, sort: str = "newest",
                 limit: int = 100, offset: int = 0) -> List[Listing]:
    """Listings matching the filters, sorted and paginated."""
    statement = select(Listing)

    if filters.category_id is not None:
        statement = statement.where(Listing.category_id == filters.category_id)
    if filters.search:
        pattern = f"%{filters.search.lower()}%"
        statement = statement.where(or_(
            func.lower(Listing.title).like(pattern),
            func.lower(Listing.description).like(pattern),
        ))
    if filters.min_price is not None:
        statement = statement.where(Listing.price >= filters.min_price)
    if filters.max_price is not None:
        statement = statement.where(Listing.price <= filters.max_price)
    if filters.condition:
        statement = statement.where(Listing.condition == filters.condition)
    if filters.location:
        statement = statement.where(Listing.location == filters.location)
    if filters.seller_id is not None:
        statement = statement.where(Listing.seller_id == filters.seller_id)

    order = LISTING_SORTS.get(sort, LISTING_SORTS["newest"])
    statement = statement.order_by(*order).offset(offset).limit(limit)
    return list(session.exec(statement).all())


def get_featured_listings(session: Session, limit: int = 4) -> List[Listing]:
    # Urgent first, then newest
    statement = (
        select(Listing)
        .where(Listing.is_sold == False)  # noqa: E712
        .order_by(col(Listing.is_urgent).desc(), col(Listing.created_at).desc(), col(Listing.id).desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def get_recent_listings(session: Session, limit: int = 4) -> List[Listing]:
    statement = (
        select(Listing)
        .where(Listing.is_sold == False)  # noqa: E712
        .order_by(col(Listing.created_at).desc(), col(Listing.id).desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def get_listing(session: Session, listing_id: int) -> Optional[Listing]:
    return session.get(Listing, listing_id)


def create_listing(session: Session, data: Dict[str, Any], seller_id: int,
                   images: List[str], attachments: List[str]) -> Listing:
    if get_category(session, data["category_id"]) is None:
        raise NotFoundError("Category not found")

    listing = Listing(
        **data,
        seller_id=seller_id,
        images=json.dumps(images),
        attachments=json.dumps(attachments),
    )
    session.add(listing)
    _adjust_item_count(session, listing.category_id, 1)
    session.commit()
    session.refresh(listing)
    logger.info("User %s created listing %s", seller_id, listing.id)
    return listing


def update_listing(session: Session, listing: Listing, changes: Dict[str, Any]) -> Listing:
    new_category = changes.get("category_id")
    if new_category is not None and new_category != listing.category_id:
        if get_category(session, new_category) is None:
            raise NotFoundError("Category not found")
        _adjust_item_count(session, listing.category_id, -1)
        _adjust_item_count(session, new_category, 1)

    for key, value in changes.items():
        if key in ("images", "attachments"):
            value = json.dumps(value)
        setattr(listing, key, value)
    session.add(listing)
    session.commit()
    session.refresh(listing)
    return listing


def delete_listing(session: Session, listing: Listing) -> None:
    has_orders = session.exec(select(Order.id).where(Order.listing_id == listing.id)).first()
    has_reviews = session.exec(select(Review.id).where(Review.listing_id == listing.id)).first()
    if has_orders is not None or has_reviews is not None:
        raise ConflictError("Listing has order or review history and cannot be deleted")

    for favorite in session.exec(select(Favorite).where(Favorite.listing_id == listing.id)).all():
        session.delete(favorite)
    for message in session.exec(select(Message).where(Message.listing_id == listing.id)).all():
        session.delete(message)
    listing_id = listing.id
    _adjust_item_count(session, listing.category_id, -1)
    session.delete(listing)
    session.commit()
    logger.info("Deleted listing %s", listing_id)


def listing_files(listing: Listing) -> Tuple[List[str], List[str]]:
    return json.loads(listing.images or "[]"), json.loads(listing.attachments or "[]")


def serialize_listing(listing: Listing) -> Dict[str, Any]:
    data = listing.model_dump(mode="json")
    data["images"], data["attachments"] = listing_files(listing)
    return data


def seller_rating(session: Session, seller_id: int) -> Tuple[float, int]:
    """(mean rating, review count); the mean is 0 without reviews."""
    avg, count = session.exec(
        select(func.avg(Review.rating), func.count(Review.id)).where(Review.seller_id == seller_id)
    ).one()
    return (float(avg) if avg is not None else 0.0), int(count)


def enrich_listing(session: Session, listing: Listing, viewer_id: Optional[int] = None,
                   favorite: Optional[bool] = None) -> Dict[str, Any]:
    """Listing with seller, seller rating and the viewer's favorite flag."""
    data = serialize_listing(listing)
    seller = get_user(session, listing.seller_id)
    rating, count = seller_rating(session, listing.seller_id)
    if favorite is None:
        favorite = viewer_id is not None and is_favorite(session, viewer_id, listing.id)
    data.update({
        "seller": public_user(seller) if seller else None,
        "seller_rating": rating,
        "review_count": count,
        "is_favorite": favorite,
    })
    return data


# ---------- Favorites ----------

def get_user_favorites(session: Session, user_id: int) -> List[Listing]:
    statement = (
        select(Listing)
        .join(Favorite, Favorite.listing_id == Listing.id)
        .where(Favorite.user_id == user_id)
        .order_by(col(Favorite.id).desc())
    )
    return list(session.exec(statement).all())


def _get_favorite(session: Session, user_id: int, listing_id: int) -> Optional[Favorite]:
    return session.exec(
        select(Favorite).where(Favorite.user_id == user_id, Favorite.listing_id == listing_id)
    ).first()


def is_favorite(session: Session, user_id: int, listing_id: int) -> bool:
    return _get_favorite(session, user_id, listing_id) is not None


def add_favorite(session: Session, user_id: int, listing_id: int) -> Favorite:
    existing = _get_favorite(session, user_id, listing_id)
    if existing:
        return existing
    favorite = Favorite(user_id=user_id, listing_id=listing_id)
    session.add(favorite)
    session.commit()
    session.refresh(favorite)
    return favorite


def remove_favorite(session: Session, user_id: int, listing_id: int) -> bool:
    favorite = _get_favorite(session, user_id, listing_id)
    if favorite is None:
        return False
    session.delete(favorite)
    session.commit()
    return True


def toggle_favorite(session: Session, user_id: int, listing_id: int) -> str:
    if remove_favorite(session, user_id, listing_id):
        return "removed"
    add_favorite(session, user_id, listing_id)
    return "added"


# ---------- Messages ----------

def get_messages_by_user(session: Session, user_id: int) -> List[Message]:
    statement = (
        select(Message)
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(col(Message.created_at).asc(), col(Message.id).asc())
    )
    return list(session.exec(statement).all())


def get_thread(session: Session, user_id: int, other_id: int, listing_id: int) -> List[Message]:
    statement = (
        select(Message)
        .where(
            Message.listing_id == listing_id,
            or_(
                and_(Message.sender_id == user_id, Message.receiver_id == other_id),
                and_(Message.sender_id == other_id, Message.receiver_id == user_id),
            ),
        )
        .order_by(col(Message.created_at).asc(), col(Message.id).asc())
    )
    return list(session.exec(statement).all())


def create_message(session: Session, sender_id: int, receiver_id: int,
                   listing_id: int, content: str) -> Message:
    message = Message(sender_id=sender_id, receiver_id=receiver_id,
                      listing_id=listing_id, content=content, read=False)
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def mark_thread_read(session: Session, reader_id: int, other_id: int, listing_id: int) -> int:
    """Mark messages from other_id to reader_id about the listing as read."""
    unread = session.exec(
        select(Message).where(
            Message.sender_id == other_id,
            Message.receiver_id == reader_id,
            Message.listing_id == listing_id,
            Message.read == False,  # noqa: E712
        )
    ).all()
    for message in unread:
        message.read = True
        session.add(message)
    if unread:
        session.commit()
    return len(unread)


def unread_count(session: Session, user_id: int) -> int:
    return session.exec(
        select(func.count(Message.id)).where(
            Message.receiver_id == user_id,
            Message.read == False,  # noqa: E712
        )
    ).one()


def get_conversations(session: Session, user_id: int) -> List[Dict[str, Any]]:
    """
    Group the user's messages into one conversation per (other user, listing).

    Conversations whose other user or listing no longer exists are skipped.
    The result is ordered by the most recent message, newest first.
    """
    conversations: Dict[Tuple[int, int], Optional[Dict[str, Any]]] = {}

    for message in get_messages_by_user(session, user_id):
        other_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        key = (other_id, message.listing_id)

        if key not in conversations:
            other_user = get_user(session, other_id)
            listing = get_listing(session, message.listing_id)
            if other_user is None or listing is None:
                conversations[key] = None
                continue
            conversations[key] = {
                "other_user": public_user(other_user),
                "listing": serialize_listing(listing),
                "messages": [],
                "last_message_at": None,
                "unread_count": 0,
            }

        conversation = conversations[key]
        if conversation is None:
            continue
        conversation["messages"].append(message.model_dump(mode="json"))
        # Messages arrive in chronological order
        conversation["last_message_at"] = message.created_at
        if message.receiver_id == user_id and not message.read:
            conversation["unread_count"] += 1

    result = sorted(
        (c for c in conversations.values() if c is not None),
        key=lambda c: c["last_message_at"],
        reverse=True,
    )
    for conversation in result:
        conversation["last_message_at"] = conversation["last_message_at"].isoformat()
    return result


# ---------- Reviews ----------

def get_reviews_for_seller(session: Session, seller_id: int) -> List[Review]:
    statement = (
        select(Review)
        .where(Review.seller_id == seller_id)
        .order_by(col(Review.created_at).desc(), col(Review.id).desc())
    )
    return list(session.exec(statement).all())


def get_review_for_listing(session: Session, listing_id: int, reviewer_id: int) -> Optional[Review]:
    return session.exec(
        select(Review).where(Review.listing_id == listing_id, Review.reviewer_id == reviewer_id)
    ).first()


def create_review(session: Session, reviewer_id: int, seller_id: int, listing_id: int,
                  rating: int, comment: Optional[str] = None) -> Review:
    if get_review_for_listing(session, listing_id, reviewer_id):
        raise InvalidOperationError("You have already reviewed this listing")
    review = Review(reviewer_id=reviewer_id, seller_id=seller_id,
                    listing_id=listing_id, rating=rating, comment=comment)
    session.add(review)
    session.commit()
    session.refresh(review)
    return review


# ---------- Wallet ----------

def _lock_user(session: Session, user_id: int) -> User:
    user = session.exec(select(User).where(User.id == user_id).with_for_update()).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def _positive_amount(amount) -> Decimal:
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidOperationError("Amount must be greater than zero")
    return amount


def _credit(session: Session, user_id: int, amount: Decimal, kind: str,
            reference: Optional[str], payment_intent_id: Optional[str] = None) -> WalletTransaction:
    user = _lock_user(session, user_id)
    user.wallet_balance = to_money(user.wallet_balance) + amount
    transaction = WalletTransaction(user_id=user_id, amount=amount, type=kind,
                                    status="completed", reference=reference,
                                    payment_intent_id=payment_intent_id)
    session.add(user)
    session.add(transaction)
    return transaction


def _debit(session: Session, user_id: int, amount: Decimal, kind: str,
           reference: Optional[str]) -> WalletTransaction:
    user = _lock_user(session, user_id)
    balance = to_money(user.wallet_balance)
    if balance < amount:
        raise InsufficientFundsError("Insufficient wallet balance")
    user.wallet_balance = balance - amount
    transaction = WalletTransaction(user_id=user_id, amount=amount, type=kind,
                                    status="completed", reference=reference)
    session.add(user)
    session.add(transaction)
    return transaction


def get_wallet_balance(session: Session, user_id: int) -> Decimal:
    user = get_user(session, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return to_money(user.wallet_balance)


def get_wallet_transactions(session: Session, user_id: int) -> List[WalletTransaction]:
    statement = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(col(WalletTransaction.created_at).desc(), col(WalletTransaction.id).desc())
    )
    return list(session.exec(statement).all())


def has_payment_intent(session: Session, payment_intent_id: str) -> bool:
    return session.exec(
        select(WalletTransaction.id).where(WalletTransaction.payment_intent_id == payment_intent_id)
    ).first() is not None


def deposit(session: Session, user_id: int, amount, reference: Optional[str] = None,
            payment_intent_id: Optional[str] = None) -> WalletTransaction:
    """
    Credit a top-up. A payment intent is credited at most once; a repeat
    raises ConflictError.
    """
    amount = _positive_amount(amount)
    try:
        _lock_user(session, user_id)
        if payment_intent_id and has_payment_intent(session, payment_intent_id):
            raise ConflictError("Payment already credited")
        transaction = _credit(session, user_id, amount, "deposit", reference, payment_intent_id)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Payment already credited")
    except StorageError:
        session.rollback()
        raise
    session.refresh(transaction)
    logger.info("Deposited %s to wallet of user %s (%s)", amount, user_id, reference)
    return transaction


def withdraw(session: Session, user_id: int, amount, reference: Optional[str] = None) -> WalletTransaction:
    amount = _positive_amount(amount)
    try:
        transaction = _debit(session, user_id, amount, "withdraw", reference)
        session.commit()
    except StorageError:
        session.rollback()
        raise
    session.refresh(transaction)
    logger.info("Withdrew %s from wallet of user %s", amount, user_id)
    return transaction


# ---------- Orders ----------

def get_buyer_orders(session: Session, user_id: int) -> List[Order]:
    return list(session.exec(
        select(Order).where(Order.buyer_id == user_id)
        .order_by(col(Order.created_at).desc(), col(Order.id).desc())
    ).all())


def get_seller_sales(session: Session, user_id: int) -> List[Order]:
    return list(session.exec(
        select(Order).where(Order.seller_id == user_id)
        .order_by(col(Order.created_at).desc(), col(Order.id).desc())
    ).all())


def get_order(session: Session, order_id: int) -> Optional[Order]:
    return session.get(Order, order_id)


def create_order(session: Session, buyer_id: int, listing_id: int) -> Order:
    """Place a pending order, debit the buyer and take the listing off sale."""
    listing = session.exec(
        select(Listing).where(Listing.id == listing_id).with_for_update()
    ).first()
    if listing is None:
        raise NotFoundError("Listing not found")
    if listing.seller_id == buyer_id:
        raise InvalidOperationError("You cannot buy your own listing")
    if listing.is_sold:
        raise InvalidOperationError("Listing is already sold")

    amount = to_money(listing.price)
    try:
        order = Order(buyer_id=buyer_id, seller_id=listing.seller_id,
                      listing_id=listing.id, amount=amount, status="pending")
        session.add(order)
        session.flush()
        _debit(session, buyer_id, amount, "purchase", f"Order #{order.id}")
        listing.is_sold = True
        session.add(listing)
        session.commit()
    except StorageError:
        session.rollback()
        raise
    session.refresh(order)
    logger.info("Order %s placed by user %s for listing %s (%s)", order.id, buyer_id, listing_id, amount)
    return order


def update_order_status(session: Session, order_id: int, actor_id: int, status: str) -> Order:
    """
    Apply an order status transition requested by actor_id.

    pending -> completed (buyer only) pays the seller.
    pending -> cancelled (buyer or seller) refunds the buyer and relists the item.
    """
    order = session.exec(select(Order).where(Order.id == order_id).with_for_update()).first()
    if order is None:
        raise NotFoundError("Order not found")
    is_buyer = order.buyer_id == actor_id
    is_seller = order.seller_id == actor_id
    if not (is_buyer or is_seller):
        raise PermissionDeniedError("You don't have permission to update this order")

    if order.status == "pending" and status == "completed" and is_buyer:
        next_status, payee, kind, reference = "completed", order.seller_id, "sale", f"Order #{order.id}"
    elif order.status == "pending" and status == "cancelled":
        next_status, payee, kind, reference = "cancelled", order.buyer_id, "refund", f"Refund: Order #{order.id}"
    else:
        raise InvalidOperationError(
            "Invalid status transition or you don't have permission to perform this action"
        )

    try:
        order.status = next_status
        session.add(order)
        _credit(session, payee, to_money(order.amount), kind, reference)
        if next_status == "cancelled":
            listing = session.get(Listing, order.listing_id)
            if listing is not None:
                listing.is_sold = False
                session.add(listing)
        session.commit()
    except StorageError:
        session.rollback()
        raise
    session.refresh(order)
    logger.info("Order %s moved to %s by user %s", order.id, order.status, actor_id)
    return order


# ---------- Chat support ----------

def get_chat_support(session: Session, user_id: int) -> List[ChatSupportMessage]:
    return list(session.exec(
        select(ChatSupportMessage).where(ChatSupportMessage.user_id == user_id)
        .order_by(col(ChatSupportMessage.created_at).asc(), col(ChatSupportMessage.id).asc())
    ).all())


def add_chat_support_exchange(session: Session, user_id: int,
                              content: str) -> Tuple[ChatSupportMessage, ChatSupportMessage]:
    question = ChatSupportMessage(user_id=user_id, content=content, is_from_user=True)
    answer = ChatSupportMessage(user_id=user_id, content=SUPPORT_REPLY, is_from_user=False)
    session.add(question)
    session.add(answer)
    session.commit()
    session.refresh(question)
    session.refresh(answer)
    return question, answer


# ---------- Admin ----------

def get_all_users(session: Session) -> List[User]:
    return list(session.exec(select(User).order_by(User.id)).all())


def get_all_listings(session: Session) -> List[Listing]:
    return list(session.exec(select(Listing).order_by(Listing.id)).all())


def get_stats(session: Session) -> Dict[str, Any]:
    user_count = session.exec(select(func.count(User.id))).one()
    listing_count = session.exec(select(func.count(Listing.id))).one()
    order_count = session.exec(select(func.count(Order.id))).one()
    sales_volume = session.exec(
        select(func.coalesce(func.sum(Order.amount), 0)).where(Order.status == "completed")
    ).one()
    top_categories = session.exec(
        select(Category.name, func.count(Listing.id))
        .join(Listing, Listing.category_id == Category.id)
        .group_by(Category.name)
        .order_by(func.count(Listing.id).desc())
        .limit(5)
    ).all()
    return {
        "user_count": user_count,
        "listing_count": listing_count,
        "order_count": order_count,
        "sales_volume": str(to_money(sales_volume)),
        "top_categories": [[name, count] for name, count in top_categories],
    }
