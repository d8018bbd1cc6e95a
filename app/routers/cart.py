# app/routers/cart.py
import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from app.core.auth import get_current_user, resolve_user
from app.database import get_session, open_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.medicine_repo import MedicineRepository
from app.schemas.cart import CartChangeEvent, CartItemCreate, CartItemUpdate, CartView
from app.services.cart_feed import cart_feed
from app.services.cart_sync import CartSynchronizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
medicine_repo = MedicineRepository()


def get_cart(
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Per-request CartSynchronizer bound to the caller (guest if no token).
    """
    cart = CartSynchronizer(session, cart_repo, medicine_repo, cart_feed)
    cart.open(current_user.id if current_user else None)
    try:
        yield cart
    finally:
        cart.close()


def _respond(cart: CartSynchronizer) -> CartView:
    """
    Turn the synchronizer state into a response.

    Guests attempting a mutation get 401 so the storefront can send
    them to sign-in.
    """
    if cart.auth_required:
        notices = cart.drain_notices()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=notices[-1].message if notices else "Please sign in to continue",
        )
    return cart.view()


@router.get("", response_model=CartView)
def get_my_cart(cart: CartSynchronizer = Depends(get_cart)):
    """
    Current cart with live medicine snapshots and totals.

    Guests get an empty cart, never an error.
    """
    cart.list()
    return cart.view()


@router.post("", response_model=CartView)
def add_to_cart(
    payload: CartItemCreate,
    cart: CartSynchronizer = Depends(get_cart),
):
    """
    Add a medicine; an existing line is incremented by `quantity`.
    """
    cart.add(payload.medicine_id, payload.quantity)
    return _respond(cart)


@router.patch("/{line_id}", response_model=CartView)
def update_cart_line(
    line_id: uuid.UUID,
    payload: CartItemUpdate,
    cart: CartSynchronizer = Depends(get_cart),
):
    """
    Set the quantity of a line. Zero or less removes it.
    """
    cart.update_quantity(line_id, payload.quantity)
    return _respond(cart)


@router.delete("/{line_id}", response_model=CartView)
def remove_cart_line(
    line_id: uuid.UUID,
    cart: CartSynchronizer = Depends(get_cart),
):
    """
    Remove a line. Removing a line that is already gone succeeds.
    """
    cart.remove(line_id)
    return _respond(cart)


@router.delete("", response_model=CartView)
def clear_cart(cart: CartSynchronizer = Depends(get_cart)):
    """
    Clear the entire cart.
    """
    cart.clear()
    return _respond(cart)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


def _resolve_socket_user(token: str) -> uuid.UUID:
    # Short-lived session: the socket must not hold a pooled connection.
    with open_session() as session:
        return resolve_user(session, token).id


def _finish_disconnect_watch(task: asyncio.Task) -> None:
    if not task.done():
        task.cancel()
        return
    if not task.cancelled() and task.exception() is not None:
        logger.warning(
            "Cart change socket closed with an error",
            exc_info=task.exception(),
        )


@router.websocket("/changes")
async def cart_changes(websocket: WebSocket, token: str | None = None):
    """
    Push the signed-in user's cart row changes as JSON.

    Browsers cannot set headers on WebSocket requests, so the access
    token comes in the `token` query parameter. Clients re-fetch
    GET /cart when an event arrives.
    """
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        user_id = await run_in_threadpool(_resolve_socket_user, token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[CartChangeEvent] = asyncio.Queue()
    # Publishers run in the threadpool; hop back onto the event loop.
    unsubscribe = cart_feed.subscribe(
        user_id,
        lambda change: loop.call_soon_threadsafe(queue.put_nowait, change),
    )
    disconnected: asyncio.Task | None = None

    try:
        await websocket.accept()
        disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
        while True:
            next_change = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {next_change, disconnected},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if disconnected in done:
                next_change.cancel()
                break
            await websocket.send_json(next_change.result().model_dump(mode="json"))
    finally:
        unsubscribe()
        if disconnected is not None:
            _finish_disconnect_watch(disconnected)
