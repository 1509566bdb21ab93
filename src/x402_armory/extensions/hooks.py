"""
Client extension hooks

Hooks run after a payment payload is created and before it is sent. They
share one mutable extensions map and run one at a time, highest priority
first, so a later hook can read what an earlier one wrote.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from x402_armory.extensions.base import PAYMENT_IDENTIFIER, SIGN_IN_WITH_X, extract_extension
from x402_armory.extensions.payment_identifier import (
    append_payment_identifier,
    generate_payment_id,
    payment_identifier_required,
)
from x402_armory.extensions.sign_in_with_x import (
    create_siwx_message,
    create_siwx_payload,
    encode_siwx_header,
    format_siwx_time,
)
from x402_armory.types import AnyPaymentPayload, AnyPaymentRequirements

if TYPE_CHECKING:
    from x402_armory.signers.client import ClientSigner

logger = logging.getLogger(__name__)

SIWX_HOOK_PRIORITY = 100
PAYMENT_ID_HOOK_PRIORITY = 50


@dataclass
class HookContext:
    """State shared by the hooks of one outgoing payment"""

    server_extensions: dict[str, Any]
    requirements: AnyPaymentRequirements
    payload: AnyPaymentPayload
    extensions: dict[str, Any] = field(default_factory=dict)
    signer: "ClientSigner | None" = None

    @property
    def from_address(self) -> str:
        return self.payload.payload.authorization.from_address

    @property
    def nonce(self) -> str:
        return self.payload.payload.authorization.nonce


HookFunction = Callable[[HookContext], Union[Awaitable[None], None]]


@dataclass
class ExtensionHook:
    name: str
    hook: HookFunction
    priority: int = 0


async def run_hooks(hooks: list[ExtensionHook], context: HookContext) -> dict[str, Any]:
    """Run *hooks* sequentially by descending priority.

    Hooks with equal priority keep their registration order.

    Returns:
        The resulting extensions map
    """
    for entry in sorted(hooks, key=lambda h: -h.priority):
        logger.debug("Running extension hook %s (priority %d)", entry.name, entry.priority)
        result = entry.hook(context)
        if inspect.isawaitable(result):
            await result
    return context.extensions


def create_siwx_hook(
    statement: str | None = None,
    clock: Callable[[], float] = time.time,
) -> ExtensionHook:
    """Sign in with the paying wallet when the server declares SIWX.

    The authorization nonce (without ``0x``) doubles as the SIWX nonce.
    """

    async def hook(context: HookContext) -> None:
        extension = extract_extension(context.server_extensions, SIGN_IN_WITH_X)
        if extension is None or not isinstance(extension.get("info"), dict):
            return
        if context.signer is None:
            logger.warning("Server requested sign-in-with-x but no signer is available")
            return

        info = dict(extension["info"])
        if statement and not info.get("statement"):
            info["statement"] = statement
        now = clock()
        payload = create_siwx_payload(
            info,
            context.from_address,
            nonce=context.nonce[2:] if context.nonce.startswith("0x") else context.nonce,
            issued_at=format_siwx_time(now),
            now=now,
        )
        payload.signature = await context.signer.sign_message(create_siwx_message(payload))
        context.extensions[SIGN_IN_WITH_X] = encode_siwx_header(payload)

    return ExtensionHook(name=SIGN_IN_WITH_X, hook=hook, priority=SIWX_HOOK_PRIORITY)


def create_payment_id_hook(payment_id: str | None = None) -> ExtensionHook:
    """Attach a payment identifier.

    A fixed *payment_id* is always attached. Otherwise one is generated the
    first time a server marks the extension as required, and reused after.
    """
    state = {"payment_id": payment_id}

    def hook(context: HookContext) -> None:
        if state["payment_id"] is None and payment_identifier_required(
            context.server_extensions
        ):
            state["payment_id"] = generate_payment_id()
        if state["payment_id"] is not None:
            context.extensions.update(
                append_payment_identifier(context.extensions, state["payment_id"])
            )

    return ExtensionHook(name=PAYMENT_IDENTIFIER, hook=hook, priority=PAYMENT_ID_HOOK_PRIORITY)


def create_custom_hook(key: str, handler: HookFunction, priority: int = 0) -> ExtensionHook:
    return ExtensionHook(name=key, hook=handler, priority=priority)
