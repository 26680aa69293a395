from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

from ...domain.models import ChatExchange, ChatRole, ContextDocument
from ..llm.stream import EndOfTurn, RelayEvent, StreamError, StreamRelay, TextChunk


LOG = logging.getLogger(__name__)


class ChatSession:
    """
    Owns the chat exchange for the current context document.

    Each `reset` starts a new generation. A turn started under an older
    generation is stale: its remaining events are dropped and its stream is
    closed, so late chunks never leak into the new exchange.
    """

    def __init__(self, relay: StreamRelay) -> None:
        self.relay = relay
        self.exchange: Optional[ChatExchange] = None
        self.document: Optional[ContextDocument] = None
        self.generation = 0
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def reset(self, document: ContextDocument) -> None:
        self.generation += 1
        self.document = document
        self.exchange = ChatExchange.seeded(document)
        self._in_flight = False
        LOG.debug("Chat exchange reset (generation %d)", self.generation)

    async def send_turn(self, text: str) -> AsyncIterator[RelayEvent]:
        if self.exchange is None:
            yield StreamError("Please generate the context first.")
            yield EndOfTurn()
            return
        if self._in_flight:
            yield StreamError("A chat turn is already in progress.")
            yield EndOfTurn()
            return

        generation = self.generation
        exchange = self.exchange
        exchange.append(ChatRole.USER, text)
        self._in_flight = True

        reply_parts = []
        events = self.relay.stream(exchange.to_payload())
        try:
            async for event in events:
                if generation != self.generation:
                    LOG.debug("Dropping events for stale chat generation %d", generation)
                    break
                if isinstance(event, TextChunk):
                    reply_parts.append(event.text)
                elif isinstance(event, EndOfTurn) and reply_parts:
                    exchange.append(ChatRole.ASSISTANT, "".join(reply_parts))
                yield event
        finally:
            await events.aclose()
            if generation == self.generation:
                self._in_flight = False
