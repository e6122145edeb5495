"""Shared API dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from telegram_attest.bot.dispatcher import UpdateDispatcher
from telegram_attest.db.session import SessionLocal
from telegram_attest.services.gateway import HttpMessagingGateway
from telegram_attest.services.orchestrator import AttestationOrchestrator
from telegram_attest.services.publisher import HttpAttestationPublisher
from telegram_attest.services.session_bridge import get_session_bridge


class _OrchestratorSingleton:
    """Singleton wrapper for the process-wide orchestrator."""

    _instance: AttestationOrchestrator | None = None

    @classmethod
    def get_instance(cls) -> AttestationOrchestrator:
        """Get or create the singleton orchestrator instance."""
        if cls._instance is None:
            cls._instance = AttestationOrchestrator(
                SessionLocal,
                HttpMessagingGateway(),
                HttpAttestationPublisher(),
                get_session_bridge(),
            )
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        """Release HTTP clients held by the singleton, if it was created."""
        instance = cls._instance
        if instance is None:
            return
        for resource in (instance.gateway, instance.publisher):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        cls._instance = None


def get_orchestrator() -> AttestationOrchestrator:
    """Return the process-wide orchestrator."""
    return _OrchestratorSingleton.get_instance()


async def close_orchestrator() -> None:
    await _OrchestratorSingleton.close()


def get_dispatcher(
    orchestrator: Annotated[AttestationOrchestrator, Depends(get_orchestrator)],
) -> UpdateDispatcher:
    return UpdateDispatcher(orchestrator)


OrchestratorDep = Annotated[AttestationOrchestrator, Depends(get_orchestrator)]
DispatcherDep = Annotated[UpdateDispatcher, Depends(get_dispatcher)]
