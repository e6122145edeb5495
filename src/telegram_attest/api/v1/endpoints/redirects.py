"""Redirect endpoints bridging the chat and the wallet.

``GET /verify/{address}`` turns a verify link sent in the chat into a wallet
pairing URL; ``GET /pairing`` hands out a plain pairing URL. Failures answer
400 with one of the error codes below as ``detail``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from telegram_attest.api.v1.dependencies import OrchestratorDep
from telegram_attest.errors import AlreadyAttestedError, InvalidDataError, OrderNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["redirects"])

INVALID_DATA = "INVALID_DATA"
ORDER_ALREADY_ATTESTED = "ORDER_ALREADY_ATTESTED"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
UNKNOWN_ERROR = "UNKNOWN_ERROR"


def _bad_request(code: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=code)


@router.get("/verify/{address}")
async def verify_address(
    address: str, request: Request, orchestrator: OrchestratorDep
) -> RedirectResponse:
    """Redirect to a pairing URL carrying the address to verify."""
    data = dict(request.query_params)
    try:
        pairing_url = await orchestrator.verify_request(address, data)
    except InvalidDataError as err:
        raise _bad_request(INVALID_DATA) from err
    except AlreadyAttestedError as err:
        raise _bad_request(ORDER_ALREADY_ATTESTED) from err
    except OrderNotFoundError as err:
        raise _bad_request(ORDER_NOT_FOUND) from err
    except Exception as err:
        logger.error("Verify link for %s failed", address, exc_info=True)
        raise _bad_request(UNKNOWN_ERROR) from err
    return RedirectResponse(pairing_url, status_code=status.HTTP_302_FOUND)


@router.get("/pairing")
async def pairing(orchestrator: OrchestratorDep) -> RedirectResponse:
    """Redirect to a fresh pairing URL."""
    try:
        pairing_url = orchestrator.pairing_url()
    except Exception as err:
        logger.error("Generating pairing URL failed", exc_info=True)
        raise _bad_request(UNKNOWN_ERROR) from err
    return RedirectResponse(pairing_url, status_code=status.HTTP_302_FOUND)
