# vaultrelay/api/relay.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from starlette.concurrency import run_in_threadpool

from vaultrelay.core.circuit_breaker import SUBMIT_RATE, limiter
from vaultrelay.models.message import EncryptedMessage
from vaultrelay.services.relay_log import RelayLog
from vaultrelay.services.relay_service import RelayIngest, get_ingest, get_relay_log

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/fetch/{index}", response_model=list[EncryptedMessage])
def fetch_messages(index: int = Path(ge=0), relay_log: RelayLog = Depends(get_relay_log)):
    """Every envelope from index to the end of the log; [] past the end."""
    logger.debug("fetching messages beginning from %d", index)
    return relay_log.fetch_since(index)


@router.post("/submit")
@limiter.limit(SUBMIT_RATE)
async def submit_message(request: Request, ingest: RelayIngest = Depends(get_ingest)):
    payload = await request.body()
    # Appends may block on the store; keep them off the event loop.
    if await run_in_threadpool(ingest.ingest, payload) is None:
        raise HTTPException(status_code=400, detail="Payload is not an encrypted envelope")
    return {"status": "stored"}


@router.get("/status")
def relay_status(relay_log: RelayLog = Depends(get_relay_log)):
    return {"length": len(relay_log)}
