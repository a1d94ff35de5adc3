import logging
from dataclasses import asdict
from typing import Callable

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from autoship.core.config import settings
from autoship.domains.vehicles.schemas import BatchDecodeIn, BatchDecodeOut, NameListOut, VehicleInfoOut
from autoship.domains.vehicles.service import (
    VehicleInfo,
    batch_decode_vins,
    decode_vin,
    get_models_for_make_year,
    get_vehicle_makes,
    is_valid_vin_format,
)
from autoship.utils.debounce import AsyncDebouncer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles")

VinDecoder = Callable[[str], VehicleInfo]


def get_vin_decoder() -> VinDecoder:
    return decode_vin


@router.get("/decode/{vin}", response_model=VehicleInfoOut)
def decode_route(vin: str, decoder: VinDecoder = Depends(get_vin_decoder)) -> VehicleInfoOut:
    return VehicleInfoOut(**asdict(decoder(vin)))


@router.post("/decode", response_model=BatchDecodeOut)
def batch_decode_route(payload: BatchDecodeIn, decoder: VinDecoder = Depends(get_vin_decoder)) -> BatchDecodeOut:
    infos = batch_decode_vins(payload.vins, decoder=decoder)
    return BatchDecodeOut(items=[VehicleInfoOut(**asdict(i)) for i in infos])


@router.get("/makes", response_model=NameListOut)
def makes_route() -> NameListOut:
    return NameListOut(items=get_vehicle_makes())


@router.get("/models", response_model=NameListOut)
def models_route(make: str = Query(min_length=1), year: int = Query(ge=1900, le=2100)) -> NameListOut:
    return NameListOut(items=get_models_for_make_year(make, year))


@router.websocket("/vin/live")
async def vin_live(websocket: WebSocket, decoder: VinDecoder = Depends(get_vin_decoder)) -> None:
    """
    Live VIN check for a text field: the client sends the field value on every
    keystroke and gets one answer per pause in typing.
    """
    await websocket.accept()
    debouncer = AsyncDebouncer(settings.vin_debounce_seconds)

    async def check(vin: str) -> None:
        if len(vin) < 17:
            await websocket.send_json({"state": "incomplete", "vin": vin})
            return
        if not is_valid_vin_format(vin):
            await websocket.send_json({"state": "invalid_format", "vin": vin, "errors": ["Invalid VIN format"]})
            return
        info = await run_in_threadpool(decoder, vin)
        await websocket.send_json({"state": "decoded", "vehicle": asdict(info)})

    try:
        while True:
            text = await websocket.receive_text()
            vin = text.strip().upper()
            debouncer.call(lambda vin=vin: check(vin))
    except WebSocketDisconnect:
        logger.debug("vin live socket closed")
    finally:
        debouncer.cancel()
