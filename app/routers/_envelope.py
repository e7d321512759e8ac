from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..core.schemas import Envelope


def respond(env: Envelope) -> JSONResponse:
    # mensajes de error = texto para mostrar; el status HTTP lo decide el servicio
    return JSONResponse(status_code=env.status_code, content=jsonable_encoder(env))
