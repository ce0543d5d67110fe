from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Single envelope for every scan API response.
    status is "success" below 400 and "error" otherwise.
    """
    status_str = "success" if status_code < 400 else "error"
    if isinstance(data, BaseModel):
        # keep concrete payload types (SerializeAsAny fields) intact
        data = data.model_dump(mode="json")
    data = jsonable_encoder(data) if data is not None else {}

    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": status_str,
            "message": message,
            "data": data,
        },
    )
