from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "data": jsonable_encoder(data or {}),
            "error": None,
            "message": message,
        }
    )


def error_response(error_code, status=400, message="An error occurred", data=None):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "data": jsonable_encoder(data or {}),
            "error": error_code,
            "message": message,
        }
    )


def service_response(result: dict, message="OK"):
    """Translate a normalized service result into the response envelope"""
    if result.get("is_error"):
        return error_response(
            result.get("error", "Unknown error"),
            status=result.get("status", 400),
            message=result.get("message") or result.get("error", "An error occurred"),
            data=result.get("data"),
        )
    return success_response(result.get("data"), message=message)
