import hmac
import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, File, Header, Path, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from imgate.config import Config
from imgate.depends import Injected
from imgate.errors import (
    AuthFailed,
    GatewayError,
    NotAuthenticated,
    RangeNotSatisfiable,
    RateLimited,
    StoreError,
    SystemMisconfigured,
    ValidationError,
)
from imgate.listing import list_objects
from imgate.ratelimit import Throttle
from imgate.schemas import (
    DeleteRequest,
    DeleteResult,
    Envelope,
    FolderRequest,
    ListRequest,
    ListResult,
    TokenRequest,
    UploadResult,
)
from imgate.serve import ServeResult, head_object, serve_object
from imgate.storage import Conditions, StorageBackend
from imgate.upload import UploadItem, upload_items

logger = logging.getLogger(__name__)

router = APIRouter()

FOLDER_NAME = re.compile(r"[A-Za-z_]+")


def token_matches(token: str | None, secret: str | None) -> bool:
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode(), secret.encode())


def require_token(
    config: Injected[Config],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    if not authorization:
        raise NotAuthenticated()
    if not config.auth_token:
        raise SystemMisconfigured()
    if not token_matches(authorization, config.auth_token):
        raise AuthFailed()


def client_identity(request: Request, config: Injected[Config]) -> str:
    forwarded = request.headers.get(config.client_ip_header)
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def throttle_upload(
    identity: Annotated[str, Depends(client_identity)],
    throttle: Injected[Throttle],
) -> None:
    if not await throttle.allow(identity):
        logger.info("upload rate limited for %s", identity)
        raise RateLimited()


Authorized = Depends(require_token)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RangeNotSatisfiable):
        headers["Content-Range"] = f"bytes */{exc.size}"
    return JSONResponse(
        status_code=exc.status_code,
        content=Envelope(code=exc.code, message=exc.message, data=exc.data).model_dump(),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await gateway_error_handler(request, ValidationError(data=jsonable_errors(exc)))


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def to_response(result: ServeResult) -> Response:
    return Response(content=result.body, status_code=result.status, headers=result.headers)


@router.get("/health")
async def health() -> Response:
    return Response(status_code=200)


@router.post("/checkToken")
async def check_token(req: TokenRequest, config: Injected[Config]) -> Envelope[bool]:
    return Envelope[bool](data=token_matches(req.token, config.auth_token))


@router.post("/list", dependencies=[Authorized])
async def list_images(
    req: ListRequest,
    fs: Injected[StorageBackend],
    config: Injected[Config],
) -> Envelope[ListResult]:
    page = await list_objects(fs, config, delimiter=req.delimiter, cursor=req.cursor, limit=req.limit)
    return Envelope[ListResult](data=page)


@router.post("/upload", dependencies=[Depends(throttle_upload)])
async def upload(
    fs: Injected[StorageBackend],
    config: Injected[Config],
    files: Annotated[list[UploadFile] | None, File()] = None,
) -> Envelope[UploadResult]:
    items = []
    for f in files or []:
        body = await f.read()
        items.append(
            UploadItem(
                content_type=f.content_type,
                body=body,
                size=f.size if f.size is not None else len(body),
                filename=f.filename,
            )
        )
    result = await upload_items(fs, items, config)
    return Envelope[UploadResult](data=result, message=",".join(result.errors))


@router.post("/folder", dependencies=[Authorized])
async def create_folder(req: FolderRequest, fs: Injected[StorageBackend]) -> Envelope[str]:
    if not FOLDER_NAME.fullmatch(req.name):
        raise ValidationError("Folder name error")
    try:
        await fs.put(f"{req.name}/", b"")
    except StoreError as e:
        raise StoreError("Create folder fail") from e
    return Envelope[str](data="Success")


@router.get("/del/{key:path}", dependencies=[Authorized])
async def delete_one(key: Annotated[str, Path()], fs: Injected[StorageBackend]) -> Envelope[str]:
    if not key:
        raise ValidationError("No key to delete")
    await fs.delete(key)
    return Envelope[str](data=key)


@router.delete("/", dependencies=[Authorized])
async def delete_many(req: DeleteRequest, fs: Injected[StorageBackend]) -> Envelope[DeleteResult]:
    keys = [key.strip() for key in (req.keys or "").split(",") if key.strip()]
    if not keys:
        raise ValidationError("No keys to delete")
    result = DeleteResult(deleted=[], errors=[])
    for key in keys:
        try:
            await fs.delete(key)
        except StoreError:
            logger.exception("delete %s failed", key)
            result.errors.append(f"{key}: delete failed.")
        else:
            result.deleted.append(key)
    return Envelope[DeleteResult](data=result, message=",".join(result.errors))


@router.head("/{key:path}")
async def head_image(
    key: Annotated[str, Path()],
    fs: Injected[StorageBackend],
    config: Injected[Config],
) -> Response:
    return to_response(await head_object(fs, key, config.cache_control))


@router.get("/{key:path}")
async def get_image(
    request: Request,
    key: Annotated[str, Path()],
    fs: Injected[StorageBackend],
    config: Injected[Config],
    range: Annotated[str | None, Header()] = None,
) -> Response:
    result = await serve_object(
        fs,
        key,
        range_header=range,
        conditions=Conditions.from_headers(request.headers),
        cache_control=config.cache_control,
    )
    return to_response(result)
