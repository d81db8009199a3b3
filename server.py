from __future__ import annotations

import base64
import logging
import os
from contextlib import asynccontextmanager
from typing import BinaryIO, Iterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel

from fileaccess_backend.config import LOG_LEVEL, STREAM_CHUNK_BYTES
from fileaccess_backend.errors import FileAccessError
from fileaccess_backend.service import FileAccessService


logger = logging.getLogger(__name__)

# File bodies are served as-is; keep browsers from caching or sniffing them.
FILE_HEADERS = {"Cache-Control": "no-store", "X-Content-Type-Options": "nosniff"}


class FileCountResponse(BaseModel):
    count: int


class NamesResponse(BaseModel):
    names: list[str]


class DirectoryFilesResponse(BaseModel):
    file_names: list[str]
    files: list[str]  # base64, aligned with file_names


class PageCountResponse(BaseModel):
    pages: int


def get_service(request: Request) -> FileAccessService:
    return request.app.state.service


def _iter_chunks(stream: BinaryIO) -> Iterator[bytes]:
    while True:
        chunk = stream.read(STREAM_CHUNK_BYTES)
        if not chunk:
            break
        yield chunk


router = APIRouter(prefix="/api")


@router.get("/files/count")
async def count_files(directory: str = "", service: FileAccessService = Depends(get_service)) -> FileCountResponse:
    return FileCountResponse(count=await service.count_files(directory))


@router.get("/files")
async def list_files(directory: str = "", service: FileAccessService = Depends(get_service)) -> DirectoryFilesResponse:
    listing = await service.list_files(directory)
    return DirectoryFilesResponse(
        file_names=listing.file_names,
        files=[base64.b64encode(data).decode("ascii") for data in listing.files],
    )


@router.get("/files/names")
async def list_file_names(directory: str = "", service: FileAccessService = Depends(get_service)) -> NamesResponse:
    return NamesResponse(names=await service.list_file_names(directory))


@router.get("/folders/names")
async def list_folder_names(directory: str = "", service: FileAccessService = Depends(get_service)) -> NamesResponse:
    return NamesResponse(names=await service.list_subdirectory_names(directory))


@router.get("/file")
async def get_file(
    file_name: str,
    directory: str = "",
    service: FileAccessService = Depends(get_service),
) -> StreamingResponse:
    stream = await service.read_file_as_stream(directory, file_name)
    return StreamingResponse(_iter_chunks(stream), media_type="application/octet-stream", headers=FILE_HEADERS)


@router.get("/pdf/pages")
async def count_pdf_pages(
    file_name: str,
    directory: str = "",
    service: FileAccessService = Depends(get_service),
) -> PageCountResponse:
    return PageCountResponse(pages=await service.count_pdf_pages(directory, file_name))


@router.get("/pdf/page")
async def convert_pdf_page(
    file_name: str,
    page_number: int = Query(..., ge=1),
    scale: Optional[float] = Query(None, gt=0),
    directory: str = "",
    service: FileAccessService = Depends(get_service),
) -> Response:
    png = await service.convert_pdf_page(directory, file_name, page_number, scale)
    return Response(content=png, media_type="image/png", headers=FILE_HEADERS)


@router.post("/xml-to-json")
async def xml_to_json(request: Request, service: FileAccessService = Depends(get_service)) -> Response:
    # Raw XML body in, JSON text out; the JSON is already serialized by the service.
    data = await request.body()
    return Response(content=await service.convert_xml_to_json(data), media_type="application/json")


async def _file_access_error(request: Request, exc: FileAccessError) -> JSONResponse:
    # Same body shape as HTTPException; the message never carries absolute paths.
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


def create_app(service: FileAccessService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            # Cached PDF documents hold MuPDF resources; release them on shutdown.
            app.state.service.close()

    app = FastAPI(lifespan=lifespan)
    app.state.service = service if service is not None else FileAccessService()
    logger.info("Serving files from %s", app.state.service.root)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(FileAccessError, _file_access_error)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", "8010"))
    uvicorn.run("server:app", host="127.0.0.1", port=port, reload=False)
