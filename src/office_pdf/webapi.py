import logging
import os
from pathlib import Path

from fastapi import FastAPI, File, Request, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.datastructures import UploadFile as StarletteUploadFile

from office_pdf import __version__
from office_pdf.conversion import (
    ConversionError,
    ConversionService,
    ConverterConfig,
    UploadTooLargeError,
    select_strategy,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Office PDF Service",
    version=os.getenv("OFFICE_PDF_VERSION", __version__),
    description="Converts uploaded office documents to PDF using a headless LibreOffice.",
)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

# Global configuration defaults
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "100"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR") or None

SERVICE: ConversionService | None = None


def _build_service() -> ConversionService:
    config = ConverterConfig.from_env()
    converter = select_strategy(config)
    logger.info(
        "Using %s converter (executable=%s, timeout=%s)",
        converter.name,
        config.executable,
        config.timeout_sec,
    )
    return ConversionService(converter, upload_dir=UPLOAD_DIR)


def _service() -> ConversionService:
    global SERVICE
    if SERVICE is None:
        SERVICE = _build_service()
    return SERVICE


@app.on_event("startup")
async def _startup() -> None:
    _service()


@app.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", {"max_upload_mb": MAX_UPLOAD_MB})


@app.get("/health")
def health() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok", "strategy": _service().converter.name}


@app.post("/convert")
async def convert(file: UploadFile | str | None = File(None)) -> Response:
    """Convert an uploaded document to PDF.

    Accepts multipart/form-data with a single part named "file" and answers
    with the PDF as an attachment. Errors are returned as `{"error": message}`.
    """
    # A plain text field named "file" counts as no upload
    if not isinstance(file, StarletteUploadFile) or not file.filename:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No file uploaded (field name should be `file`)"},
        )

    async def read_chunk(n: int) -> bytes:
        return await file.read(n)

    try:
        pdf = await _service().convert_upload(
            filename=file.filename,
            reader=read_chunk,
            max_upload_mb=MAX_UPLOAD_MB,
        )
    except UploadTooLargeError as e:
        return JSONResponse(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, content={"error": str(e)})
    except ConversionError as e:
        logger.error("Conversion error: %s", e)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})
    except Exception as e:
        logger.exception("Unexpected error converting %s", file.filename)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or e.__class__.__name__},
        )
    finally:
        await file.close()

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="output.pdf"'},
    )


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:3000). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    # Enable reload in dev unless explicitly disabled
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("office_pdf.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
