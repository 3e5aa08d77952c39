import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from functions.errors import ExtractionError, InvalidSourceUrl, SourceUnreachable
from functions.extractors import extract_upload_text, fetch_google_docs_content
from functions.llm import list_models, load_system_prompt, stream_completion
from functions.relay import QueueEventSink, StreamingRelay
from models.convert_models import ConvertRequest, ModelsResponse, UploadResponse, format_sse
from settings import Settings, load_settings

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: load the system prompt once."""
    settings: Settings = app.state.settings
    logger.info("Loading system prompt from %s", settings.prompt_path)
    app.state.system_prompt = load_system_prompt(settings.prompt_path)
    logger.info("Model service: %s (default model %s)", settings.ollama_host, settings.default_model)
    yield
    logger.info("Application shutdown complete.")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Blog HTML Converter API",
        description="Streams an LLM conversion of Google Docs / DOCX / Markdown blog content into an HTML snippet.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- Error Shape ---
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {message}"})

    # --- API Endpoints ---
    @app.get("/api/models", response_model=ModelsResponse)
    async def get_models(request: Request):
        """List available models; falls back to the default model on failure."""
        models = await list_models(request.app.state.settings)
        return ModelsResponse(models=models)

    @app.post("/api/upload", response_model=UploadResponse)
    async def upload_file(request: Request, file: Optional[UploadFile] = File(None)):
        """Extract text from an uploaded DOCX or Markdown file."""
        settings: Settings = request.app.state.settings
        if file is None:
            raise HTTPException(status_code=400, detail="No file uploaded")

        extension = settings.upload_extension
        if not (file.filename or "").lower().endswith(extension):
            raise HTTPException(status_code=400, detail=f"Only {extension} files are allowed")

        data = await file.read(settings.max_upload_bytes + 1)
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large (limit {settings.max_upload_bytes} bytes)",
            )

        try:
            content = extract_upload_text(file.filename, data)
        except ExtractionError as e:
            logger.error("Upload error for %s: %s", file.filename, e)
            raise HTTPException(status_code=500, detail=str(e))
        return UploadResponse(content=content)

    @app.post("/api/convert")
    async def convert(body: ConvertRequest, request: Request):
        """Stream the model's HTML conversion as Server-Sent Events."""
        settings: Settings = request.app.state.settings
        input_content = body.content

        # If Google Docs URL provided, fetch content
        if body.source_type == "googledocs" and body.url:
            try:
                input_content = await fetch_google_docs_content(body.url, settings.google_export_format)
            except InvalidSourceUrl as e:
                raise HTTPException(status_code=400, detail=str(e))
            except SourceUnreachable as e:
                raise HTTPException(status_code=502, detail=str(e))
            except ExtractionError as e:
                raise HTTPException(status_code=500, detail=str(e))

        if not input_content or not input_content.strip():
            raise HTTPException(status_code=400, detail="No content provided")

        model_id = body.model or settings.default_model
        logger.info(
            "Converting %d chars from %s with model %s", len(input_content), body.source_type, model_id
        )
        stream = stream_completion(settings, request.app.state.system_prompt, input_content, model_id)

        async def event_stream():
            sink = QueueEventSink()
            relay = StreamingRelay()
            task = asyncio.create_task(relay.run(stream, sink))
            try:
                async for event in sink.events():
                    yield format_sse(event)
                await task
            finally:
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        logger.info("Client disconnected; conversion abandoned")

        return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    if settings.serve_static:
        _mount_frontend(app, Path(settings.static_dir))

    return app


def _mount_frontend(app: FastAPI, static_root: Path) -> None:
    """Serve the built frontend, falling back to index.html for client-side routes."""
    static_root = static_root.resolve()
    if not static_root.is_dir():
        logger.warning("Static directory %s not found; frontend will not be served", static_root)
        return

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_frontend(full_path: str):
        candidate = (static_root / full_path).resolve()
        if full_path and candidate.is_file() and static_root in candidate.parents:
            return FileResponse(str(candidate))
        index = static_root / "index.html"
        if not index.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        return FileResponse(str(index))


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
