import threading
import structlog
import time
from typing import List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Depends, Request, status, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
import uvicorn

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from trustvault import __version__, config
from trustvault.core.errors import (
    EmbeddingError, ExtractionError, HashComputeError, ModelLoadError, RegistryError, StoreWriteError
)
from trustvault.core.registry import InMemoryRegistry, RegistryClient
from trustvault.core.storage import VectorStore
from trustvault.core.utils import calculate_bytes_hash, format_file_size, truncate_hash
from trustvault.models.similarity import (
    ErrorResponse, FingerprintResponse, HealthResponse, ProofSummary, RegistrationResult, VerificationResult
)
from trustvault.services import embedding
from trustvault.services.fingerprint import (
    check_for_duplicates, generate_fingerprint, get_default_store, list_creator_proofs, preload,
    register_document, verify_document
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting TrustVault API")

    if not hasattr(app.state, "registry"):
        # Real deployments attach a contract-backed client before startup
        app.state.registry = InMemoryRegistry()
        logger.warning("No registry client configured, using in-memory development registry")

    # Warm the model off the request path; requests arriving meanwhile share the load
    threading.Thread(target=preload, name="embedding-warmup", daemon=True).start()

    yield

    logger.info("Shutting down TrustVault API")


app = FastAPI(
    title="TrustVault API",
    description="Proof of originality: AI fingerprinting, near-duplicate detection and proof registration",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    responses={
        422: {"model": ErrorResponse, "description": "Validation Error"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    }
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> VectorStore:
    return get_default_store()


def get_registry(request: Request) -> RegistryClient:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        registry = InMemoryRegistry()
        request.app.state.registry = registry
    return registry


async def read_upload(file: UploadFile) -> bytes:
    """Read an upload, enforcing the size limit."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    data = await file.read()
    if len(data) > config.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File size exceeds maximum allowed size of {format_file_size(config.MAX_FILE_SIZE)}"
        )

    logger.info("Received upload", filename=file.filename, file_size_human=format_file_size(len(data)))
    return data


@app.get("/", response_model=dict)
async def root():
    return {
        "name": "TrustVault API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check(store: VectorStore = Depends(get_store)):
    model_info = embedding.get_embedding_info()
    overall = "degraded" if model_info.get("error") else "healthy"
    return HealthResponse(
        status=overall,
        version=__version__,
        components={
            "embedding_model": model_info,
            "vector_store": {"records": store.count()},
        }
    )


@app.post("/fingerprint", response_model=FingerprintResponse)
async def fingerprint_upload(
    file: UploadFile = File(...),
    threshold: Optional[float] = Query(default=None, ge=0.0, le=1.0, description="Similarity threshold"),
    store: VectorStore = Depends(get_store),
):
    """Fingerprint an upload and check it for near-duplicates without storing anything."""
    data = await read_upload(file)
    content_hash = calculate_bytes_hash(data)

    try:
        # Model loading and inference block, so they run off the event loop
        result = await run_in_threadpool(generate_fingerprint, data)
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (ModelLoadError, EmbeddingError) as e:
        if config.REQUIRE_PLAGIARISM_CHECK:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
        return FingerprintResponse(
            filename=file.filename,
            content_hash=content_hash,
            plagiarism_checked=False,
            warnings=[f"AI fingerprint failed, no duplicate check was performed: {e}"],
            message="Duplicate check unavailable",
        )

    matches = await run_in_threadpool(
        check_for_duplicates, result.text, result.embedding, threshold=threshold, store=store)
    if matches:
        top = matches[0]
        message = (f"Similar content detected: {len(matches)} match(es), top "
                   f"{round(top.similarity * 100)}% similar ({top.method}) to {truncate_hash(top.vector_hash)}")
    else:
        message = "No similar content found"

    return FingerprintResponse(
        filename=file.filename,
        content_hash=content_hash,
        vector_hash=result.vector_hash,
        text_length=len(result.text),
        matches=matches,
        plagiarism_checked=True,
        message=message,
    )


@app.post("/register", response_model=RegistrationResult)
async def register_upload(
    file: UploadFile = File(...),
    creator: str = Form(default=""),
    threshold: Optional[float] = Query(default=None, ge=0.0, le=1.0, description="Similarity threshold"),
    store: VectorStore = Depends(get_store),
    registry: RegistryClient = Depends(get_registry),
):
    """Register an upload unless it is a near-duplicate of a known document."""
    data = await read_upload(file)

    try:
        result = await run_in_threadpool(
            register_document, data, creator, registry, store=store, threshold=threshold)
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (ModelLoadError, EmbeddingError) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except RegistryError as e:
        logger.error("Registry rejected proof", filename=file.filename, error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if result.status == "duplicate":
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=result.model_dump(mode="json", by_alias=True))
    return result


@app.post("/verify", response_model=VerificationResult)
async def verify_upload(
    file: UploadFile = File(...),
    registry: RegistryClient = Depends(get_registry),
):
    data = await read_upload(file)
    return verify_document(data, registry)


@app.get("/proofs", response_model=List[ProofSummary])
async def list_proofs(
    creator: str = Query(..., min_length=1, description="Creator address"),
    registry: RegistryClient = Depends(get_registry),
):
    """List a creator's proofs, newest first, skipping revoked ones."""
    return await run_in_threadpool(list_creator_proofs, registry, creator)


@app.get("/vectors", response_model=List[dict])
async def list_vectors(store: VectorStore = Depends(get_store)):
    """List locally stored fingerprints in insertion order."""
    return [record.to_storage() for record in store.list_records()]


@app.delete("/vectors", response_model=dict)
async def clear_vectors(store: VectorStore = Depends(get_store)):
    """Forget every locally stored fingerprint. On-chain proofs are unaffected."""
    try:
        store.clear_all()
    except StoreWriteError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"cleared": True, "timestamp": time.time()}


@app.exception_handler(HashComputeError)
async def hash_error_handler(request, exc):
    logger.error("Hash computation failed", url=str(request.url), error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "hash_compute_error", "message": str(exc)}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error("Unhandled exception",
                 url=str(request.url), method=request.method, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_server_error", "message": "An unexpected error occurred"}
    )


if __name__ == "__main__":
    uvicorn.run(
        "trustvault.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
        log_config=None,  # We handle logging with structlog
    )
