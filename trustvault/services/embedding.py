import threading
import torch
import structlog
from typing import List, Optional, Sequence
from transformers import AutoModel, AutoTokenizer

from trustvault import config
from trustvault.core.errors import EmbeddingError, ModelLoadError

logger = structlog.get_logger()


class SentenceEncoder:
    """Mean-pooled, L2-normalized sentence embeddings from a transformer model."""

    def __init__(self, tokenizer, model, device: torch.device, max_tokens: int):
        self.tokenizer = tokenizer
        self.model = model
        self.device = device
        self.max_tokens = max_tokens

    def encode(self, text: str) -> List[float]:
        inputs = self.tokenizer([text], padding=True, truncation=True,
                                max_length=self.max_tokens, return_tensors="pt")
        inputs = {k: v.to(self.device) for k, v in inputs.items()}

        with torch.no_grad():
            token_embeddings = self.model(**inputs).last_hidden_state

            # Mean pooling over real tokens only
            mask = inputs["attention_mask"].unsqueeze(-1).expand(token_embeddings.size()).float()
            summed = (token_embeddings * mask).sum(dim=1)
            counts = mask.sum(dim=1).clamp(min=1e-9)
            pooled = torch.nn.functional.normalize(summed / counts, p=2, dim=1)

        return pooled.cpu().numpy()[0].tolist()


class TransformersBackend:
    """Execution backend running a Hugging Face model on one torch device."""

    def __init__(self, device_name: str, max_tokens: int = None):
        self.name = device_name
        self.max_tokens = max_tokens or config.EMBEDDING_MAX_TOKENS

    def is_available(self) -> bool:
        if self.name == "cuda":
            return torch.cuda.is_available()
        if self.name == "mps":
            return (hasattr(torch.backends, 'mps') and torch.backends.mps.is_built()
                    and torch.backends.mps.is_available())
        return self.name == "cpu"

    def load(self, model_name: str) -> SentenceEncoder:
        device = torch.device(self.name)
        tokenizer = AutoTokenizer.from_pretrained(model_name)
        model = AutoModel.from_pretrained(model_name)
        model.to(device)
        model.eval()

        encoder = SentenceEncoder(tokenizer, model, device, self.max_tokens)
        # Some accelerators report available but fail on first kernel launch
        encoder.encode("warmup")
        logger.info("Embedding model loaded",
                    model_name=model_name,
                    device=self.name,
                    parameters=sum(p.numel() for p in model.parameters()))
        return encoder


def default_backends() -> List[TransformersBackend]:
    return [TransformersBackend(name) for name in config.EMBEDDING_DEVICES]


class EmbeddingEngine:
    """
    Text embedding engine with lazy, at-most-once model initialization.

    Backends are tried in order; the first one that loads wins. Concurrent
    first callers block on the same lock and share the single load. A failed
    load is remembered so later calls fail fast with the same error instead of
    reloading; call ``reset()`` to try again.
    """

    def __init__(self,
                 model_name: str = None,
                 backends: Optional[Sequence] = None,
                 dimension: int = None):
        self.model_name = model_name or config.EMBEDDING_MODEL_NAME
        self.backends = list(backends) if backends is not None else default_backends()
        self.dimension = dimension or config.EMBEDDING_DIMENSION

        self._lock = threading.Lock()
        self._encoder = None
        self._backend_name = None
        self._load_error = None

    @property
    def is_loaded(self) -> bool:
        return self._encoder is not None

    @property
    def backend_name(self) -> Optional[str]:
        return self._backend_name

    def _load(self):
        failures = []
        for backend in self.backends:
            if not backend.is_available():
                logger.debug("Embedding backend unavailable", backend=backend.name)
                continue
            try:
                logger.info("Loading embedding model", model_name=self.model_name, backend=backend.name)
                encoder = backend.load(self.model_name)
                self._backend_name = backend.name
                return encoder
            except Exception as e:
                logger.warning("Embedding backend failed to initialize, trying next",
                               backend=backend.name, error=str(e))
                failures.append(f"{backend.name}: {e}")

        detail = "; ".join(failures) if failures else "no backend available"
        raise ModelLoadError(f"Failed to load embedding model {self.model_name} ({detail})")

    def _get_encoder(self):
        encoder = self._encoder
        if encoder is not None:
            return encoder

        with self._lock:
            if self._encoder is None:
                if self._load_error is not None:
                    raise ModelLoadError(str(self._load_error)) from self._load_error
                try:
                    self._encoder = self._load()
                except ModelLoadError as e:
                    logger.error("Embedding model unavailable", model_name=self.model_name, error=str(e))
                    self._load_error = e
                    raise
            return self._encoder

    def preload(self) -> None:
        """Load the model now if it is not loaded yet."""
        self._get_encoder()

    def embed(self, text: str) -> List[float]:
        """
        Generate a normalized embedding for text.

        Raises:
            ModelLoadError: no backend could be initialized
            EmbeddingError: empty input, inference failure or wrong output size
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        encoder = self._get_encoder()
        try:
            embedding = [float(x) for x in encoder.encode(text)]
        except Exception as e:
            logger.error("Failed to generate text embedding", text_length=len(text), error=str(e))
            raise EmbeddingError(f"Failed to generate text embedding: {e}") from e

        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"Embedding has dimension {len(embedding)}, expected {self.dimension}")

        logger.debug("Text embedding generated", text_length=len(text), backend=self._backend_name)
        return embedding

    def info(self) -> dict:
        return {
            "model_name": self.model_name,
            "embedding_dimension": self.dimension,
            "loaded": self.is_loaded,
            "backend": self._backend_name,
            "error": str(self._load_error) if self._load_error else None,
        }

    def reset(self) -> None:
        with self._lock:
            self._encoder = None
            self._backend_name = None
            self._load_error = None


# Process-wide engine, created on first use
_engine = None
_engine_lock = threading.Lock()


def get_engine() -> EmbeddingEngine:
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = EmbeddingEngine()
    return _engine


def set_engine(engine: Optional[EmbeddingEngine]) -> None:
    """Replace the process-wide engine (None recreates it from config on next use)."""
    global _engine
    with _engine_lock:
        _engine = engine


def text_embedding(text: str) -> List[float]:
    return get_engine().embed(text)


def preload_model() -> bool:
    """Warm up the model to hide first-call latency. Never raises."""
    try:
        get_engine().preload()
        logger.info("Embedding model warmup completed")
        return True
    except Exception as e:
        logger.warning("Embedding model warmup failed", error=str(e))
        return False


def get_embedding_info() -> dict:
    return get_engine().info()
