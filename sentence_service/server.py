#server.py
import logging
import signal
import uuid
from concurrent import futures
from typing import Callable, Optional, Type

import grpc
from grpc_health.v1 import health, health_pb2, health_pb2_grpc
from pydantic import BaseModel, ValidationError

from shared.billing import (
    LedgerError,
    QuotaGate,
    SQLiteLedgerStore,
    SpendingRecorder,
    UsageLedger,
)
from shared.observability import LogContext, configure_logging
from shared.providers import (
    GeminiProvider,
    GoogleTTSProvider,
    ProviderConfig,
    ProviderError,
    ProviderRateLimitError,
    ProviderType,
)

from .config import SentenceServiceConfig, get_config
from .interceptors import QuotaInterceptor, ledger_status
from .models import (
    GenerateDefinitionRequest,
    GenerateSentenceRequest,
    InvalidResponseError,
    TranslateRequest,
)
from .service import SentenceService

logger = logging.getLogger("sentence_service")

SERVICE_NAME = "sentencegen.SentenceGen"
SHUTDOWN_GRACE_SECONDS = 10


class SentenceGenServicer:
    """
    JSON-over-gRPC servicer for the SentenceGen service.

    Request and response messages are UTF-8 JSON documents shaped like
    the pydantic models in ``sentence_service.models``.
    """

    def __init__(self, service: SentenceService):
        self.service = service

    def GenerateSentence(self, request: bytes, context: grpc.ServicerContext) -> bytes:
        return self._handle(
            "GenerateSentence", GenerateSentenceRequest, self.service.generate_sentence, request, context
        )

    def Translate(self, request: bytes, context: grpc.ServicerContext) -> bytes:
        return self._handle(
            "Translate", TranslateRequest, self.service.translate, request, context
        )

    def GenerateDefinition(self, request: bytes, context: grpc.ServicerContext) -> bytes:
        return self._handle(
            "GenerateDefinition", GenerateDefinitionRequest, self.service.generate_definition, request, context
        )

    def _handle(
        self,
        rpc: str,
        request_cls: Type[BaseModel],
        call: Callable,
        request: bytes,
        context: grpc.ServicerContext,
    ) -> Optional[bytes]:
        with LogContext(rpc_method=rpc, request_id=uuid.uuid4().hex[:12]):
            try:
                req = request_cls.model_validate_json(request)
            except ValidationError as e:
                details = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                )
                logger.info(f"{rpc} rejected invalid request: {details}")
                context.abort(grpc.StatusCode.INVALID_ARGUMENT, details or "invalid request")
                return None

            try:
                resp = call(req, timeout=context.time_remaining())
            except LedgerError as e:
                # Billing could not be recorded: the request fails even if the work succeeded
                logger.error(f"{rpc} failed, spending not recorded: {e}")
                context.abort(ledger_status(e), "failed to record spending")
                return None
            except ProviderRateLimitError as e:
                logger.warning(f"{rpc} rate limited upstream: {e}")
                context.abort(grpc.StatusCode.RESOURCE_EXHAUSTED, "upstream rate limit")
                return None
            except ProviderError as e:
                logger.error(f"{rpc} provider failure: {e}")
                context.abort(grpc.StatusCode.UNAVAILABLE, f"{type(e).__name__}: {e}")
                return None
            except InvalidResponseError as e:
                logger.warning(f"{rpc} invalid model output: {e}")
                context.abort(grpc.StatusCode.INTERNAL, str(e))
                return None

            return resp.model_dump_json().encode("utf-8")


def sentence_gen_handler(servicer: SentenceGenServicer) -> grpc.GenericRpcHandler:
    """Generic handler exposing the servicer methods with raw-bytes (de)serialization."""
    rpc_method_handlers = {
        name: grpc.unary_unary_rpc_method_handler(getattr(servicer, name))
        for name in ("GenerateSentence", "Translate", "GenerateDefinition")
    }
    return grpc.method_handlers_generic_handler(SERVICE_NAME, rpc_method_handlers)


def build_service(config: SentenceServiceConfig, ledger: Optional[UsageLedger] = None):
    """
    Wire ledger, pricing, gate, recorder and providers.

    Returns:
        (SentenceService, QuotaGate)
    """
    ledger = ledger or UsageLedger(SQLiteLedgerStore(config.ledger_db_path))
    gate = QuotaGate(ledger, config.daily_quota_micros)
    recorder = SpendingRecorder(ledger, config.pricing_table())

    model = GeminiProvider(
        ProviderConfig(
            provider_type=ProviderType.GEMINI,
            api_key=config.gemini_api_key,
            base_url=config.gemini_base_url,
            timeout=config.provider_timeout,
        ),
        model=config.gemini_model,
    )
    tts = GoogleTTSProvider(
        ProviderConfig(
            provider_type=ProviderType.GOOGLE_TTS,
            api_key=config.tts_api_key,
            base_url=config.tts_base_url,
            timeout=config.provider_timeout,
        )
    )
    return SentenceService(model, tts, recorder), gate


def build_server(service: SentenceService, gate: QuotaGate, max_workers: int = 10) -> grpc.Server:
    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=max_workers),
        interceptors=[QuotaInterceptor(gate)],
    )
    server.add_generic_rpc_handlers((sentence_gen_handler(SentenceGenServicer(service)),))

    health_servicer = health.HealthServicer()
    health_servicer.set(SERVICE_NAME, health_pb2.HealthCheckResponse.SERVING)
    health_servicer.set("", health_pb2.HealthCheckResponse.SERVING)
    health_pb2_grpc.add_HealthServicer_to_server(health_servicer, server)
    return server


def serve(config: Optional[SentenceServiceConfig] = None) -> None:
    config = config or get_config()
    configure_logging("sentence_service", config.log_level, config.log_json)
    config.log_config()

    service, gate = build_service(config)
    server = build_server(service, gate, config.max_workers)
    server.add_insecure_port(f"{config.host}:{config.port}")

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        server.stop(SHUTDOWN_GRACE_SECONDS)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    server.start()
    logger.info(f"Sentence Service operational on {config.host}:{config.port}")
    try:
        server.wait_for_termination()
    finally:
        service.model.close()
        service.tts.close()
        logger.info("Sentence Service stopped")


if __name__ == "__main__":
    serve()
