"""
gRPC Interceptor for quota admission.

Checks the daily spending ceiling exactly once per SentenceGen call,
before the handler runs. Health and reflection calls are not metered.
"""
import logging

import grpc
from grpc import ServerInterceptor

from shared.billing import LedgerError, LedgerUnavailableError, QuotaExceededError, QuotaGate

logger = logging.getLogger(__name__)

METERED_SERVICE_PREFIX = "/sentencegen.SentenceGen/"


def ledger_status(error: LedgerError) -> grpc.StatusCode:
    """Status code for a ledger failure: transient faults are retryable."""
    if isinstance(error, LedgerUnavailableError):
        return grpc.StatusCode.UNAVAILABLE
    return grpc.StatusCode.INTERNAL


class QuotaInterceptor(ServerInterceptor):
    """
    Server interceptor that rejects metered calls once today's spend has
    reached the daily quota.

    Over quota -> RESOURCE_EXHAUSTED. A ledger that cannot be read fails
    closed with UNAVAILABLE (transient) or INTERNAL.
    """

    def __init__(self, gate: QuotaGate, prefix: str = METERED_SERVICE_PREFIX):
        self.gate = gate
        self.prefix = prefix

    def intercept_service(self, continuation, handler_call_details):
        """Intercept the service call to add the quota check."""
        method = handler_call_details.method

        handler = continuation(handler_call_details)
        if handler is None or not method.startswith(self.prefix):
            return handler

        if handler.unary_unary:
            return self._wrap_unary_handler(handler, method)

        # Only unary methods are metered
        return handler

    def _wrap_unary_handler(self, handler, method: str):
        """Wrap a unary-unary handler with the quota check."""
        original_handler = handler.unary_unary

        def admitted_handler(request, context):
            if not self._admit(context, method):
                return None
            return original_handler(request, context)

        return grpc.unary_unary_rpc_method_handler(
            admitted_handler,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )

    def _admit(self, context: grpc.ServicerContext, method: str) -> bool:
        """Return True if the call may proceed, otherwise abort it."""
        try:
            self.gate.ensure_within_quota(timeout=context.time_remaining())
        except QuotaExceededError:
            context.abort(grpc.StatusCode.RESOURCE_EXHAUSTED, "daily quota limit exceeded")
            return False
        except LedgerError as e:
            logger.error(f"Quota check failed for {method}: {e}")
            context.abort(ledger_status(e), "cannot verify daily quota")
            return False
        return True
