# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Tracing setup for ``BuyerClient`` spans (``x402.request``).

The SDK and exporter live in the ``otel`` extra; ``opentelemetry-api`` alone
keeps the buyer's spans as no-ops.
"""
from __future__ import annotations

import os
from typing import Any, Optional

_TRUTHY = {"1", "true", "yes"}


def _console_requested() -> bool:
    return os.getenv("OTEL_CONSOLE_EXPORTER", "0").lower() in _TRUTHY


def tracing_requested() -> bool:
    """True when the environment asks for buyer traces to be exported."""
    return bool(os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")) or _console_requested()


def setup_otel_from_env(use_console: bool = True):
    """Install an SDK TracerProvider for buyer spans.

    Env vars:
    - OTEL_EXPORTER_OTLP_ENDPOINT (OTLP/HTTP export only when set)
    - OTEL_SERVICE_NAME (default monad-x402-buyer)
    - OTEL_CONSOLE_EXPORTER=1 to add console export when ``use_console`` is off
    - MONAD_NETWORK, recorded as the ``monad.network`` resource attribute

    Returns the installed TracerProvider.
    """
    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as e:  # pragma: no cover - import error path
        raise RuntimeError(
            "OpenTelemetry SDK/exporter not installed. Install extras: pip install monad-x402[otel]"
        ) from e

    from .config import resolve_network

    resource = Resource.create(
        {
            SERVICE_NAME: os.getenv("OTEL_SERVICE_NAME", "monad-x402-buyer"),
            "monad.network": resolve_network(os.getenv("MONAD_NETWORK")),
        }
    )
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if use_console or _console_requested():
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    return provider


def maybe_setup_otel() -> Optional[Any]:
    """Opt-in variant for CLIs: configure tracing only when the env asks for it."""
    if not tracing_requested():
        return None
    return setup_otel_from_env(use_console=False)
