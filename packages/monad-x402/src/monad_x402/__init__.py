# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from .bots import (
    BotClassification,
    classify,
    classify_ai_crawler,
    get_ai_crawler_name,
    get_bot_type,
    is_ai_crawler,
    is_bot,
    matches_allow_list,
)
from .buyer import BuyerClient, BuyerConfig, PaidResponse, PaymentError, PaymentInfo, decode_x_payment_response
from .chain import (
    ChainClient,
    ParsedTransaction,
    TransactionParseError,
    format_mon,
    generate_wallet,
    is_valid_address,
    is_valid_private_key,
    parse_mon,
    parse_signed_transaction,
)
from .config import MonadConfig, NetworkConfig, UnsupportedNetworkError, resolve_network
from .encoding import (
    Base64DecodeError,
    DecodeError,
    PayloadJSONError,
    decode_header,
    decode_payment_response,
    encode_header,
    encode_payment_response,
)
from .facilitator_client import FacilitatorClient
from .middleware import (
    AICrawlerConfig,
    AICrawlerMiddleware,
    BotProtectionConfig,
    BotProtectionMiddleware,
    PaymentMiddleware,
    allow_specific_crawlers,
    block_ai_crawlers,
    block_all_bots,
    block_all_bots_except_seo,
    payment_middleware,
)
from .otel import maybe_setup_otel, setup_otel_from_env, tracing_requested
from .result import Fault, Invalid, Ok
from .types import (
    MONAD_MAINNET,
    MONAD_TESTNET,
    SCHEME,
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    RouteConfig,
    SettleResponse,
    VerifyResponse,
    build_requirements,
)

__version__ = "0.1.0"

__all__ = [
    "X402_VERSION",
    "SCHEME",
    "MONAD_TESTNET",
    "MONAD_MAINNET",
    "MonadConfig",
    "NetworkConfig",
    "UnsupportedNetworkError",
    "resolve_network",
    "PaymentRequirements",
    "PaymentPayload",
    "VerifyResponse",
    "SettleResponse",
    "RouteConfig",
    "build_requirements",
    "DecodeError",
    "Base64DecodeError",
    "PayloadJSONError",
    "encode_header",
    "decode_header",
    "encode_payment_response",
    "decode_payment_response",
    "BotClassification",
    "classify",
    "classify_ai_crawler",
    "is_bot",
    "get_bot_type",
    "is_ai_crawler",
    "get_ai_crawler_name",
    "matches_allow_list",
    "ChainClient",
    "ParsedTransaction",
    "TransactionParseError",
    "parse_signed_transaction",
    "format_mon",
    "parse_mon",
    "is_valid_address",
    "is_valid_private_key",
    "generate_wallet",
    "Ok",
    "Invalid",
    "Fault",
    "FacilitatorClient",
    "PaymentMiddleware",
    "payment_middleware",
    "BotProtectionConfig",
    "BotProtectionMiddleware",
    "AICrawlerConfig",
    "AICrawlerMiddleware",
    "block_all_bots",
    "block_all_bots_except_seo",
    "block_ai_crawlers",
    "allow_specific_crawlers",
    "BuyerConfig",
    "BuyerClient",
    "PaidResponse",
    "PaymentInfo",
    "PaymentError",
    "decode_x_payment_response",
    "setup_otel_from_env",
    "maybe_setup_otel",
    "tracing_requested",
]
