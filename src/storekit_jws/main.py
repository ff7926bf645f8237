"""
Application entry point — wires the decoder and decodes tokens from the command line.

Composition root: creates the concrete trust store, chain verifier and key
resolver from settings. This is the ONLY place where concrete adapters are
chosen; everything else depends on the Protocol ports.

Usage:
  storekit-jws <signed-transaction> [<signed-transaction> ...]
  cat tokens.txt | storekit-jws          # one token per line

Each verified transaction is printed as one JSON line on stdout. Failures are
logged; the exit status is 1 if any token failed, 2 on configuration errors.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, Sequence
from typing import TextIO

import structlog

from storekit_jws import __version__
from storekit_jws.adapters.trust_store import PinnedTrustStore
from storekit_jws.config import AppSettings
from storekit_jws.pipeline import SignedDataDecoder
from storekit_jws.result import Result


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging on stderr.

    stdout is reserved for decoded claims.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _create_decoder(settings: AppSettings) -> Result[SignedDataDecoder]:
    """
    Instantiate the decoder and its adapters from application settings.

    Fails with CONFIGURATION_ERROR if a configured root file cannot be loaded.
    """
    paths = settings.trust.root_certificate_paths
    store = PinnedTrustStore.from_files(paths) if paths else Result.success(PinnedTrustStore())
    return store.map(
        lambda trust_store: SignedDataDecoder(
            trust_store=trust_store,
            verify_leaf_issuer=settings.trust.verify_leaf_issuer,
        )
    )


def _read_tokens(argv: Sequence[str], stdin: TextIO) -> Iterable[str]:
    if argv:
        return list(argv)
    return (line.strip() for line in stdin if line.strip())


def decode_tokens(decoder: SignedDataDecoder, tokens: Iterable[str], out: TextIO) -> int:
    """Decode each token, print verified claims as JSON lines, return the failure count."""
    log = structlog.get_logger()
    failures = 0
    for position, token in enumerate(tokens):
        result = decoder.decode_transaction(token)
        if result.is_success():
            out.write(result.value().model_dump_json(by_alias=True, exclude_none=True) + "\n")
        else:
            failures += 1
            error = result.error()
            log.error("token.failed", position=position, code=error.code.value, reason=error.message)
    return failures


def main(argv: Sequence[str] | None = None) -> int:
    """Load settings, wire the decoder and decode every token given."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        return 2

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    log.info("app.starting", version=__version__, log_level=settings.log_level)

    decoder_result = _create_decoder(settings)
    if decoder_result.is_failure():
        log.error("app.configuration_error", reason=decoder_result.error().message)
        return 2

    tokens = _read_tokens(sys.argv[1:] if argv is None else argv, sys.stdin)
    failures = decode_tokens(decoder_result.value(), tokens, sys.stdout)
    log.info("app.finished", failures=failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
