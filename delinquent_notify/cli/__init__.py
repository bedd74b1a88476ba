from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, NotifyConfig, load_config
from ..dispatch.dispatcher import dispatch
from ..dispatch.targets import (
    DeliveryMode,
    DispatchValidationError,
    NotificationTarget,
    build_agency_targets,
    build_delivery_request,
    build_member_targets,
    validate_batch,
)
from ..dispatch.transport import ResendTransport
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..mapping.columns import contract_for
from ..models.member_record import SchemaVariant
from ..models.parse_result import ParseResult
from ..services.ingestion import IngestionError, ingest_file
from ..services.statistics import calculate_statistics
from ..services.summary import dispatch_summary_fields, ingest_summary_fields
from ..tabular.reader import validate_headers

"""CLI entrypoint.

Flow:
- Load .env (python-dotenv, override) so RESEND_API_KEY etc. are visible
- Load config (required only with --send)
- Validate headers, ingest the file, print the SUMMARY line
- Optionally build targets and dispatch notifications

Exit codes: 0 all good, 2 partial (row errors or failed sends), 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv. Failures only produce a warning."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except Exception as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="delinquent-notify",
        description="Ingest a delinquent member file and notify collection agencies",
    )
    p.add_argument("file", type=Path, help="CSV / XLSX / XLS file to ingest")
    p.add_argument("--variant", choices=[v.value for v in SchemaVariant], default=None,
                   help="Column layout (default: config or 'full')")
    p.add_argument("--send", action="store_true", help="Dispatch notifications after ingestion")
    p.add_argument("--mode", choices=[m.value for m in DeliveryMode], default=None,
                   help="Notification granularity (default: config or 'per-member')")
    p.add_argument("--dry-run", action="store_true", help="Validate the batch but do not send")
    p.add_argument("--payload-out", type=Path, default=None, help="Write the delivery request JSON here")
    p.add_argument("--report-out", type=Path, default=None, help="Write the ingestion (and dispatch) report JSON here")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _build_targets(result: ParseResult, mode: DeliveryMode, cfg: NotifyConfig) -> list[NotificationTarget]:
    if mode is DeliveryMode.PER_AGENCY:
        return build_agency_targets(result, include_needs_lookup=cfg.include_needs_lookup)
    return build_member_targets(result)


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで main([...]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    config_path = args.config or DEFAULT_CONFIG_PATH
    cfg: NotifyConfig | None = None
    if args.send or args.config is not None or config_path.exists():
        try:
            cfg = load_config(config_path)
        except ConfigError as e:
            logger.error(f"config: {e}")
            return EXIT_FATAL

    variant = SchemaVariant(args.variant or (cfg.variant if cfg else SchemaVariant.FULL.value))
    contract = contract_for(variant)

    try:
        headers = validate_headers(args.file, contract.required)
        if not headers.valid:
            logger.error(f"headers: missing required columns: {', '.join(headers.missing_headers)}")
            return EXIT_FATAL
        logger.info(f"Processing file: {args.file} (variant={variant.value})")
        result = ingest_file(args.file, variant=variant)
    except IngestionError as e:
        logger.error(f"ingest: {e}")
        return EXIT_FATAL

    if result.errors:
        for err in result.errors:
            logger.warning(f"row {err.row_number}: {err.message}")
        error_log = ErrorLogBuffer()
        error_log.extend_from_parse_errors(result.source_name, result.errors)
        log_path = error_log.flush()
        logger.info(f"error log written: {log_path}")

    stats = calculate_statistics(result)
    log_summary(ingest_summary_fields(result, stats))

    report_data: dict[str, object] = {"ingest": result.to_dict(), "statistics": stats.to_dict()}
    dispatch_failed = False

    if args.send:
        if cfg is None:
            logger.error(f"config: --send requires a config file ({config_path})")
            return EXIT_FATAL
        mode = DeliveryMode(args.mode or cfg.mode)
        targets = _build_targets(result, mode, cfg)
        if args.payload_out is not None:
            _write_json(args.payload_out, build_delivery_request(targets, cfg.reply_to))
            logger.info(f"delivery request written: {args.payload_out}")
        try:
            if args.dry_run:
                validate_batch(targets, cfg.reply_to)
                logger.info(f"dry-run: {len(targets)} {mode.value} target(s) validated, nothing sent")
            else:
                transport = ResendTransport.from_config(cfg)
                try:
                    report = dispatch(targets, transport, cfg.reply_to, max_workers=cfg.delivery.max_workers)
                finally:
                    transport.close()
                log_summary(dispatch_summary_fields(report))
                report_data["dispatch"] = report.to_dict()
                dispatch_failed = not report.overall_success
        except DispatchValidationError as e:
            for v in e.violations:
                logger.error(f"validation: {v}")
            return EXIT_FATAL
        except ConfigError as e:
            logger.error(f"config: {e}")
            return EXIT_FATAL

    if args.report_out is not None:
        _write_json(args.report_out, report_data)
        logger.info(f"report written: {args.report_out}")

    if result.errors or dispatch_failed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL
