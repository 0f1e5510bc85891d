from __future__ import annotations

import argparse
import logging
import os
import sys
import uuid

import uvicorn

from pdfpost.api.http_app import build_app
from pdfpost.config import require_holder_id
from pdfpost.domain.errors import ConfigurationError
from pdfpost.logging_setup import configure_logging
from pdfpost.roles import SUPPORTED_ROLES, validate_role
from pdfpost.services.bootstrap import build_runtime_container


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PDF post-processing worker")
    parser.add_argument("--role", required=True, help="Runtime role")
    parser.add_argument("--host", default=os.getenv("APP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=8100)
    parser.add_argument(
        "--dry-run-startup",
        action="store_true",
        help="Validate startup and exit",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        role = validate_role(args.role)
    except ValueError as exc:
        supported = ", ".join(SUPPORTED_ROLES)
        sys.stderr.write(f"ERROR: {exc}\n")
        sys.stderr.write(f"Try one of: {supported}\n")
        return 2

    configure_logging()
    logger = logging.getLogger("runtime")

    try:
        holder_id = require_holder_id()
    except ConfigurationError as exc:
        logger.error("refusing to start: %s", exc, extra={"role": role.name, "service": role.name})
        return 1

    run_id = str(uuid.uuid4())
    logger.info(
        "runtime initialized",
        extra={"role": role.name, "service": role.name, "run_id": run_id, "holder_id": holder_id},
    )

    if args.dry_run_startup:
        logger.info(
            "dry-run startup complete",
            extra={"role": role.name, "service": role.name, "run_id": run_id, "holder_id": holder_id},
        )
        return 0

    try:
        container = build_runtime_container(role, holder_id=holder_id)
    except ConfigurationError as exc:
        logger.error("refusing to start: %s", exc, extra={"role": role.name, "service": role.name})
        return 1
    app = build_app(
        role=role.name,
        run_id=run_id,
        holder_id=holder_id,
        ledger=container.ledger,
        worker_loop=container.worker_loop,
        worker_runtime_settings=container.runtime_settings,
        mode=container.mode,
        on_startup=container.on_startup,
        on_shutdown=container.on_shutdown,
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
