import argparse
import logging
import sys
from typing import List, Optional

from .core.config import get_settings, load_unified_config


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bpelprd",
        description="bpelprd - deterministic PRD extraction from BPEL processes",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: logging.level from config)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Write PRDs and JSON summaries for a project")
    extract.add_argument("project_dir", help="Directory holding bpel/, wsdl/ and xsd/")
    extract.add_argument("-o", "--output", default=None, help="Output root (default: project_dir)")
    extract.add_argument("--no-diagram", action="store_true", help="Omit the PlantUML diagram")
    extract.add_argument(
        "--strict",
        action="store_true",
        help="Exit 1 when any blocking completeness gate fails"
    )

    verify = sub.add_parser("verify", help="Gate existing PRDs against their BPEL sources")
    verify.add_argument("project_dir", help="Directory holding bpel/ and prds/")
    verify.add_argument("--prd-dir", default=None, help="PRD directory (default: project_dir/prds)")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: api.host)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: api.port)")
    return parser


def _cmd_extract(args: argparse.Namespace) -> int:
    from .core.extraction.service import ExtractionService

    service = ExtractionService(get_settings())
    try:
        results = service.extract_project(
            args.project_dir,
            output_dir=args.output,
            include_diagram=False if args.no_diagram else None,
        )
    except (ValueError, RuntimeError) as e:
        logger.error("%s", e)
        return 1

    exit_code = 0
    for result in results:
        if not result.ok:
            print(f"FAILED  {result.file_path}: {'; '.join(e.message for e in result.errors if e.severity == 'error')}")
            exit_code = 1
            continue
        blocking = result.blocking_failures
        status = "OK" if not result.gates or all(g.passed for g in result.gates) else "GATES"
        print(f"{status:<7} {result.file_path} -> {result.prd_path} ({len(result.gaps)} gaps)")
        for gate in result.gates:
            if not gate.passed:
                print(f"        gate {gate.gate_name} failed: {gate.details.get('missing')}")
        if args.strict and blocking:
            exit_code = 1

    if not results:
        print("No BPEL files found")
    return exit_code


def _cmd_verify(args: argparse.Namespace) -> int:
    from .core.extraction.service import ExtractionService

    service = ExtractionService(get_settings())
    try:
        report = service.verify_project(args.project_dir, prd_dir=args.prd_dir)
    except ValueError as e:
        logger.error("%s", e)
        return 1

    exit_code = 0
    for file_path, gates in report.items():
        failed = [g for g in gates if not g.passed and g.blocking]
        print(f"{'OK' if not failed else 'FAILED':<7} {file_path}")
        for gate in gates:
            if not gate.passed:
                print(f"        gate {gate.gate_name} failed: {gate.details.get('missing', gate.details)}")
        if failed:
            exit_code = 1
    return exit_code


def _cmd_serve(args: argparse.Namespace, log_level: str) -> int:
    api_config = load_unified_config()["api"]
    host = args.host or api_config["host"]
    port = args.port or int(api_config["port"])

    from .api.app import create_app
    app = create_app()

    # Launch with uvicorn
    import uvicorn

    logger.info("Starting FastAPI server on http://%s:%d", host, port)
    print(f"\n  bpelprd API is running at: http://localhost:{port}")
    print(f"  API docs at: http://localhost:{port}/docs\n")

    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for bpelprd."""
    args = _build_parser().parse_args(argv)

    log_level = args.log_level or load_unified_config()["logging"]["level"]
    setup_logging(log_level)

    if args.command == "extract":
        return _cmd_extract(args)
    if args.command == "verify":
        return _cmd_verify(args)
    return _cmd_serve(args, log_level)


if __name__ == "__main__":
    sys.exit(main())
