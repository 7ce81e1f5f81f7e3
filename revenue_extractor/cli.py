"""CLI entrypoint for the revenue extraction pipeline."""

import argparse
import asyncio
import json
import logging
import os
import sys
import warnings
from pathlib import Path

from revenue_extractor.core.config import DEFAULT_MODELS, LLM_PROVIDER, API_KEY_ENV_VAR, LLMConfig, QueueConfig

# Suppress LiteLLM's direct prints (must be before import)
os.environ["LITELLM_LOG"] = "ERROR"

# Suppress noisy warnings before any imports
warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic")
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress noisy loggers (HTTP clients, LiteLLM internals)
for logger_name in ["httpx", "httpcore", "litellm", "LiteLLM",
                    "LiteLLM Proxy", "LiteLLM Router", "aiohttp", "asyncio"]:
    logging.getLogger(logger_name).setLevel(logging.ERROR)

from dotenv import load_dotenv  # noqa: E402 - must be after logging config

# Load environment variables
load_dotenv()

# Suppress LiteLLM's verbose output after import
try:
    import litellm
    litellm.suppress_debug_info = True
    litellm.set_verbose = False
except (ImportError, AttributeError):
    pass


def _check_api_key() -> bool:
    if os.environ.get(API_KEY_ENV_VAR):
        return True
    print(f"Error: {API_KEY_ENV_VAR} not set")
    if LLM_PROVIDER == "azure":
        print("For Azure, set: AZURE_API_KEY, AZURE_API_BASE, AZURE_API_VERSION")
    else:
        print("Set it in .env or export OPENROUTER_API_KEY=...")
    return False


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


# -----------------------------------------------------------------------------
# Subcommands
# -----------------------------------------------------------------------------


def cmd_submit(args) -> int:
    from revenue_extractor.service import ExtractionService
    from revenue_extractor.pydantic_models import DocumentMetadata

    pdf_path = Path(args.pdf)
    if not pdf_path.exists():
        print(f"Error: File not found: {pdf_path}")
        return 1

    service = ExtractionService(args.db)
    job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_path.resolve())))
    print(job_id)
    return 0


def cmd_status(args) -> int:
    from revenue_extractor.core import DocumentNotFoundError
    from revenue_extractor.service import ExtractionService

    service = ExtractionService(args.db)
    try:
        status = service.get_extraction_status(args.document_id)
    except DocumentNotFoundError as e:
        print(f"Error: {e}")
        return 1
    _print_json(status.model_dump(mode="json"))
    return 0


def cmd_reprocess(args) -> int:
    from revenue_extractor.core import DocumentNotFoundError
    from revenue_extractor.service import ExtractionService

    service = ExtractionService(args.db)
    try:
        job_id = service.trigger_reprocess(args.document_id)
    except DocumentNotFoundError as e:
        print(f"Error: {e}")
        return 1
    print(job_id)
    return 0


def cmd_stats(args) -> int:
    from revenue_extractor.service import ExtractionService

    stats = ExtractionService(args.db).queue_stats()
    _print_json({**stats.model_dump(), "total": stats.total})
    return 0


def cmd_retry(args) -> int:
    from revenue_extractor.service import ExtractionService

    try:
        job = ExtractionService(args.db).retry_failed_job(args.job_id)
    except (KeyError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    print(f"Job {job.id} is {job.status}")
    return 0


def cmd_therapy_add(args) -> int:
    from revenue_extractor.service import ExtractionService

    try:
        therapy = ExtractionService(args.db).register_therapy(args.name, args.company)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    print(f"Registered {therapy.name} ({therapy.manufacturer}) as {therapy.id}")
    return 0


async def _run_worker(args) -> int:
    from revenue_extractor.worker import QueueWorker

    worker = QueueWorker(
        args.db,
        verbose=args.verbose,
        log_dir=args.log_dir,
        max_concurrent=args.concurrent,
    )
    if args.once:
        job = await worker.run_once()
        if job is None:
            print("Queue is empty")
        return 0

    try:
        await worker.start()
    except asyncio.CancelledError:
        worker.stop()
    return 0


def cmd_worker(args) -> int:
    if not _check_api_key():
        return 1
    try:
        return asyncio.run(_run_worker(args))
    except KeyboardInterrupt:
        print("\nWorker interrupted")
        return 0


async def extract(
    pdf_path: str,
    db_path: str,
    output_dir: str = "outputs",
    max_concurrent: int = LLMConfig.MAX_CONCURRENT,
    verbose: bool = False,
    revenue_model: str = DEFAULT_MODELS["revenue"],
) -> dict | None:
    """Run the pipeline directly on one PDF, bypassing the queue.

    Therapies are looked up in the database at ``db_path``.

    Returns:
        PipelineOutput as a dict, or None on failure.
    """
    from revenue_extractor.orchestrator import Orchestrator
    from revenue_extractor.storage import TherapyRepository, initialize_schema

    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        print(f"Error: File not found: {pdf_path}")
        return None
    if not _check_api_key():
        return None

    output_dir = Path(output_dir)
    json_dir = output_dir / "json"
    logs_dir = output_dir / "logs"
    json_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    initialize_schema(db_path)
    therapies = TherapyRepository(db_path)

    print(f"\n{'='*50}")
    print(f"Extracting: {pdf_path.name}")
    print(f"{'='*50}")
    print(f"  Provider: {LLM_PROVIDER}")
    print(f"  Revenue model: {revenue_model.replace('openrouter/', '').replace('azure/', '')}")
    print(f"  Concurrency: {max_concurrent}")
    print()

    try:
        orchestrator = Orchestrator.from_pdf(
            pdf_path,
            therapies.find_by_company,
            registered_companies=therapies.list_companies(),
            revenue_model=revenue_model,
            max_concurrent=max_concurrent,
            verbose=verbose,
            log_dir=logs_dir,
        )
        output = await orchestrator.run()
        output_dict = output.model_dump(mode="json")

        output_file = json_dir / f"{pdf_path.stem}.json"
        with open(output_file, "w") as f:
            json.dump(output_dict, f, indent=2, ensure_ascii=False)
        print(f"\n[OUTPUT] {output_file}")

        cost_tracker = orchestrator.cost_tracker
        if cost_tracker.call_count > 0:
            print(f"\n{cost_tracker.summary()}")

        return output_dict

    except Exception as e:
        print(f"\n[ERROR] Pipeline failed: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return None


def cmd_extract(args) -> int:
    result = asyncio.run(extract(
        pdf_path=args.pdf,
        db_path=args.db,
        output_dir=args.output,
        max_concurrent=args.concurrent,
        verbose=args.verbose,
        revenue_model=args.revenue_model or DEFAULT_MODELS["revenue"],
    ))
    return 0 if result else 1


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revenue-extract",
        description="Therapy Revenue Extraction Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  revenue-extract therapy add Acme-T --company "Acme Therapeutics"
  revenue-extract submit reports/acme_q1_2024.pdf
  revenue-extract worker
  revenue-extract status 3f2b...
  revenue-extract extract reports/acme_q1_2024.pdf   # no queue
        """,
    )
    parser.add_argument(
        "--db",
        default=QueueConfig.DB_PATH,
        help=f"Queue database (default: {QueueConfig.DB_PATH}, or QUEUE_DB_PATH)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("submit", help="Register a PDF and queue its extraction")
    p.add_argument("pdf", help="Path to PDF file")
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser("status", help="Show a document's extraction status and result")
    p.add_argument("document_id")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("reprocess", help="Queue a high-priority reprocessing job")
    p.add_argument("document_id")
    p.set_defaults(func=cmd_reprocess)

    p = sub.add_parser("stats", help="Show job counts per status")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("retry", help="Re-queue a failed job")
    p.add_argument("job_id")
    p.set_defaults(func=cmd_retry)

    p = sub.add_parser("therapy", help="Manage the therapy registry")
    therapy_sub = p.add_subparsers(dest="therapy_command", required=True)
    add = therapy_sub.add_parser("add", help="Register a therapy")
    add.add_argument("name", help="Therapy name as it appears in reports")
    add.add_argument("--company", required=True, help="Manufacturer")
    add.set_defaults(func=cmd_therapy_add)

    for name, helptext in (("worker", "Process queued jobs"), ("extract", "Run the pipeline on one PDF directly")):
        p = sub.add_parser(name, help=helptext)
        p.add_argument(
            "-c", "--concurrent",
            type=int,
            default=LLMConfig.MAX_CONCURRENT,
            help=f"Max concurrent API calls (default: {LLMConfig.MAX_CONCURRENT})",
        )
        p.add_argument(
            "-v", "--verbose",
            action="store_true",
            help="Verbose output with DEBUG level logging",
        )

    worker = sub.choices["worker"]
    worker.add_argument("--once", action="store_true", help="Process at most one job and exit")
    worker.add_argument("--log-dir", default=None, help="Directory for per-job log files")
    worker.set_defaults(func=cmd_worker)

    extract_parser = sub.choices["extract"]
    extract_parser.add_argument("pdf", help="Path to PDF file")
    extract_parser.add_argument(
        "-o", "--output",
        default="outputs",
        help="Output directory (default: outputs)",
    )
    extract_parser.add_argument(
        "--revenue-model",
        default=None,
        help=f"Model for revenue extraction. Default: {DEFAULT_MODELS['revenue']}",
    )
    extract_parser.set_defaults(func=cmd_extract)

    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
