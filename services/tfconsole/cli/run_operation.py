"""
Run a Terraform operation chain against the backend from a shell.

Run via: python -m tfconsole.cli.run_operation <operation> [terraform-dir]

Reads the operation context from environment variables:
  TFCONSOLE_ORG_ID        - Organization owning the credentials (required)
  TFCONSOLE_PROJECT_ID    - Project ID (required)
  TFCONSOLE_WORKSPACE_ID  - Workspace ID (required)
  TFCONSOLE_USER_ID       - User ID (optional)
  TFCONSOLE_PROVIDER      - aws, azure or gcp (optional; defaults to aws)

Streams the operation output to stdout and exits non-zero when the chain
fails or is rejected.
"""

import asyncio
import os
import sys
from pathlib import Path

from tfconsole.client.remote import RemoteOperationClient
from tfconsole.config import settings
from tfconsole.domain.fileset import FileSet
from tfconsole.domain.models import CloudProvider, OperationContext, OperationKind
from tfconsole.logging_config import configure_logging, get_logger
from tfconsole.services.execution_engine import OperationOrchestrator

logger = get_logger("tfconsole.cli")

TERRAFORM_SUFFIXES = (".tf", ".tfvars", ".tf.json")

USAGE = "usage: python -m tfconsole.cli.run_operation {validate,plan,compliance,apply,destroy} [dir]"


def load_terraform_dir(directory: Path) -> FileSet:
    """Load Terraform sources below ``directory`` into a FileSet."""
    files: dict[str, str] = {}
    for path in sorted(directory.rglob("*")):
        if not path.is_file() or not path.name.endswith(TERRAFORM_SUFFIXES):
            continue
        relative = path.relative_to(directory)
        if any(part.startswith(".") for part in relative.parts):
            # Skip .terraform/ and other hidden directories
            continue
        files[relative.as_posix()] = path.read_text(encoding="utf-8")
    return FileSet(files)


def _int_env(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.error("Environment variable must be an integer", variable=name, value=raw)
        sys.exit(2)


def context_from_env(files: FileSet) -> OperationContext:
    raw_provider = os.environ.get("TFCONSOLE_PROVIDER", "").strip().lower()
    provider = None
    if raw_provider:
        try:
            provider = CloudProvider(raw_provider)
        except ValueError:
            logger.error("Unknown cloud provider", provider=raw_provider)
            sys.exit(2)

    return OperationContext(
        org_id=_int_env("TFCONSOLE_ORG_ID"),
        project_id=_int_env("TFCONSOLE_PROJECT_ID"),
        workspace_id=_int_env("TFCONSOLE_WORKSPACE_ID"),
        user_id=_int_env("TFCONSOLE_USER_ID"),
        provider=provider,
        files=files,
    )


async def run(target: OperationKind, directory: Path) -> int:
    files = load_terraform_dir(directory)
    if not files:
        logger.warning("No Terraform files found", directory=str(directory))
    context = context_from_env(files)

    async with RemoteOperationClient() as client:
        orchestrator = OperationOrchestrator(
            client, status_reset_seconds=settings.operations.status_reset_seconds
        )
        orchestrator.output.subscribe(lambda text: print(text, end="", flush=True))
        result = await orchestrator.run_target(target, context)
        orchestrator.cancel_pending_resets()

    if result.rejected:
        return 3
    return 0 if result.succeeded else 1


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    args = sys.argv[1:] if argv is None else argv
    if not args or len(args) > 2:
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    try:
        target = OperationKind(args[0].lower())
    except ValueError:
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    directory = Path(args[1]) if len(args) == 2 else Path.cwd()
    if not directory.is_dir():
        logger.error("Terraform directory not found", directory=str(directory))
        sys.exit(2)

    sys.exit(asyncio.run(run(target, directory)))


if __name__ == "__main__":
    main()
