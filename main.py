"""
Command line entry point.

    sigura check-renderer              probe the office renderer pool
    sigura classify FILE...            show how uploads would be handled
    sigura chain --roster roster.json --type field_trip --department science
    sigura stamp base.pdf signature.png out.pdf [--name ... --role ...]
    sigura preview upload.docx out.pdf  render an upload the way reviewers see it
    sigura scan-originals --roster roster.json

Configuration comes from ConfigService (defaults.ini, SIGURA_* environment
variables and the machine INI named by SIGURA_CONFIG).
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from approvals.adapters.filesystem_storage_adapter import FilesystemArtifactStore
from approvals.adapters.static_role_directory import StaticRoleDirectory
from approvals.logic.approval_service import ApprovalService
from approvals.logic.chain_policy import ChainPolicy
from approvals.logic.chain_resolver import ApprovalChainResolver
from approvals.models.approval_models import utcnow
from approvals.repository.sqlite_document_repository import SQLiteDocumentRepository
from conversion.exceptions.errors import RendererUnavailableError
from conversion.logic.format_classifier import classify, ensure_supported
from conversion.logic.native_renderer import image_to_pdf, text_to_pdf
from conversion.logic.worker_pool import ConversionWorkerPool
from conversion.models.format_kind import FormatKind
from core.config.config_service import AppConfig, get_config_service
from core.contracts.directory import IRoleDirectory
from core.exceptions.errors import SiguraError
from core.logging.logic.logger import LoggingAuditLogger
from signature.logic.encryption import SignatureVault
from signature.logic.signature_service import SignatureService
from signature.models.signature_image import SignatureImage

logger = logging.getLogger("sigura")


def build_pool(config: AppConfig) -> Optional[ConversionWorkerPool]:
    """Start the renderer pool; None when no renderer is available and it is optional."""
    try:
        pool = ConversionWorkerPool.from_config(config.renderer)
        pool.start()
        return pool
    except SiguraError as ex:
        if config.renderer.required:
            raise
        logger.warning("Office renderer unavailable, office previews disabled: %s", ex)
        return None


def build_service(
    config: AppConfig,
    directory: IRoleDirectory,
    *,
    pool: Optional[ConversionWorkerPool] = None,
) -> ApprovalService:
    """Wire the production service: SQLite metadata, filesystem artifacts."""
    return ApprovalService.from_config(
        config,
        repository=SQLiteDocumentRepository(config.storage.database),
        store=FilesystemArtifactStore(config.storage.root),
        directory=directory,
        pool=pool,
        audit_logger=LoggingAuditLogger(),
    )


# --------------------------------------------------------------------------- #
#  Commands
# --------------------------------------------------------------------------- #

def _cmd_check_renderer(args: argparse.Namespace, config: AppConfig) -> int:
    pool = ConversionWorkerPool.from_config(config.renderer)
    try:
        health = pool.start()
    except SiguraError as ex:
        print(f"renderer: unavailable ({ex})")
        return 1
    try:
        print(f"renderer: {health.state.value}, {health.engines} engine(s), {health.version or 'unknown version'}")
        return 0 if health.healthy else 1
    finally:
        pool.shutdown()


def _cmd_classify(args: argparse.Namespace, config: AppConfig) -> int:
    for name in args.files:
        print(f"{name}: {classify(name).value}")
    return 0


def _cmd_chain(args: argparse.Namespace, config: AppConfig) -> int:
    directory = StaticRoleDirectory.from_json(args.roster)
    policy = ChainPolicy.load(config.workflow.chain_policy_file or None)
    for entry in ApprovalChainResolver(directory, policy).resolve(args.type, args.department):
        print(f"{entry.level}. {entry.role}: {entry.principal.full_name} ({entry.principal.principal_id})")
    return 0


def _cmd_stamp(args: argparse.Namespace, config: AppConfig) -> int:
    service = SignatureService(config=config.signature, vault=SignatureVault(config.signature.key_file))
    base = Path(args.base).read_bytes()
    stamp = service.stamp(
        SignatureImage.from_bytes(Path(args.signature).read_bytes()),
        base_pdf=base,
        slot=args.slot,
        full_name=args.name,
        role=args.role,
        signed_at=utcnow(),
    )
    Path(args.output).write_bytes(service.sign_pdf(base, [stamp]))
    print(f"wrote {args.output}")
    return 0


def _cmd_preview(args: argparse.Namespace, config: AppConfig) -> int:
    source = Path(args.file)
    kind = ensure_supported(source.name)
    data = source.read_bytes()
    if kind is FormatKind.NATIVE_PDF:
        pdf = data
    elif kind is FormatKind.NATIVE_IMAGE:
        pdf = image_to_pdf(data)
    elif kind is FormatKind.NATIVE_TEXT:
        pdf = text_to_pdf(data)
    else:
        pool = build_pool(config)
        if pool is None:
            raise RendererUnavailableError("No office renderer available for " + source.name)
        with pool:
            pdf = pool.convert_file_name(data, source.name)
    Path(args.output).write_bytes(pdf)
    print(f"wrote {args.output} ({kind.value})")
    return 0


def _cmd_scan_originals(args: argparse.Namespace, config: AppConfig) -> int:
    service = build_service(config, StaticRoleDirectory.from_json(args.roster))
    missing = service.scan_missing_originals()
    for doc_id in missing:
        print(f"missing original: {doc_id}")
    return 1 if missing else 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sigura", description="Document approval and signing pipeline")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check-renderer", help="Probe the office renderer")
    p.set_defaults(func=_cmd_check_renderer)

    p = sub.add_parser("classify", help="Show the format kind of file names")
    p.add_argument("files", nargs="+")
    p.set_defaults(func=_cmd_classify)

    p = sub.add_parser("chain", help="Resolve the approval chain for a document type")
    p.add_argument("--roster", required=True, help="Role roster JSON")
    p.add_argument("--type", required=True, help="Document type")
    p.add_argument("--department", default=None)
    p.set_defaults(func=_cmd_chain)

    p = sub.add_parser("stamp", help="Embed a signature image into a PDF")
    p.add_argument("base")
    p.add_argument("signature")
    p.add_argument("output")
    p.add_argument("--slot", type=int, default=0, help="Signature slot on the last page (0 = first)")
    p.add_argument("--name", default="")
    p.add_argument("--role", default="")
    p.set_defaults(func=_cmd_stamp)

    p = sub.add_parser("preview", help="Render an upload as PDF")
    p.add_argument("file")
    p.add_argument("output")
    p.set_defaults(func=_cmd_preview)

    p = sub.add_parser("scan-originals", help="Flag documents whose original upload is gone")
    p.add_argument("--roster", required=True, help="Role roster JSON")
    p.set_defaults(func=_cmd_scan_originals)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = get_config_service().app
    try:
        return args.func(args, config)
    except SiguraError as ex:
        logger.error("%s error: %s", ex.category, ex)
        return 2


if __name__ == "__main__":
    sys.exit(main())
