"""
Weekly settlement run: parse every upload, merge riders across files and
build the payout rows.
"""
import os
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from riderpay.catalog.branches import SettlementCatalog
from riderpay.core.audit import AuditLogger
from riderpay.core.errors import FileParseError
from riderpay.core.models import ParsedFile, SettlementRow
from riderpay.core.utils import file_hash, setup_logging
from riderpay.ingest.parser import SettlementWorkbookParser
from riderpay.reconcile.engine import NextDayReconciler
from .aggregator import OrderAggregator, branches_used, judgement_span
from .builder import SettlementRowBuilder
from .identity import RiderIdentityResolver
from .missions import mission_totals
from .summary import SummaryMerger

logger = setup_logging("settlement")

@dataclass
class UploadEntry:
    """One uploaded workbook with the branch the operator confirmed for it."""
    path: str
    branch_id: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.file_name or Path(self.path).name

@contextmanager
def staged_uploads(files: Iterable[Tuple[str, bytes, Optional[str]]]) -> Iterator[List[UploadEntry]]:
    """
    Write uploaded ``(file_name, content, branch_id)`` triples to temp files for
    the parser and remove them when the block exits.
    """
    entries: List[UploadEntry] = []
    try:
        for file_name, content, branch_id in files:
            suffix = Path(file_name).suffix or ".xlsx"
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
                tmp.write(content)
            entries.append(UploadEntry(path=tmp.name, branch_id=branch_id, file_name=file_name))
        yield entries
    finally:
        for entry in entries:
            if os.path.exists(entry.path):
                os.unlink(entry.path)

@dataclass
class SettlementRunResult:
    batch_id: str
    success: bool
    rows: List[SettlementRow] = field(default_factory=list)
    child_rows: Dict[str, List[SettlementRow]] = field(default_factory=dict)
    mission_dates: List[str] = field(default_factory=list)
    branches: List[str] = field(default_factory=list)
    span: Tuple[Optional[str], Optional[str]] = (None, None)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    files: List[Dict[str, str]] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self):
        return asdict(self)

class WeeklySettlementProcessor:
    """Runs the weekly settlement for one tenant; every run starts from scratch."""

    def __init__(
        self,
        tenant_id: str,
        parser: Optional[SettlementWorkbookParser] = None,
        reconciler: Optional[NextDayReconciler] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.tenant_id = tenant_id
        self.parser = parser or SettlementWorkbookParser()
        self.reconciler = reconciler
        self.audit = audit or AuditLogger(tenant_id)

    def parse_uploads(
        self, uploads: Sequence[UploadEntry], catalog: SettlementCatalog, warnings: List[str]
    ) -> Tuple[List[ParsedFile], List[Dict[str, str]]]:
        """
        Parse in upload order, one file at a time. The first failure propagates
        and nothing parsed before it is kept. A file whose content was already
        uploaded in this batch is skipped.
        """
        parsed: List[ParsedFile] = []
        files: List[Dict[str, str]] = []
        seen: Dict[str, str] = {}
        for entry in uploads:
            name = entry.display_name
            try:
                digest = file_hash(entry.path)
            except OSError as e:
                raise FileParseError(name, f"cannot open file ({e})") from e
            if digest in seen:
                msg = f"{name}: same content as {seen[digest]}, skipped"
                logger.warning(msg)
                warnings.append(msg)
                continue
            seen[digest] = name

            label = catalog.branch_label(entry.branch_id)
            result = self.parser.parse_file(entry.path, label, source_name=name)
            result.branch_id = entry.branch_id
            parsed.append(result)
            files.append({"file_name": name, "file_hash": digest, "branch_id": entry.branch_id or ""})
        return parsed, files

    def run(self, uploads: Sequence[UploadEntry], catalog: Optional[SettlementCatalog] = None, user_id: Optional[str] = None) -> SettlementRunResult:
        batch_id = str(uuid.uuid4())
        catalog = catalog if catalog is not None else SettlementCatalog.load(self.tenant_id)
        warnings: List[str] = list(catalog.warnings)

        if not uploads:
            return SettlementRunResult(batch_id=batch_id, success=False, errors=["no files uploaded"])
        unassigned = [u.display_name for u in uploads if not u.branch_id]
        if unassigned:
            return SettlementRunResult(
                batch_id=batch_id,
                success=False,
                errors=[f"no branch selected for {', '.join(unassigned)}"],
            )

        try:
            parsed, files = self.parse_uploads(uploads, catalog, warnings)
        except FileParseError as e:
            logger.error("batch %s aborted: %s", batch_id, e)
            self.audit.log_settlement_run(
                batch_id=batch_id,
                files=[{"file_name": u.display_name, "branch_id": u.branch_id or ""} for u in uploads],
                rider_count=0,
                success=False,
                warnings=warnings,
                error_message=str(e),
                user_id=user_id,
            )
            return SettlementRunResult(batch_id=batch_id, success=False, warnings=warnings, errors=[str(e)])

        resolver = RiderIdentityResolver()
        merged = SummaryMerger(resolver).merge(parsed)
        riders = OrderAggregator(resolver).aggregate(parsed, merged)
        resolver.freeze()

        missions = mission_totals(parsed, resolver, merged)
        span = judgement_span(riders)

        reconciler = self.reconciler or NextDayReconciler()
        seen_warnings = len(reconciler.warnings)
        offsets = reconciler.offsets((r.license_id for r in riders.values()), span)
        warnings.extend(reconciler.warnings[seen_warnings:])

        builder = SettlementRowBuilder(catalog, missions, offsets, span)
        rows, children = builder.build(riders, merged)

        result = SettlementRunResult(
            batch_id=batch_id,
            success=True,
            rows=rows,
            child_rows=children,
            mission_dates=missions.dates,
            branches=branches_used(riders, merged),
            span=span,
            warnings=warnings,
            files=files,
        )
        logger.info(
            "batch %s files=%d riders=%d span=%s..%s warnings=%d",
            batch_id, len(files), len(rows), span[0], span[1], len(warnings),
        )
        self.audit.log_settlement_run(
            batch_id=batch_id,
            files=files,
            rider_count=len(rows),
            success=True,
            warnings=warnings,
            span=list(span),
            user_id=user_id,
        )
        return result
