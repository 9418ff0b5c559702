"""
Repository layer for the catalog the settlement run reads: branches,
promotions, branch rosters, lease rentals and loans.
Each entity lives in one tenant-scoped JSON file under ``DATA_DIR/{entity}``.
"""
import json
from abc import ABC
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from riderpay.core.config import settings
from riderpay.core.utils import atomic_write_json, setup_logging, to_number

logger = setup_logging("catalog")

class BaseRepository(ABC):
    """Base repository with common data persistence patterns."""

    key_field = "id"

    def __init__(self, tenant_id: str, entity_type: str):
        self.tenant_id = tenant_id
        self.entity_type = entity_type

        self.data_dir = Path(settings.DATA_DIR)
        self.entity_dir = self.data_dir / entity_type
        self.archive_dir = self.entity_dir / "archive"

        for dir_path in [self.entity_dir, self.archive_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def _get_data_file(self) -> Path:
        return self.entity_dir / f"{self.tenant_id}_{self.entity_type}.json"

    def _get_archive_file(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        return self.archive_dir / f"{self.tenant_id}_{self.entity_type}_{timestamp}.json"

    def load_data(self) -> List[Dict[str, Any]]:
        """Load current records; a missing or corrupt file reads as empty."""
        data_file = self._get_data_file()
        if not data_file.exists():
            return []
        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("unreadable %s file %s: %s", self.entity_type, data_file, e)
            return []
        return data if isinstance(data, list) else []

    def save_data(self, data: List[Dict[str, Any]], create_backup: bool = True):
        if create_backup and self._get_data_file().exists():
            current = self.load_data()
            if current:
                atomic_write_json(str(self._get_archive_file()), current)
        atomic_write_json(str(self._get_data_file()), data)

    def bulk_upsert(self, records: List[Dict[str, Any]], key_field: Optional[str] = None) -> Dict[str, int]:
        """Upsert records by ``key_field``; records without a key are skipped."""
        key_field = key_field or self.key_field
        existing_map = {str(r.get(key_field)): r for r in self.load_data()}

        created = updated = 0
        for record in records:
            key_value = record.get(key_field)
            if key_value in (None, ""):
                continue
            key_value = str(key_value)
            record = dict(record)
            record["last_updated"] = datetime.now().isoformat()
            if key_value in existing_map:
                existing_map[key_value].update(record)
                updated += 1
            else:
                record["created_at"] = record["last_updated"]
                existing_map[key_value] = record
                created += 1

        updated_data = list(existing_map.values())
        self.save_data(updated_data)
        return {"created": created, "updated": updated, "total": len(updated_data)}

class BranchesRepository(BaseRepository):
    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "branches")

class PromotionsRepository(BaseRepository):
    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "promotions")

class BranchRidersRepository(BaseRepository):
    """Roster rows: ``{id, branch_id, name, phone, phone_suffix}``."""

    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "branch_riders")

    def riders_by_branch(self) -> Dict[str, List[Dict[str, Any]]]:
        out: Dict[str, List[Dict[str, Any]]] = {}
        for r in self.load_data():
            bid = r.get("branch_id")
            if bid is None:
                continue
            out.setdefault(str(bid), []).append(r)
        return out

class LeaseRentalsRepository(BaseRepository):
    """Lease rows: ``{id, rider_id, daily_fee}``."""

    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "lease_rentals")

    def daily_fee_by_rider(self) -> Dict[str, float]:
        fees = {}
        for r in self.load_data():
            rider_id, fee = r.get("rider_id"), r.get("daily_fee")
            if rider_id and fee:
                fees[str(rider_id)] = to_number(fee)
        return fees

class LoansRepository(BaseRepository):
    """Loan rows: ``{id, rider_id, rider_suffix, payment_weekday, payment_amount}``."""

    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "loans")
