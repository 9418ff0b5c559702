import os
import tempfile

# settings are read once at import time, so point them at a scratch dir first
_SCRATCH = tempfile.mkdtemp(prefix="riderpay-tests-")
os.environ.setdefault("DATA_DIR", os.path.join(_SCRATCH, "data"))
os.environ.setdefault("AUDIT_LOG_PATH", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("DB_URL", "sqlite:///" + os.path.join(_SCRATCH, "riderpay.db"))
os.environ.pop("NET_PAYOUT_URL", None)

from datetime import datetime

import pandas as pd
import pytest

from riderpay.core.config import settings
from riderpay.core.models import MissionEntry, ParsedFile, RawOrderRow, RawSummaryRow
from riderpay.settlement.identity import split_rider

@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"

@pytest.fixture
def summary_row():
    def make(name, license_id="-", branch="강남", orders=0, **amounts):
        plain, _ = split_rider(name)
        return RawSummaryRow(
            license_id=license_id,
            rider_name=plain,
            rider_name_raw=name,
            branch_name=branch,
            total_orders=orders,
            **amounts,
        )
    return make

@pytest.fixture
def order_row():
    def make(name, suffix, judgement_date, slot="Lunch_Peak", license_id="-", branch="강남", hour=12, order_no="A1"):
        accepted = datetime.fromisoformat(judgement_date).replace(hour=hour)
        return RawOrderRow(
            branch_name=branch,
            license_id=license_id,
            rider_name=name,
            rider_suffix=suffix,
            order_no=order_no,
            accepted_at=accepted.strftime("%Y-%m-%d %H:%M:%S"),
            accepted_at_ms=int(accepted.timestamp() * 1000),
            peak_time=slot,
            judgement_date=judgement_date,
        )
    return make

@pytest.fixture
def parsed_file():
    def make(source, branch="강남", summaries=(), details=(), missions=()):
        return ParsedFile(
            summaries=list(summaries),
            details=list(details),
            missions=list(missions),
            source_file=source,
            branch_label=branch,
        )
    return make

@pytest.fixture
def mission():
    def make(name, start_date, amount, license_id=None):
        return MissionEntry(name=name, start_date=start_date, end_date=start_date, amount=amount, license_id=license_id)
    return make

@pytest.fixture
def payroll_workbook(tmp_path):
    """Write a weekly payroll workbook shaped like the platform export."""
    def make(file_name, summaries, orders=(), missions=(), with_summary=True):
        path = tmp_path / file_name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            if with_summary:
                head = [
                    ["주간 정산서", None, None, None, None, None, None, None, None, None, None, None],
                    ["라이선스 ID", "성함", "총 정산 오더수", "정산금액", "총 지원금", "차감내역", "총 정산금액",
                     "⑧수수료 차감 금액", "③기사부담 고용보험", "⑤기사부담 산재보험", "⑥시간제보험", "⑦보험료 소급"],
                ]
                pd.DataFrame(head + [list(r) for r in summaries]).to_excel(
                    writer, sheet_name="종합", header=False, index=False)
            rows = [["오더 상세", None, None, None], ["이름", "축약형 주문번호", "수락시간", "피크타임"]]
            rows += [list(o) for o in orders]
            pd.DataFrame(rows).to_excel(writer, sheet_name="오더별 상세 내역서", header=False, index=False)
            if missions:
                mrows = [["미션 명", "이름", "달성 유무", "미션 시작", "미션 종료", "협력사 자체미션 금액"]]
                mrows += [list(m) for m in missions]
                pd.DataFrame(mrows).to_excel(writer, sheet_name="협력사 자체 미션", header=False, index=False)
        return path
    return make
