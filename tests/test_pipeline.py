import json
import os
import shutil

import pytest

from riderpay.catalog.branches import Branch, BranchRider, SettlementCatalog
from riderpay.core.audit import AuditLogger
from riderpay.promotions.config import normalize_promotion
from riderpay.reconcile.engine import NextDayReconciler, PayoutSourceError
from riderpay.settlement.fees import BranchFeePolicy
from riderpay.settlement.pipeline import UploadEntry, WeeklySettlementProcessor, staged_uploads

class FixedPayouts:
    def __init__(self, totals=None, fail=False):
        self.totals_by_license=totals or {}
        self.fail=fail
        self.calls=[]

    def totals(self, license_ids, span):
        self.calls.append((license_ids,span))
        if self.fail:
            raise PayoutSourceError("down")
        return {k:v for k,v in self.totals_by_license.items() if k in license_ids}

@pytest.fixture
def catalog():
    promo=normalize_promotion({"id":"p1","type":"excess","status":"active",
        "config":{"threshold":1,"amount":1000},"branches":[{"branchId":"b1"}]})
    return SettlementCatalog(
        branches=[Branch(id="b1",name="강남",fee_policy=BranchFeePolicy("per_case",100)),Branch(id="b2",name="서초")],
        promotions=[promo],
        riders_by_branch={"b1":[BranchRider(id="r1",name="홍길동",phone_suffix="1234")]},
    )

@pytest.fixture
def uploads(payroll_workbook):
    a=payroll_workbook("gangnam.xlsx",
        [["L1","홍길동1234",2,20000,0,0,20000,0,0,0,0,0]],
        orders=[["홍길동1234","A1","2024-05-06 12:00:00","Lunch_Peak"],
                ["홍길동1234","A2","2024-05-07 19:00:00","Dinner_Peak"]])
    b=payroll_workbook("seocho.xlsx",
        [["L1","홍길동1234",1,8000,0,0,8000,50,0,0,0,0],
         ["L2","김철수5678",1,5000,0,0,5000,0,0,0,0,0]],
        orders=[["홍길동1234","B1","2024-05-08 12:00:00","Lunch_Peak"],
                ["김철수5678","B2","2024-05-08 13:00:00","Post_Lunch"]],
        missions=[["미션","김철수5678","달성","2024-05-08","2024-05-08",2000]])
    return [UploadEntry(str(a),"b1"),UploadEntry(str(b),"b2")]

def processor(source):
    return WeeklySettlementProcessor("t1",reconciler=NextDayReconciler(source))

def test_weekly_run_end_to_end(catalog, uploads):
    source=FixedPayouts({"L1":3000})
    result=processor(source).run(uploads,catalog)
    assert result.success and result.errors==[]
    assert result.span==("2024-05-06","2024-05-08")
    assert result.branches==["강남","서초"]
    assert result.mission_dates==["2024-05-08"]
    assert source.calls==[(["L1","L2"],("2024-05-06","2024-05-08"))]

    by_key={r.key:r for r in result.rows}
    assert [r.rider_name for r in result.rows]==["김철수","홍길동"]
    hong=by_key["L1"]
    assert hong.order_count==3
    assert hong.branch_name=="강남"
    assert hong.total_settlement==28000
    assert hong.promo_amount==2000
    assert hong.fee==300
    assert hong.next_day_settlement==3000
    assert hong.matched_rider_id=="r1"
    assert hong.withholding==990
    assert hong.actual_deposit==28000-990-300-3000
    assert [c.source_file for c in result.child_rows["L1"]]==["gangnam.xlsx","seocho.xlsx"]

    kim=by_key["L2"]
    assert kim.mission_amounts=={"2024-05-08":2000}
    assert kim.overall_total==7000
    assert "L2" not in result.child_rows

def test_rerun_gives_same_rows(catalog, uploads):
    first=processor(FixedPayouts()).run(uploads,catalog)
    second=processor(FixedPayouts()).run(uploads,catalog)
    assert first.batch_id!=second.batch_id
    assert [r.to_dict() for r in first.rows]==[r.to_dict() for r in second.rows]

def test_parse_failure_aborts_run(catalog, uploads, tmp_path):
    bad=tmp_path/"locked.xlsx"
    bad.write_bytes(b"encrypted")
    source=FixedPayouts()
    result=processor(source).run(uploads+[UploadEntry(str(bad),"b1")],catalog)
    assert not result.success
    assert result.rows==[] and result.child_rows=={}
    assert "locked.xlsx" in result.errors[0]
    assert source.calls==[]

    history=AuditLogger("t1").get_run_history()
    assert history[0]["success"] is False
    assert "locked.xlsx" in history[0]["error_message"]

def test_duplicate_upload_skipped(catalog, uploads, tmp_path):
    copy=tmp_path/"gangnam-copy.xlsx"
    shutil.copy(uploads[0].path,copy)
    result=processor(FixedPayouts()).run(uploads+[UploadEntry(str(copy),"b1")],catalog)
    assert result.success
    assert len(result.files)==2
    assert any("gangnam-copy.xlsx" in w for w in result.warnings)
    assert {r.key:r.order_count for r in result.rows}=={"L1":3,"L2":1}

def test_lookup_failure_keeps_run_going(catalog, uploads):
    result=processor(FixedPayouts(fail=True)).run(uploads,catalog)
    assert result.success
    assert all(r.next_day_settlement==0 for r in result.rows)
    assert any("lookup failed" in w for w in result.warnings)

def test_empty_upload_list(catalog):
    result=processor(FixedPayouts()).run([],catalog)
    assert not result.success
    assert result.errors==["no files uploaded"]

def test_successful_run_is_audited(catalog, uploads, isolated_data_dir):
    result=processor(FixedPayouts()).run(uploads,catalog,user_id="ops")
    lines=(isolated_data_dir/"audit"/"t1_settlement_runs.jsonl").read_text(encoding="utf-8").splitlines()
    entry=json.loads(lines[-1])
    assert entry["batch_id"]==result.batch_id
    assert entry["success"] is True and entry["rider_count"]==2
    assert [f["file_name"] for f in entry["files"]]==["gangnam.xlsx","seocho.xlsx"]
    assert entry["user_id"]=="ops"

def test_upload_without_branch_is_refused(catalog, uploads):
    source=FixedPayouts()
    result=processor(source).run([uploads[0],UploadEntry(uploads[1].path,None)],catalog)
    assert not result.success
    assert result.errors==["no branch selected for seocho.xlsx"]
    assert source.calls==[]

def test_staged_uploads_run_then_cleaned_up(catalog, uploads):
    files=[(os.path.basename(u.path),open(u.path,"rb").read(),u.branch_id) for u in uploads]
    with staged_uploads(files) as entries:
        paths=[e.path for e in entries]
        assert all(os.path.exists(p) for p in paths)
        assert [e.display_name for e in entries]==["gangnam.xlsx","seocho.xlsx"]
        result=processor(FixedPayouts()).run(entries,catalog)
    assert result.success and len(result.rows)==2
    assert not any(os.path.exists(p) for p in paths)

def test_staged_uploads_cleaned_up_on_error():
    with pytest.raises(RuntimeError):
        with staged_uploads([("a.xlsx",b"x","b1")]) as entries:
            path=entries[0].path
            raise RuntimeError("boom")
    assert not os.path.exists(path)
