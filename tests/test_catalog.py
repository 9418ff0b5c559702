from riderpay.catalog.branches import Branch, BranchRider, LoanSchedule, SettlementCatalog, guess_branch_id
from riderpay.catalog.repositories import (
    BranchesRepository,
    BranchRidersRepository,
    LeaseRentalsRepository,
    LoansRepository,
    PromotionsRepository,
)

def test_bulk_upsert_creates_then_updates():
    repo=BranchesRepository("t1")
    assert repo.load_data()==[]
    assert repo.bulk_upsert([{"id":"b1","branch_name":"강남"},{"branch_name":"no id"}])=={"created":1,"updated":0,"total":1}
    assert repo.bulk_upsert([{"id":"b1","display_name":"강남점"}])=={"created":0,"updated":1,"total":1}
    (rec,)=repo.load_data()
    assert rec["branch_name"]=="강남" and rec["display_name"]=="강남점"
    assert list(repo.archive_dir.glob("*.json"))

def test_corrupt_file_reads_empty():
    repo=PromotionsRepository("t1")
    repo._get_data_file().write_text("{not json",encoding="utf-8")
    assert repo.load_data()==[]

def test_guess_branch_id():
    branches=[Branch(id="b1",name="강남점",branch_name="강남",district="강남구"),
              Branch(id="b2",name="서초점",branch_name="서초",district="서초구")]
    assert guess_branch_id("서초_0506.xlsx",branches)=="b2"
    assert guess_branch_id("weekly 강남 settlement.xlsx",branches)=="b1"
    assert guess_branch_id("unknown.xlsx",branches) is None

def test_branch_record_names():
    b=Branch.from_record({"id":7,"branch_name":"강남","fee_type":"PER_CASE","fee_value":"150"})
    assert b.id=="7" and b.name=="강남"
    assert b.fee_policy.type=="per_case" and b.fee_policy.value==150
    assert Branch.from_record({"id":"x"}).name=="x"
    assert BranchRider.from_record({"id":"r","name":"a","phone":"010-1234-5678"}).phone_suffix=="5678"

def test_catalog_lookups():
    cat=SettlementCatalog(
        branches=[Branch(id="b1",name="강남점",branch_name="강남")],
        riders_by_branch={"b1":[BranchRider(id="r1",name="홍길동",phone_suffix="1234")]},
        rental_fee_by_rider={"r1":3000},
        loan_by_rider={"r1":LoanSchedule(weekday=2,amount=10000)},
    )
    assert cat.branch_id_by_label("강남")=="b1"
    assert cat.branch_id_by_label("강남점")=="b1"
    assert cat.branch_id_by_label("없음") is None
    assert cat.branch_label("b1")=="강남점"
    assert cat.find_matched_rider("강남","1234").id=="r1"
    assert cat.find_matched_rider("강남","9999") is None
    assert cat.daily_rental_fee("r1")==3000 and cat.daily_rental_fee(None)==0
    assert cat.loan_schedule(None,"1234").amount==10000
    assert cat.loan_schedule(None,"0000") is None

def test_catalog_load_from_repositories():
    BranchesRepository("t1").bulk_upsert([{"id":"b1","branch_name":"강남","fee_type":"percentage","fee_value":2}])
    PromotionsRepository("t1").bulk_upsert([
        {"id":"p1","type":"excess","status":"active","config":{"threshold":10,"amount":500},"branches":[{"branchId":"b1"}]},
        {"id":"p2","type":"milestone_per_unit","status":"active","config":{"tiers":[{"threshold":1,"unitSize":0,"unitAmount":1}]}},
    ])
    BranchRidersRepository("t1").bulk_upsert([{"id":"r1","branch_id":"b1","name":"홍길동","phone_suffix":"1234"}])
    LeaseRentalsRepository("t1").bulk_upsert([{"id":"l1","rider_id":"r1","daily_fee":"4000"}])
    LoansRepository("t1").bulk_upsert([{"id":"n1","rider_id":"r1","payment_weekday":"3","payment_amount":"15,000"}])

    cat=SettlementCatalog.load("t1")
    assert [p.id for p in cat.promotions]==["p1"]
    assert len(cat.warnings)==1 and "p2" in cat.warnings[0]
    assert cat.fee_policy("강남").type=="percentage"
    assert cat.find_matched_rider("강남","1234").id=="r1"
    assert cat.daily_rental_fee("r1")==4000
    assert cat.loan_schedule("r1","1234")==LoanSchedule(weekday=3,amount=15000)

def test_empty_tenant_loads_empty_catalog():
    cat=SettlementCatalog.load("nobody")
    assert cat.branches==[] and cat.promotions==[] and cat.warnings==[]

def test_grouped_daily_fee_is_parsed():
    LeaseRentalsRepository("t1").bulk_upsert([
        {"id":"l1","rider_id":"r1","daily_fee":"4,000"},
        {"id":"l2","rider_id":"r2","daily_fee":"n/a"},
    ])
    assert LeaseRentalsRepository("t1").daily_fee_by_rider()=={"r1":4000,"r2":0}

def test_branch_without_fee_value_has_no_policy():
    assert Branch.from_record({"id":"b1","fee_type":"per_case","fee_value":None}).fee_policy is None
    assert Branch.from_record({"id":"b1","fee_type":"percentage","fee_value":""}).fee_policy is None
