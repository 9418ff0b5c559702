from riderpay.core.models import PeakCounts
from riderpay.settlement.aggregator import OrderAggregator, branches_used, judgement_span
from riderpay.settlement.identity import RiderIdentityResolver
from riderpay.settlement.summary import SummaryMerger

def run(files):
    resolver=RiderIdentityResolver()
    merged=SummaryMerger(resolver).merge(files)
    riders=OrderAggregator(resolver).aggregate(files,merged)
    return merged, riders

def test_summary_amounts_add_up(summary_row, parsed_file):
    a=parsed_file("a.xlsx","강남",summaries=[summary_row("홍길동1234","L1",orders=10,total_settlement=50000,fee=1000)])
    b=parsed_file("b.xlsx","서초",summaries=[summary_row("홍길동1234","L1",branch="서초",orders=5,total_settlement=20000,fee=500)])
    merged,_=run([a,b])
    s=merged.get("L1")
    assert s.total_orders==15
    assert s.fin.total_settlement==70000
    assert s.fin.fee==1500
    assert [r.source_file for r in merged.raw_rows_by_rider["L1"]]==["a.xlsx","b.xlsx"]

def test_summary_keeps_first_real_license(summary_row, parsed_file):
    a=parsed_file("a.xlsx",summaries=[summary_row("홍길동1234","-",orders=1)])
    b=parsed_file("b.xlsx",summaries=[summary_row("홍길동1234","L7",orders=1)])
    merged,_=run([a,b])
    assert list(merged.summaries)==["홍길동__1234"]
    assert merged.get("홍길동__1234").license_id=="L7"

def test_orders_and_peak_histograms(order_row, parsed_file):
    f=parsed_file("a.xlsx",details=[
        order_row("홍길동","1234","2024-05-06","Lunch_Peak"),
        order_row("홍길동","1234","2024-05-06","Dinner_Peak"),
        order_row("홍길동","1234","2024-05-07","Midnight"),
    ])
    _,riders=run([f])
    r=riders["홍길동__1234"]
    assert r.branch_counts=={"강남":3}
    assert r.peak_by_date["2024-05-06"].get("Lunch_Peak")==1
    assert r.peak_by_date["2024-05-06"].get("total")==2
    # unknown slot only counts toward total
    assert r.peak_by_date["2024-05-07"].to_dict()=={**PeakCounts().to_dict(),"total":1}
    assert r.peak_by_branch["강남"]["2024-05-06"]==r.peak_by_date["2024-05-06"]

def test_total_orders_fallback_to_counts(order_row, summary_row, parsed_file):
    f=parsed_file("a.xlsx",
        summaries=[summary_row("김철수5678","L2",orders=40)],
        details=[order_row("홍길동","1234","2024-05-06"),order_row("홍길동","1234","2024-05-06"),
                 order_row("김철수","5678","2024-05-06",license_id="L2")])
    _,riders=run([f])
    assert riders["홍길동__1234"].total_orders==2
    assert riders["L2"].total_orders==40

def test_summary_only_rider_is_kept(summary_row, parsed_file):
    f=parsed_file("a.xlsx",summaries=[summary_row("이몽룡4321","L3",orders=3)])
    _,riders=run([f])
    assert riders["L3"].rider_name=="이몽룡"
    assert riders["L3"].rider_suffix=="4321"
    assert riders["L3"].total_orders==3

def test_order_rows_join_summary_key(order_row, summary_row, parsed_file):
    f=parsed_file("a.xlsx",
        summaries=[summary_row("홍길동1234","L1",orders=2)],
        details=[order_row("홍길동","1234","2024-05-06")])
    _,riders=run([f])
    assert list(riders)==["L1"]
    assert riders["L1"].license_id=="L1"

def test_primary_branch_and_details_sorted(order_row, parsed_file):
    a=parsed_file("a.xlsx","강남",details=[order_row("홍길동","1234","2024-05-06",hour=9)])
    b=parsed_file("b.xlsx","서초",details=[
        order_row("홍길동","1234","2024-05-07",branch="서초",hour=10),
        order_row("홍길동","1234","2024-05-08",branch="서초",hour=11)])
    _,riders=run([a,b])
    r=riders["홍길동__1234"]
    assert r.primary_branch=="서초"
    assert [d.judgement_date for d in r.details]==["2024-05-08","2024-05-07","2024-05-06"]
    assert judgement_span(riders)==("2024-05-06","2024-05-08")

def test_merge_is_order_independent(order_row, summary_row, parsed_file):
    a=parsed_file("a.xlsx","강남",
        summaries=[summary_row("홍길동1234","L1",orders=2,total_settlement=1000)],
        details=[order_row("홍길동","1234","2024-05-06"),order_row("김철수","5678","2024-05-06")])
    b=parsed_file("b.xlsx","서초",
        summaries=[summary_row("홍길동1234","L1",branch="서초",orders=1,total_settlement=300)],
        details=[order_row("홍길동","1234","2024-05-07",branch="서초")])
    m1,r1=run([a,b])
    m2,r2=run([b,a])
    assert {k:(s.total_orders,s.fin.total_settlement) for k,s in m1.summaries.items()}== \
           {k:(s.total_orders,s.fin.total_settlement) for k,s in m2.summaries.items()}
    assert set(r1)==set(r2)
    for k in r1:
        assert r1[k].total_orders==r2[k].total_orders
        assert r1[k].branch_counts==r2[k].branch_counts
        assert r1[k].peak_by_date==r2[k].peak_by_date

def test_branches_used(order_row, summary_row, parsed_file):
    a=parsed_file("a.xlsx","강남",details=[order_row("홍길동","1234","2024-05-06")])
    b=parsed_file("b.xlsx","서초",summaries=[summary_row("김철수5678","L2",branch="서초")])
    merged,riders=run([a,b])
    assert branches_used(riders,merged)==["강남","서초"]

def test_empty_span():
    assert judgement_span({})==(None,None)
