import pytest

from riderpay.core.errors import FileParseError
from riderpay.ingest.parser import SettlementWorkbookParser, judgement_date, to_datetime

SUMMARY=[
    ["L1","홍길동1234",3,30000,5000,1000,34000,300,120,80,50,0],
    ["L2","김철수5678",1,9000,0,0,9000,100,0,0,0,0],
]

def test_parse_summary_orders_and_missions(payroll_workbook):
    path=payroll_workbook("gangnam.xlsx",SUMMARY,
        orders=[
            ["홍길동1234","A1","2024-05-06 12:10:00","Lunch_Peak"],
            ["홍길동1234","A2","2024-05-07 05:30:00","Post_Dinner"],
            ["김철수5678","B1","2024-05-07 19:00:00","Dinner_Peak"],
        ],
        missions=[
            ["주말 미션","홍길동1234","달성","2024-05-06","2024-05-06",3000],
            ["주말 미션","김철수5678","미달성","2024-05-06","2024-05-06",3000],
        ])
    parsed=SettlementWorkbookParser().parse_file(path,"강남")
    assert parsed.source_file=="gangnam.xlsx"
    assert parsed.branch_label=="강남"

    s=parsed.summaries[0]
    assert (s.license_id,s.rider_name,s.rider_name_raw)==("L1","홍길동","홍길동1234")
    assert s.total_orders==3
    assert s.total_settlement==34000 and s.fee==300 and s.employment==120 and s.time_insurance==50
    assert len(parsed.summaries)==2

    assert len(parsed.details)==3
    first=parsed.details[0]
    assert (first.rider_name,first.rider_suffix,first.license_id)==("홍길동","1234","L1")
    assert first.judgement_date=="2024-05-06"
    # accepted before 06:00 belongs to the previous business day
    assert parsed.details[1].judgement_date=="2024-05-06"
    assert parsed.details[2].peak_time=="Dinner_Peak"

    assert len(parsed.missions)==1
    m=parsed.missions[0]
    assert (m.name,m.start_date,m.amount)==("홍길동1234","2024-05-06",3000)

def test_missing_summary_sheet_is_fatal(payroll_workbook):
    path=payroll_workbook("broken.xlsx",[],with_summary=False)
    with pytest.raises(FileParseError) as exc:
        SettlementWorkbookParser().parse_file(path,"강남")
    assert exc.value.source_file=="broken.xlsx"

def test_unreadable_file_is_fatal(tmp_path):
    path=tmp_path/"encrypted.xlsx"
    path.write_bytes(b"this is not a workbook")
    with pytest.raises(FileParseError):
        SettlementWorkbookParser().parse_file(path,"강남")

def test_blank_summary_rows_skipped(payroll_workbook):
    path=payroll_workbook("a.xlsx",[SUMMARY[0],[None]*12])
    parsed=SettlementWorkbookParser().parse_file(path,"강남")
    assert len(parsed.summaries)==1
    assert parsed.details==[] and parsed.missions==[]

def test_to_datetime_and_cutoff():
    assert to_datetime(45418.5).strftime("%Y-%m-%d %H:%M")=="2024-05-06 12:00"
    assert to_datetime("junk") is None
    assert to_datetime(None) is None
    assert judgement_date(to_datetime("2024-05-07 05:59:00"))=="2024-05-06"
    assert judgement_date(to_datetime("2024-05-07 06:00:00"))=="2024-05-07"
