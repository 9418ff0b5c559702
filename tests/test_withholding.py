from riderpay.tax.withholding import RiderWithholding
from riderpay.settlement.fees import FeeCalculator, BranchFeePolicy

def test_withholding_example():
    assert RiderWithholding().compute_withholding(103450)==3410

def test_withholding_is_multiple_of_ten():
    w=RiderWithholding()
    for total in [0,1,99,1000,12345,103450,999999,2500000]:
        tax=w.compute_withholding(total)
        assert tax>=0 and tax%10==0

def test_deposit_can_go_negative():
    b=RiderWithholding().deposit_breakdown(10000,10000,employment=5000,rent=70000,fee=300)
    assert b["Withholding"]==330
    assert b["Deposit"]==10000-5000-330-70000-300

def test_deposit_rounds_half_up():
    b=RiderWithholding().deposit_breakdown(100.5,0)
    assert b["Deposit"]==101

def test_per_case_fee():
    fee=FeeCalculator().compute(BranchFeePolicy("per_case",150),37,0)
    assert fee==5550

def test_percentage_fee():
    fee=FeeCalculator().compute(BranchFeePolicy("percentage",2.5),0,123450)
    assert fee==3086

def test_fee_falls_back_to_summary_fee():
    assert FeeCalculator().compute(None,10,50000,fallback=1200)==1200

def test_fee_policy_from_record():
    assert BranchFeePolicy.from_record({"fee_type":"per_case","fee_value":"100"})==BranchFeePolicy("per_case",100.0)
    assert BranchFeePolicy.from_record({"fee_type":"flat","fee_value":1}) is None
    assert BranchFeePolicy.from_record({}) is None

def test_blank_fee_value_falls_back_to_summary_fee():
    policy=BranchFeePolicy.from_record({"fee_type":"per_case","fee_value":None})
    assert policy is None
    assert FeeCalculator().compute(policy,10,50000,fallback=1200)==1200
    assert BranchFeePolicy.from_record({"fee_type":"per_case","fee_value":""}) is None
    assert BranchFeePolicy.from_record({"fee_type":"per_case","fee_value":0})==BranchFeePolicy("per_case",0.0)

def test_summary_fee_is_not_rounded():
    assert FeeCalculator().compute(None,10,50000,fallback=1200.6)==1200.6
