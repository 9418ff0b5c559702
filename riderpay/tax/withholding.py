import math
from typing import Dict

from riderpay.core.config import settings
from riderpay.core.utils import round_half_up

# Business income withholding: 3% income tax + 0.3% local tax, truncated to 10 won
WITHHOLDING_RATE = settings.WITHHOLDING_RATE
WITHHOLDING_UNIT = settings.WITHHOLDING_UNIT

class RiderWithholding:
    def __init__(self, rate: float = WITHHOLDING_RATE, unit: int = WITHHOLDING_UNIT):
        self.rate = rate
        self.unit = unit

    def compute_withholding(self, overall_total: float) -> int:
        return int(math.floor(overall_total * self.rate / self.unit) * self.unit)

    def deposit_breakdown(
        self,
        total_settlement: float,
        overall_total: float,
        *,
        employment: float = 0,
        accident: float = 0,
        time_insurance: float = 0,
        rent: float = 0,
        loan: float = 0,
        fee: float = 0,
        next_day: float = 0,
    ) -> Dict[str, float]:
        """Deductions and actual deposit for one row. The deposit may go negative."""
        withholding = self.compute_withholding(overall_total)
        deposit = round_half_up(
            total_settlement
            - employment
            - accident
            - withholding
            - time_insurance
            - rent
            - loan
            - fee
            - next_day
        )
        return {"Withholding": withholding, "Deposit": deposit}
