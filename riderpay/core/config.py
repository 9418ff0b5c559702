from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    APP_NAME: str = Field("RiderPay", description="Logger namespace and page title")
    LOG_LEVEL: str = Field("INFO", description="Root level for settlement loggers")
    AUDIT_LOG_PATH: str = Field("./data/logs", description="Directory for rotating log files")
    DATA_DIR: str = Field("./data", description="Root for catalog JSON files and audit trails")
    DB_URL: str = Field("sqlite:///./data/riderpay.db", description="Database URL for daily settlement results")

    # Optional remote source for already-paid daily totals. When unset the
    # database lookup is used.
    NET_PAYOUT_URL: Optional[str] = Field(None, description="POST endpoint returning {totals: {license: amount}}")
    NET_PAYOUT_TIMEOUT: float = 10.0

    # Withholding: 3.3% truncated to the nearest 10 won
    WITHHOLDING_RATE: float = 0.033
    WITHHOLDING_UNIT: int = 10

    RENT_DAYS_PER_WEEK: int = 7

    # Business day runs 06:00 ~ 05:59 of the next calendar day
    JUDGEMENT_CUTOFF_HOUR: int = 6

    PEAK_SLOTS: List[str] = [
        "Breakfast",
        "Lunch_Peak",
        "Post_Lunch",
        "Dinner_Peak",
        "Post_Dinner",
    ]

    LICENSE_PLACEHOLDER: str = "-"

settings = Settings()
