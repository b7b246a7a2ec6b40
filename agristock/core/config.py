import json
from typing import Dict, List, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SEASONAL_FACTORS: dict[int, float] = {
    1: 1.2,
    2: 1.2,
    3: 0.8,
    4: 0.8,
    5: 0.8,
    6: 1.2,
    7: 1.2,
    8: 1.2,
    9: 0.9,
    10: 0.9,
    11: 0.9,
    12: 1.2,
}


class Settings(BaseSettings):
    app_name: str = "AgriStock Inventory"
    env: str = "dev"
    log_level: str = "INFO"

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # CONCURRENCY
    optimistic_lock_max_retries: int = Field(default=3, ge=1, le=20)

    # INVENTORY POLICY
    default_unit: str = "KG"
    expiry_alert_days: int = Field(default=7, ge=0)
    high_loss_threshold_percentage: float = Field(default=5.0, ge=0)
    high_value_threshold: float = Field(default=100_000.0, ge=0)
    inspection_interval_days: int = Field(default=30, ge=1)
    restock_lead_days: int = Field(default=15, ge=0)
    good_quality_grades: List[str] = Field(default_factory=lambda: ["A", "B"])
    seasonal_adjustment_factors: Dict[int, float] = Field(
        default_factory=lambda: dict(DEFAULT_SEASONAL_FACTORS)
    )

    @field_validator("good_quality_grades", mode="before")
    @classmethod
    def assemble_quality_grades(cls, v: Union[str, List[str]]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("GOOD_QUALITY_GRADES JSON value must be a list")
                return [str(i).strip().upper() for i in parsed if str(i).strip()]
            return [i.strip().upper() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return [str(i).strip().upper() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator("seasonal_adjustment_factors", mode="before")
    @classmethod
    def assemble_seasonal_factors(cls, v: Union[str, dict]) -> dict:
        if v is None:
            return dict(DEFAULT_SEASONAL_FACTORS)
        if isinstance(v, str):
            if not v.strip():
                return dict(DEFAULT_SEASONAL_FACTORS)
            parsed = json.loads(v)
            if not isinstance(parsed, dict):
                raise ValueError("SEASONAL_ADJUSTMENT_FACTORS JSON value must be an object")
            return {int(month): float(factor) for month, factor in parsed.items()}
        if isinstance(v, dict):
            return {int(month): float(factor) for month, factor in v.items()}
        raise ValueError(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        if value is None:
            return "INFO"
        cleaned = str(value).strip().upper()
        return cleaned or "INFO"

    @model_validator(mode="after")
    def validate_seasonal_table(self) -> "Settings":
        missing = sorted(set(range(1, 13)) - set(self.seasonal_adjustment_factors))
        if missing:
            raise ValueError(
                f"SEASONAL_ADJUSTMENT_FACTORS must define every month; missing {missing}"
            )
        unknown = sorted(set(self.seasonal_adjustment_factors) - set(range(1, 13)))
        if unknown:
            raise ValueError(f"SEASONAL_ADJUSTMENT_FACTORS has invalid months {unknown}")
        if any(factor <= 0 for factor in self.seasonal_adjustment_factors.values()):
            raise ValueError("SEASONAL_ADJUSTMENT_FACTORS values must be positive")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
