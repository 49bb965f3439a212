"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from catalog_sync.utils.urls import parse_gid, parse_sheet_id

DEFAULT_CONCURRENCY = 5


class SheetSource(BaseModel):
    """Identifies the remote sheet and the tabs the catalog is read from."""

    sheet_id: str
    items_gid: str
    db_gid: str
    features_gid: str = ""
    data_start_row: int = 0
    features_data_start_row: int = 1


class SyncConfig(BaseModel):
    """A validated configuration model for the application."""

    # Remote sheet
    sheet_id: str = ""
    items_gid: str = ""
    db_gid: str = ""
    features_gid: str = ""
    data_start_row: int = 0
    features_data_start_row: int = 1

    # Media
    cdn_base_url: str = ""
    concurrency: int = DEFAULT_CONCURRENCY
    request_timeout: float = 30.0
    max_attempts: int = 3
    progress_buffer: int = 0

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)
    data_dir: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("sheet_id")
    @classmethod
    def validate_sheet_id(cls, v: str) -> str:
        """Accepts a raw sheet ID or a full spreadsheet URL."""
        if not v:
            return ""
        sheet_id = parse_sheet_id(v)
        if not sheet_id:
            raise ValueError(f"Not a sheet ID or spreadsheet URL: {v}")
        return sheet_id

    @field_validator("items_gid", "db_gid", "features_gid", mode="before")
    @classmethod
    def validate_gid(cls, v) -> str:
        """Accepts a numeric tab GID or a URL with a gid= parameter."""
        if v is None or str(v).strip() == "":
            return ""
        gid = parse_gid(v)
        if not gid:
            raise ValueError(f"Not a tab GID or sheet URL with gid=: {v}")
        return gid

    @field_validator("data_start_row", "features_data_start_row")
    @classmethod
    def validate_start_row(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Data start rows cannot be negative.")
        return v

    @field_validator("cdn_base_url")
    @classmethod
    def validate_cdn_base_url(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("CDN base URL must start with http:// or https://.")
        return v.rstrip("/")

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of sync workers."""
        if v < 1 or v > 32:
            raise ValueError("Concurrency must be between 1 and 32.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Request timeout must be positive.")
        return v

    @field_validator("progress_buffer")
    @classmethod
    def validate_progress_buffer(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Progress buffer cannot be negative (0 = unbounded).")
        return v

    @property
    def is_catalog_configured(self) -> bool:
        return bool(self.sheet_id and self.items_gid and self.db_gid)

    def sheet_source(self) -> SheetSource:
        return SheetSource(
            sheet_id=self.sheet_id,
            items_gid=self.items_gid,
            db_gid=self.db_gid,
            features_gid=self.features_gid,
            data_start_row=self.data_start_row,
            features_data_start_row=self.features_data_start_row,
        )

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "data_dir"}
        return {key for key in cls.model_fields if key not in internal_fields}
