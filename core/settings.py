from __future__ import annotations
import os
import yaml
from pathlib import Path
from pydantic import BaseModel

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"

class AppConfig(BaseModel):
    name: str
    environment: str

class DBConfig(BaseModel):
    url: str

class MappingRules(BaseModel):
    justification_min: int = 10
    justification_max: int = 500
    contribution_min: int = 5
    contribution_max: int = 200

class ApprovalsConfig(BaseModel):
    # Whether an Approved term plan refuses further edits
    lock_approved: bool = False
    submit_comment: str = "Term details submitted for approval"

class Settings(BaseModel):
    app: AppConfig
    db: DBConfig
    mapping: MappingRules = MappingRules()
    approvals: ApprovalsConfig = ApprovalsConfig()
    debug: bool = False

def load_settings(path: str | Path | None = None) -> Settings:
    if path is None:
        path = os.environ.get("MAPPING_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return Settings(
        app=AppConfig(**data["app"]),
        db=DBConfig(**data["db"]),
        mapping=MappingRules(**(data.get("mapping") or {})),
        approvals=ApprovalsConfig(**(data.get("approvals") or {})),
        debug=bool(data.get("debug", False)),
    )
