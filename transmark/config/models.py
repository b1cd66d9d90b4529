from pydantic import BaseModel, Field, field_validator
from typing import Literal


class HashingConfig(BaseModel):
    algorithm: str = "sha256"
    length: int = Field(default=8, ge=6, le=64)


class SnapshotConfig(BaseModel):
    directory: str = ".transmark"
    file_name: str = "snapshot"
    gc_threshold_bytes: int = Field(default=5 * 1024 * 1024, ge=0)


class ContextConfig(BaseModel):
    window: int = Field(default=1, ge=0)
    terms_file: str | None = None


class DocumentConfig(BaseModel):
    unit_heading_level: int = Field(default=6, ge=1, le=6)
    frontmatter_keys: list[str] = []

    @field_validator("frontmatter_keys")
    @classmethod
    def drop_marker_key(cls, v: list[str]) -> list[str]:
        return [key for key in v if key and key != "mdait.front"]


class TransPair(BaseModel):
    source_dir: str
    target_dir: str
    source_lang: str
    target_lang: str

    @field_validator("source_dir", "target_dir", "source_lang", "target_lang")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value cannot be empty or whitespace")
        return v.strip().rstrip("/")

    def source_path_for(self, target_path: str) -> str | None:
        """Source document mirrored by *target_path*, or None outside the target dir."""
        path = target_path.replace("\\", "/")
        if not path.startswith(self.target_dir + "/"):
            return None
        return f"{self.source_dir}/{path[len(self.target_dir) + 1:]}"


class TransmarkConfig(BaseModel):
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    document: DocumentConfig = Field(default_factory=DocumentConfig)
    trans_pairs: list[TransPair] = []
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    def pair_for(self, file_path: str) -> TransPair | None:
        """The translation pair whose source or target directory holds *file_path*."""
        path = file_path.replace("\\", "/")
        for pair in self.trans_pairs:
            for directory in (pair.source_dir, pair.target_dir):
                if path == directory or path.startswith(directory + "/"):
                    return pair
        return None
