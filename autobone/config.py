"""
AutoBone Configuration Management

Handles loading/saving of skeleton proportions, calibration settings and
runtime paths. Uses Pydantic for validation and YAML for human-readable
config files.
"""

from pathlib import Path
from typing import Optional, Dict
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


# Default paths
CONFIG_DIR = Path.home() / ".autobone"
RECORDINGS_DIR = CONFIG_DIR / "recordings"
LOAD_DIR = CONFIG_DIR / "load"
EXPORTS_DIR = CONFIG_DIR / "exports"


class AutoBoneConfig(BaseModel):
    """Recording and optimizer settings."""
    # Recording (ex. 1500 samples at 20 ms per sample is 30 seconds)
    sample_count: int = Field(default=1500, ge=1)
    sample_rate_ms: int = Field(default=20, ge=1)
    save_recordings: bool = False  # Keep a permanent copy of every recording

    # Epochs
    num_epochs: int = Field(default=50, ge=0)
    print_every_num_epochs: int = 25
    calc_init_error: bool = False  # Measure the error once before adjusting

    # Cursor pairs
    randomize_frame_order: bool = True
    random_seed: Optional[int] = None
    cursor_increment: int = Field(default=2, ge=1)
    min_data_distance: int = Field(default=1, ge=0)
    max_data_distance: int = Field(default=1, ge=0)

    # Adjustment
    initial_adjust_rate: float = 1.0
    adjust_rate_decay: float = 0.95  # Multiplied into the rate after every epoch
    slide_error_factor: float = 1.0
    height_error_factor: float = 1.0
    scale_each_step: bool = True  # Rescale to the target height after each step
    target_hmd_height: float = -1.0  # Meters; <= 0 derives it from the recording

    # Post-processing
    use_bone_contribution: bool = False  # Log which bones explain the slide
    export_csv: bool = False  # Stream the adjusted recording to CSV


class SkeletonConfig(BaseModel):
    """Bone lengths in meters, keyed like `SkeletonConfigOffsets.config_key`."""
    head: float = Field(default=0.10, ge=0.0)
    neck: float = Field(default=0.10, ge=0.0)
    upper_chest: float = Field(default=0.16, ge=0.0)
    chest: float = Field(default=0.16, ge=0.0)
    waist: float = Field(default=0.20, ge=0.0)
    hip: float = Field(default=0.04, ge=0.0)
    hips_width: float = Field(default=0.26, ge=0.0)
    upper_leg: float = Field(default=0.42, ge=0.0)
    lower_leg: float = Field(default=0.50, ge=0.0)

    def get(self, key: str) -> float:
        return getattr(self, key)

    def set(self, key: str, value: float) -> None:
        if key not in type(self).model_fields:
            raise KeyError(f"Unknown skeleton offset: {key}")
        setattr(self, key, float(value))

    def as_dict(self) -> Dict[str, float]:
        return self.model_dump()


class AutoBoneSettings(BaseSettings):
    """Main configuration container."""
    model_config = SettingsConfigDict(env_prefix="AUTOBONE_")

    autobone: AutoBoneConfig = Field(default_factory=AutoBoneConfig)
    skeleton: SkeletonConfig = Field(default_factory=SkeletonConfig)

    # Paths
    config_dir: Path = CONFIG_DIR
    recordings_dir: Path = RECORDINGS_DIR
    load_dir: Path = LOAD_DIR  # Recordings to process instead of a live one
    exports_dir: Path = EXPORTS_DIR

    # Where `save()` writes when no path is given; set by `load()`
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AutoBoneSettings":
        """Load configuration from YAML file."""
        if path is None:
            path = CONFIG_DIR / "config.yaml"

        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
            data["config_path"] = path
            return cls(**data)
        return cls(config_path=path)

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to YAML file."""
        if path is None:
            path = self.config_path or CONFIG_DIR / "config.yaml"

        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode='json', exclude={"config_path"})
        with open(path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False)

    def ensure_dirs(self) -> None:
        """Create necessary directories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        self.load_dir.mkdir(parents=True, exist_ok=True)
        self.exports_dir.mkdir(parents=True, exist_ok=True)
