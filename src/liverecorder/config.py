"""
Configuration module for Live Recorder.
Loads settings from YAML file and provides typed configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List

import yaml


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Feature(Enum):
    """Which outputs the stream processor should produce."""
    RECORD_ONLY = "record_only"
    CLIP_ONLY = "clip_only"
    BOTH = "both"

    @property
    def records(self) -> bool:
        return self in (Feature.RECORD_ONLY, Feature.BOTH)

    @property
    def clips(self) -> bool:
        return self in (Feature.CLIP_ONLY, Feature.BOTH)


@dataclass
class RecordingConfig:
    """Recording settings."""
    output_dir: str = "./recordings"
    feature: Feature = Feature.BOTH
    clip_past: int = 20           # seconds kept before a clip request
    clip_future: int = 10         # seconds recorded after a clip request
    retry_delay: int = 15         # seconds before rechecking after a failed/ended attempt
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class BilibiliConfig:
    """Bilibili API and monitoring configuration."""
    check_interval: int = 60      # seconds between live status polls
    request_timeout: int = 10     # seconds per API request


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    file: str = "./logs/recorder.log"
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration container."""
    rooms: List[int]
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    bilibili: BilibiliConfig = field(default_factory=BilibiliConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Ensure directories exist."""
        Path(self.recording.output_dir).mkdir(parents=True, exist_ok=True)
        if self.logging.file:
            Path(self.logging.file).parent.mkdir(parents=True, exist_ok=True)


def as_int(value: Any, default: int) -> int:
    """Parse int from YAML value with safe fallbacks."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(float(text.replace(",", ".")))
        except ValueError:
            return default
    return default


def as_feature(value: Any, default: Feature) -> Feature:
    """Parse processor feature set, accepting enum values case-insensitively."""
    if isinstance(value, Feature):
        return value
    if isinstance(value, str):
        text = value.strip().lower().replace("-", "_")
        for feature in Feature:
            if feature.value == text:
                return feature
    return default


def load_config(config_path: str = "config.yaml") -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Config object with all settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If required fields are missing.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please create a config.yaml file. See config.example.yaml for reference."
        )

    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError("Configuration file is empty")

    # Validate required fields
    raw_rooms = data.get('rooms')
    if not raw_rooms:
        raise ValueError("Missing 'rooms' list in config")
    if not isinstance(raw_rooms, list):
        raw_rooms = [raw_rooms]

    rooms = []
    for raw in raw_rooms:
        roomid = as_int(raw, 0)
        if roomid <= 0:
            raise ValueError(f"Invalid room id: {raw!r}")
        rooms.append(roomid)

    recording_data = data.get('recording', {}) or {}
    recording_config = RecordingConfig(
        output_dir=recording_data.get('output_dir', './recordings'),
        feature=as_feature(recording_data.get('feature'), Feature.BOTH),
        clip_past=max(0, as_int(recording_data.get('clip_past'), 20)),
        clip_future=max(0, as_int(recording_data.get('clip_future'), 10)),
        retry_delay=max(1, as_int(recording_data.get('retry_delay'), 15)),
        user_agent=recording_data.get('user_agent') or DEFAULT_USER_AGENT,
    )

    bilibili_data = data.get('bilibili', {}) or {}
    bilibili_config = BilibiliConfig(
        check_interval=max(1, as_int(bilibili_data.get('check_interval'), 60)),
        request_timeout=max(1, as_int(bilibili_data.get('request_timeout'), 10)),
    )

    logging_data = data.get('logging', {}) or {}
    logging_config = LoggingConfig(
        level=logging_data.get('level', 'INFO'),
        file=logging_data.get('file', './logs/recorder.log'),
        max_size_mb=as_int(logging_data.get('max_size_mb'), 10),
        backup_count=as_int(logging_data.get('backup_count'), 5),
    )

    return Config(
        rooms=rooms,
        recording=recording_config,
        bilibili=bilibili_config,
        logging=logging_config
    )


def create_example_config(path: str = "config.example.yaml") -> None:
    """Create an example configuration file."""
    example = """# Live Recorder Configuration

rooms:
  - 21452505
  - 1

recording:
  output_dir: ./recordings
  feature: both  # record_only, clip_only, both
  clip_past: 20  # Seconds kept before a clip request
  clip_future: 10  # Seconds recorded after a clip request
  retry_delay: 15  # Seconds before rechecking after the stream ends or fails

bilibili:
  check_interval: 60  # Seconds between live status polls
  request_timeout: 10

logging:
  level: INFO  # DEBUG, INFO, WARNING, ERROR
  file: ./logs/recorder.log
  max_size_mb: 10
  backup_count: 5
"""
    with open(path, 'w', encoding='utf-8') as f:
        f.write(example)


if __name__ == '__main__':
    # Create example config if run directly
    create_example_config()
    print("Created config.example.yaml")
