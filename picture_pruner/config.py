from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class FingerprintConfig:
    """Configuration for perceptual fingerprints"""
    hash_size: int = 8  # 8 rows x 8 pairs = 64 bits
    resample: str = "lanczos"  # Options: nearest, box, bilinear, hamming, bicubic, lanczos


@dataclass
class SimilarityConfig:
    """Configuration for similar-photo grouping"""
    policy: str = "perceptual"  # Options: perceptual, heuristic
    hash_threshold: int = 10  # Max Hamming distance, perceptual policy

    # Heuristic policy
    time_window_seconds: float = 45.0
    min_score: float = 0.72
    min_dimension_score: float = 0.9
    min_size_ratio: float = 0.55
    time_weight: float = 0.45
    dimension_weight: float = 0.35
    size_weight: float = 0.2


@dataclass
class ScanConfig:
    """Configuration for directory scans"""
    recursive: bool = False
    n_workers: int = 4
    chunk_size: int = 256
    compute_content_hash: bool = True
    compute_fingerprint: bool = True


@dataclass
class SystemConfig:
    """System-wide configuration"""
    database_path: str = "data/photos.db"
    log_dir: str = "logs"
    log_level: str = "INFO"
    show_progress: bool = True

    fingerprint: FingerprintConfig = field(default_factory=FingerprintConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)

    def to_dict(self) -> dict:
        return {
            'database_path': self.database_path,
            'log_dir': self.log_dir,
            'log_level': self.log_level,
            'show_progress': self.show_progress,
            'fingerprint': _section_to_dict(self.fingerprint),
            'similarity': _section_to_dict(self.similarity),
            'scan': _section_to_dict(self.scan),
        }

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: str = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file; missing file or keys keep defaults"""
        if not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls()

        # Load system settings
        config.database_path = config_dict.get('database_path', config.database_path)
        config.log_dir = config_dict.get('log_dir', config.log_dir)
        config.log_level = config_dict.get('log_level', config.log_level)
        config.show_progress = config_dict.get('show_progress', config.show_progress)

        # Load sections
        config.fingerprint = _section_from_dict(
            FingerprintConfig, config_dict.get('fingerprint')
        )
        config.similarity = _section_from_dict(
            SimilarityConfig, config_dict.get('similarity')
        )
        config.scan = _section_from_dict(ScanConfig, config_dict.get('scan'))

        return config


def _section_to_dict(section) -> dict:
    return {f.name: getattr(section, f.name) for f in fields(section)}


def _section_from_dict(section_cls, values):
    defaults = section_cls()
    if not values:
        return defaults
    return section_cls(**{
        f.name: values.get(f.name, getattr(defaults, f.name))
        for f in fields(section_cls)
    })
