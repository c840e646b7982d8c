"""
Configuration Parser and Validator (YAML)

@requires: YAML or dict configuration with `detection` and optional `alignment` sections
@returns: Structured FaceCoreConfig object
@errors: ConfigError

YAML structure expected:

    detection:
      model_path: "~/models/scrfd_2.5g_bnkps.onnx"   # required
      pack: "scrfd_2.5g_bnkps"     # optional, seeds the fields below
      runtime: "onnxrt"            # optional
      device: "cpu"                # optional
      providers: ["CPUExecutionProvider"]   # optional
      input_size: [640, 640]       # optional, null for dynamic models
      auto_resize: true
      confidence_threshold: 0.5
      nms_threshold: 0.4
      strides: [8, 16, 32]
      num_anchors: 2
      mean: [0.5, 0.5, 0.5]
      std: [1.0, 1.0, 1.0]
      outputs: "named"             # or [{stride: 8, score: 0, bbox: 3, kps: 6}, ...]
      pixel_inclusive_nms: false
    alignment:
      output_size: [112, 112]
      embedding_mean: [0.5, 0.5, 0.5]
      embedding_std: [0.5, 0.5, 0.5]
      reference_landmarks: null    # 5x2 list, defaults to ArcFace positions

Explicit values always win over pack defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .backends.scrfd_specs import PACK_SPECS
from .exceptions import ConfigError

_DETECTION_KEYS = {
    "model_path",
    "pack",
    "runtime",
    "device",
    "providers",
    "input_size",
    "auto_resize",
    "confidence_threshold",
    "nms_threshold",
    "strides",
    "num_anchors",
    "mean",
    "std",
    "outputs",
    "pixel_inclusive_nms",
}
_ALIGNMENT_KEYS = {"output_size", "embedding_mean", "embedding_std", "reference_landmarks"}


def _as_pair(value: Any, name: str) -> tuple[int, int] | None:
    if value is None:
        return None
    if isinstance(value, int):
        return (value, value)
    try:
        width, height = value
        return (int(width), int(height))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be [width, height], got {value!r}: {e}")


@dataclass
class DetectionSettings:
    """Detector model and decode parameters."""

    model_path: Path
    pack: str | None = None
    runtime: str = "onnxrt"
    device: str | None = None
    providers: list[str] | None = None
    input_size: tuple[int, int] | None = None
    auto_resize: bool = True
    confidence_threshold: float = 0.5
    nms_threshold: float = 0.4
    strides: tuple[int, ...] = (8, 16, 32)
    num_anchors: int = 2
    mean: tuple[float, ...] = (0.5, 0.5, 0.5)
    std: tuple[float, ...] = (1.0, 1.0, 1.0)
    outputs: str | list[dict[str, int]] = "named"
    pixel_inclusive_nms: bool = False

    def to_options(self):
        """Build `DetectorOptions`; raises `ConfigError` on invalid values."""
        from .detection.decoder import indexed_heads
        from .detection.detector import DetectorOptions

        if self.outputs == "named":
            heads = None
        elif isinstance(self.outputs, list):
            try:
                heads = indexed_heads(self.outputs)
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"Invalid indexed output mapping: {e}")
        else:
            raise ConfigError(
                f"outputs must be 'named' or a list of index mappings, got {self.outputs!r}"
            )

        return DetectorOptions(
            confidence_threshold=float(self.confidence_threshold),
            nms_threshold=float(self.nms_threshold),
            auto_resize=bool(self.auto_resize),
            input_size=self.input_size,
            strides=tuple(self.strides),
            num_anchors=int(self.num_anchors),
            mean=tuple(self.mean),
            std=tuple(self.std),
            heads=heads,
            pixel_inclusive_nms=bool(self.pixel_inclusive_nms),
        )


@dataclass
class AlignmentSettings:
    """Aligned crop geometry and embedding normalization."""

    output_size: tuple[int, int] = (112, 112)
    embedding_mean: tuple[float, ...] = (0.5, 0.5, 0.5)
    embedding_std: tuple[float, ...] = (0.5, 0.5, 0.5)
    reference_landmarks: list[list[float]] | None = None


@dataclass
class FaceCoreConfig:
    """Validated detection + alignment configuration.

    Example usage:
        cfg = FaceCoreConfig.from_yaml(Path("face.yaml"))
        detector = ScrfdDetector.from_config(cfg.detection)
        aligner = FaceAligner.from_config(cfg.alignment)

    Raises:
        ConfigError: on missing/invalid config file, invalid YAML,
                     or validation errors.
    """

    detection: DetectionSettings
    alignment: AlignmentSettings = field(default_factory=AlignmentSettings)

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> FaceCoreConfig:
        """
        Parse and validate configuration from a YAML file.

        @requires: Valid YAML file at config_path
        @returns: Validated FaceCoreConfig instance
        @errors: ConfigError
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            import yaml
        except ImportError:
            raise ConfigError(
                "YAML support requires PyYAML. Install with: pip install pyyaml"
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML format: {e}")

        return cls.from_dict(data, base_dir=config_path.parent)

    @classmethod
    def from_dict(
        cls, data: Any, base_dir: Path | None = None
    ) -> FaceCoreConfig:
        """Validate a configuration mapping.

        Relative `model_path` values are resolved against `base_dir` when given.
        """
        cls._validate_structure(data)

        detection = cls._parse_detection(data["detection"], base_dir)
        alignment = cls._parse_alignment(data.get("alignment") or {})

        from .alignment.aligner import FaceAligner

        # construct once so invalid values fail here rather than at first use
        try:
            detection.to_options()
            FaceAligner.from_config(alignment)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}")

        return cls(detection=detection, alignment=alignment)

    @staticmethod
    def _validate_structure(data: Any) -> None:
        """
        Validate top-level configuration structure.

        @requires: Parsed YAML data
        @errors: ConfigError
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        if "detection" not in data:
            raise ConfigError("Missing required section: detection")
        if not isinstance(data["detection"], dict):
            raise ConfigError("'detection' must be a mapping")
        if "model_path" not in data["detection"]:
            raise ConfigError("Missing required field: detection.model_path")

        unknown = set(data["detection"]) - _DETECTION_KEYS
        if unknown:
            raise ConfigError(f"Unknown detection fields: {sorted(unknown)}")

        alignment = data.get("alignment")
        if alignment is not None:
            if not isinstance(alignment, dict):
                raise ConfigError("'alignment' must be a mapping")
            unknown = set(alignment) - _ALIGNMENT_KEYS
            if unknown:
                raise ConfigError(f"Unknown alignment fields: {sorted(unknown)}")

    @staticmethod
    def _parse_detection(
        section: dict[str, Any], base_dir: Path | None
    ) -> DetectionSettings:
        values: dict[str, Any] = {}

        pack = section.get("pack")
        if pack is not None:
            if pack not in PACK_SPECS:
                raise ConfigError(
                    f"Unknown pack '{pack}'. Known packs: {sorted(PACK_SPECS)}"
                )
            values.update(PACK_SPECS[pack])

        values.update(section)

        model_path = Path(str(values["model_path"])).expanduser()
        if base_dir is not None and not model_path.is_absolute():
            model_path = base_dir / model_path
        values["model_path"] = model_path

        values["input_size"] = _as_pair(values.get("input_size"), "input_size")
        for key in ("strides", "mean", "std"):
            if key in values and not isinstance(values[key], (list, tuple)):
                raise ConfigError(f"{key} must be a list, got {values[key]!r}")
            if key in values:
                values[key] = tuple(values[key])

        known = {f.name for f in fields(DetectionSettings)}
        return DetectionSettings(**{k: v for k, v in values.items() if k in known})

    @staticmethod
    def _parse_alignment(section: dict[str, Any]) -> AlignmentSettings:
        values = dict(section)
        if "output_size" in values:
            output_size = _as_pair(values["output_size"], "output_size")
            if output_size is None:
                raise ConfigError("alignment.output_size must not be null")
            values["output_size"] = output_size
        for key in ("embedding_mean", "embedding_std"):
            if key in values:
                if not isinstance(values[key], (list, tuple)):
                    raise ConfigError(f"{key} must be a list, got {values[key]!r}")
                values[key] = tuple(values[key])
        return AlignmentSettings(**values)
