from pathlib import Path

import pytest
import yaml

from src.tileprep.classes import DEFAULT_CLASSES
from src.tileprep.config import PipelineConfig
from src.tileprep.errors import ConfigError

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "wood_tiles.yaml"


def _write(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


def test_defaults_and_relative_paths(tmp_path):
    cfg = PipelineConfig.load(_write(tmp_path / "cfg" / "run.yaml", {"images_root": "imgs"}))
    base = (tmp_path / "cfg").resolve()
    assert cfg.project_dir == base
    assert cfg.images_root == base / "imgs"
    assert cfg.labels_root == base / "data" / "Labels"
    assert cfg.dest_root == base / "Dest"
    assert cfg.train_manifest == base / "TrainDataset.json"
    assert cfg.classes == DEFAULT_CLASSES
    assert (cfg.extract_size, cfg.final_size, cfg.label_retina, cfg.tiles_per_image) == (140, 115, 16, 15)
    assert cfg.augmentations_per_class == [1, 9, 9]
    assert cfg.purity_retina == (92, 92)


def test_project_dir_anchors_paths(tmp_path):
    cfg = PipelineConfig.load(_write(tmp_path / "configs" / "a.yaml", {"project_dir": "..", "dest_root": "out"}))
    assert cfg.project_dir == tmp_path.resolve()
    assert cfg.dest_root == tmp_path.resolve() / "out"


def test_class_names_and_extensions(tmp_path):
    cfg = PipelineConfig.from_dict(
        {"classes": ["bg", "crack"], "image_exts": "png, bmp", "augmentations_per_class": [0, 4]},
        base_dir=tmp_path,
    )
    assert cfg.classes.names == ["bg", "crack"]
    assert [c.label_value for c in cfg.classes] == [0, 1]
    assert cfg.image_exts == [".png", ".bmp"]


def test_class_dicts_with_icons(tmp_path):
    cfg = PipelineConfig.from_dict(
        {"classes": [{"name": "a", "icon_path": "icons/a.bmp"}, {"name": "b"}]}, base_dir=tmp_path
    )
    assert cfg.classes[0].icon_path == str(tmp_path.resolve() / "icons" / "a.bmp")
    assert cfg.classes[1].icon_path == ""
    assert cfg.augmentations_per_class == [1, 9]


def test_default_counts_padded_for_more_classes(tmp_path):
    cfg = PipelineConfig.from_dict({"classes": ["a", "b", "c", "d"]}, base_dir=tmp_path)
    assert cfg.augmentations_per_class == [1, 9, 9, 0]


@pytest.mark.parametrize(
    "bad",
    [
        {"final_size": 150},
        {"extract_size": 0},
        {"label_retina": 200},
        {"train_percentage": 101},
        {"purity_retina_frac": 0},
        {"augmentations_per_class": [1, 2, 3, 4]},
        {"augmentations_per_class": [1, -1]},
        {"extract_size": "big"},
        {"classes": [{"name": "a", "label_value": 3}]},
    ],
)
def test_invalid_configs(tmp_path, bad):
    with pytest.raises(ConfigError):
        PipelineConfig.from_dict(bad, base_dir=tmp_path)


def test_aug_yaml_is_merged(tmp_path):
    _write(tmp_path / "aug.yaml", {"noise": {"enable": False}})
    cfg = PipelineConfig.from_dict(
        {"augmentation": {"flip": {"p": 0.5}}, "aug_yaml": "aug.yaml"}, base_dir=tmp_path
    )
    assert cfg.augmentation == {"flip": {"p": 0.5}, "noise": {"enable": False}}


def test_missing_aug_yaml(tmp_path):
    with pytest.raises(ConfigError):
        PipelineConfig.from_dict({"aug_yaml": "missing.yaml"}, base_dir=tmp_path)


def test_shipped_config_loads():
    cfg = PipelineConfig.load(REPO_CONFIG)
    assert cfg.classes.names == ["NoDefect", "LargeKnots", "SmallKnots"]
    assert cfg.train_percentage == 80.0
    assert cfg.augmentation["aspect_ratio"]["mode"] == "both"
