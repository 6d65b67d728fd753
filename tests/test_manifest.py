import csv
import json
from pathlib import Path

import pytest

from src.tileprep.classes import ClassRegistry
from src.tileprep.errors import ConfigError, ManifestError
from src.tileprep.manifest import Manifest, ManifestEntry


def _manifest(classes, n=10, root=Path("/data/images")):
    ds = Manifest(root=root, classes=classes)
    for i in range(n):
        ds.append(f"img_{i:02d}.bmp", i % len(classes))
    return ds


def test_append_returns_index_and_abs_path(classes):
    ds = Manifest(root=Path("/data"), classes=classes)
    assert ds.append("a.bmp", 0) == 0
    assert ds.append(Path("sub") / "b.bmp", 2) == 1
    assert len(ds) == 2
    assert ds[1] == ManifestEntry("sub/b.bmp", 2, None)
    assert ds.abs_path(1) == Path("/data/sub/b.bmp")
    assert "sub/b.bmp" in ds


def test_duplicate_path_rejected(classes):
    ds = Manifest(root=Path("."), classes=classes)
    ds.append("a.bmp", 0)
    with pytest.raises(ManifestError):
        ds.append("a.bmp", 1)
    assert len(ds) == 1


@pytest.mark.parametrize("label", [-1, 3, 99])
def test_label_out_of_range_rejected(classes, label):
    ds = Manifest(root=Path("."), classes=classes)
    with pytest.raises(ManifestError):
        ds.append("a.bmp", label)
    assert len(ds) == 0


def test_augmentation_source_must_point_back(classes):
    ds = Manifest(root=Path("."), classes=classes)
    ds.append("a.bmp", 1)
    ds.append("a_Aug_0.bmp", 1, augmentation_source=0)
    with pytest.raises(ManifestError):
        ds.append("a_Aug_1.bmp", 1, augmentation_source=5)
    assert ds.augmented_from(0) == [1]
    assert ds[1].is_augmented and not ds[0].is_augmented


def test_split_80_20_on_ten(classes):
    ds = _manifest(classes)
    train, dev = ds.split(80, seed=1337)
    assert (len(train), len(dev)) == (8, 2)

    tr_paths = [e.path for e in train]
    dv_paths = [e.path for e in dev]
    assert set(tr_paths).isdisjoint(dv_paths)
    assert sorted(tr_paths + dv_paths) == [e.path for e in ds]
    # original order kept on both sides
    assert tr_paths == sorted(tr_paths)
    assert dv_paths == sorted(dv_paths)
    assert train.root == ds.root and train.classes is ds.classes


def test_split_is_deterministic(classes):
    ds = _manifest(classes, n=25)
    a = ds.split(70, seed=3)
    b = ds.split(70, seed=3)
    assert [e.path for e in a[0]] == [e.path for e in b[0]]
    c = ds.split(70, seed=4)
    assert len(c[0]) == len(a[0]) == 18


def test_split_bad_percentage(classes):
    with pytest.raises(ConfigError):
        _manifest(classes).split(120, seed=0)


def test_save_load_roundtrip(tmp_path, classes):
    ds = _manifest(classes, n=4, root=tmp_path / "Dest")
    ds.append("img_00_Aug_0.bmp", 0, augmentation_source=0)
    p = tmp_path / "out" / "TrainDataset.json"
    ds.save(p)

    doc = json.loads(p.read_text())
    assert doc["format"] == "tileprep-manifest"
    assert [c["name"] for c in doc["classes"]] == classes.names

    back = Manifest.load(p)
    assert back.root == ds.root
    assert back.classes == ds.classes
    assert back.entries == ds.entries
    with pytest.raises(ManifestError):
        back.append("img_00.bmp", 0)  # uniqueness survives reload


def test_load_rejects_foreign_documents(tmp_path):
    p = tmp_path / "x.json"
    p.write_text(json.dumps({"format": "something-else"}))
    with pytest.raises(ManifestError):
        Manifest.load(p)
    p.write_text("{not json")
    with pytest.raises(ManifestError):
        Manifest.load(p)
    p.write_text(json.dumps({"format": "tileprep-manifest", "version": 1, "root": "."}))
    with pytest.raises(ManifestError):
        Manifest.load(p)


def test_export_csv(tmp_path, classes):
    ds = _manifest(classes, n=3)
    ds.append("img_01_Aug_0.bmp", 1, augmentation_source=1)
    p = tmp_path / "dev.csv"
    ds.export_csv(p)
    with open(p, newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 4
    assert rows[1]["class_name"] == "LargeKnots"
    assert rows[0]["augmentation_source"] == ""
    assert rows[3]["augmentation_source"] == "1"


def test_label_counts(classes):
    ds = _manifest(classes, n=7)
    assert ds.label_counts() == {"NoDefect": 3, "LargeKnots": 2, "SmallKnots": 2}


def test_registry_is_immutable_and_unique():
    reg = ClassRegistry.from_names(["a", "b"])
    with pytest.raises(AttributeError):
        reg.classes = ()
    with pytest.raises(ManifestError):
        ClassRegistry.from_names(["a", "a"])
    assert reg.name_of(1) == "b"
    with pytest.raises(ManifestError):
        reg.name_of(2)
