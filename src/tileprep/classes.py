from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import ManifestError


@dataclass(frozen=True)
class ClassDefinition:
    """One class of the coarse-segmentation problem (label_value = pixel value in the label mask)."""
    name: str
    icon_path: str = ""
    label_value: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "icon_path": self.icon_path, "label_value": self.label_value}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ClassDefinition":
        return ClassDefinition(
            name=str(d["name"]),
            icon_path=str(d.get("icon_path") or ""),
            label_value=int(d.get("label_value", 0)),
        )


@dataclass(frozen=True)
class ClassRegistry:
    """
    Fixed, ordered list of class definitions shared read-only by every stage.
    The index of a class in the registry is its ground-truth label.
    """
    classes: Tuple[ClassDefinition, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # freeze whatever iterable we were given
        object.__setattr__(self, "classes", tuple(self.classes))
        names = [c.name for c in self.classes]
        if len(set(names)) != len(names):
            raise ManifestError(f"Duplicate class names in registry: {names}")

    @staticmethod
    def from_names(names: Iterable[str], icons: Optional[Iterable[str]] = None) -> "ClassRegistry":
        names = list(names)
        icons = list(icons) if icons is not None else [""] * len(names)
        if len(icons) != len(names):
            raise ManifestError("Need exactly one icon path per class name")
        return ClassRegistry(tuple(
            ClassDefinition(name=n, icon_path=ic, label_value=i)
            for i, (n, ic) in enumerate(zip(names, icons))
        ))

    def __len__(self) -> int:
        return len(self.classes)

    def __iter__(self) -> Iterator[ClassDefinition]:
        return iter(self.classes)

    def __getitem__(self, index: int) -> ClassDefinition:
        return self.classes[index]

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.classes]

    def is_valid(self, label: int) -> bool:
        return 0 <= int(label) < len(self.classes)

    def name_of(self, label: int) -> str:
        if not self.is_valid(label):
            raise ManifestError(f"Label {label} out of range for {len(self.classes)} classes")
        return self.classes[int(label)].name

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.classes]

    @staticmethod
    def from_list(items: Iterable[Dict[str, Any]]) -> "ClassRegistry":
        return ClassRegistry(tuple(ClassDefinition.from_dict(d) for d in items))


# NoDefect / LargeKnots / SmallKnots, pixel values 0, 1, 2
DEFAULT_CLASSES = ClassRegistry.from_names(["NoDefect", "LargeKnots", "SmallKnots"])
