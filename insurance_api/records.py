# insurance_api/records.py
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping

LABEL_COLUMN = "charges"
RAW_FIELDS = ("age", "sex", "bmi", "children", "smoker", "region")


class Variant(str, Enum):
    """The model variants the service knows how to serve."""
    LINEAR = "linear"
    RANDOM_FOREST = "random_forest"
    BOOSTED_TREE = "boosted_tree"
    DUMMY = "dummy"

    @property
    def label(self) -> str:
        if self is Variant.LINEAR:
            return "Linear Regression"
        if self is Variant.RANDOM_FOREST:
            return "Random Forest"
        if self is Variant.BOOSTED_TREE:
            return "Gradient Boosting"
        if self is Variant.DUMMY:
            return "Dummy Model (Baseline)"
        raise AssertionError(f"unhandled variant {self!r}")

    @property
    def numeric_encoding(self) -> bool:
        """True when the model was fit on one-hot numeric features."""
        if self in (Variant.BOOSTED_TREE, Variant.DUMMY):
            return True
        if self in (Variant.LINEAR, Variant.RANDOM_FOREST):
            return False
        raise AssertionError(f"unhandled variant {self!r}")

    @property
    def requires_schema(self) -> bool:
        # numeric models must see exactly the training-time columns
        return self.numeric_encoding

    @property
    def scored(self) -> bool:
        """Whether the variant takes part in the model comparison."""
        return self is not Variant.DUMMY


@dataclass(frozen=True)
class RawRecord:
    """One patient query, holding values exactly as they were received."""
    age: Any = None
    sex: Any = None
    bmi: Any = None
    children: Any = None
    smoker: Any = None
    region: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RawRecord":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    messages: List[str] = field(default_factory=list)
