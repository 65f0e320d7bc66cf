# src/whodb/e2e/matrix/features.py
"""Feature capability lookups against a fixture's declared feature map."""
from typing import Iterable

from .config import DatabaseFixture
from .errors import UnknownFeatureError
from .types import FeatureSupport, OPT_IN_FEATURES, VALID_FEATURES


def has_feature(fixture: DatabaseFixture, name: str) -> FeatureSupport:
    """Tri-state lookup of one feature tag.

    A tag mapped to ``False`` is unsupported, a tag that is missing (or mapped
    to ``None``) is undeclared, anything else is supported.
    """
    value = fixture.features.get(name)
    if value is None:
        return FeatureSupport.UNDECLARED
    if value is False:
        return FeatureSupport.UNSUPPORTED
    return FeatureSupport.SUPPORTED


def feature_default(name: str) -> bool:
    return name not in OPT_IN_FEATURES


def feature_enabled(fixture: DatabaseFixture, name: str) -> bool:
    """Boolean view of ``has_feature`` with the per-feature default applied."""
    return has_feature(fixture, name).resolve(feature_default(name))


def supports_all(fixture: DatabaseFixture, names: Iterable[str]) -> bool:
    """True when every tag in ``names`` is explicitly supported."""
    return all(has_feature(fixture, name) is FeatureSupport.SUPPORTED for name in names)


def check_feature_names(names: Iterable[str]) -> None:
    unknown = [name for name in names if name not in VALID_FEATURES]
    if unknown:
        raise UnknownFeatureError(
            f"Unknown feature(s): {', '.join(unknown)}. Valid features: {', '.join(VALID_FEATURES)}"
        )
