"""Tests for tri-state feature lookups"""
import pytest
from hypothesis import given, strategies as st

from whodb.e2e.matrix.config import DatabaseFixture
from whodb.e2e.matrix.errors import UnknownFeatureError
from whodb.e2e.matrix.features import (
    check_feature_names,
    feature_default,
    feature_enabled,
    has_feature,
    supports_all,
)
from whodb.e2e.matrix.types import FeatureSupport, OPT_IN_FEATURES, VALID_FEATURES

from tests.fakes import fixture_document


def make_fixture(features):
    return DatabaseFixture.from_dict(fixture_document("sample", features=features))


def test_explicit_true_is_supported():
    fixture = make_fixture({"graph": True})
    assert has_feature(fixture, "graph") is FeatureSupport.SUPPORTED


def test_explicit_false_is_unsupported():
    fixture = make_fixture({"graph": False})
    assert has_feature(fixture, "graph") is FeatureSupport.UNSUPPORTED


def test_missing_and_null_are_undeclared():
    fixture = make_fixture({"graph": None})
    assert has_feature(fixture, "graph") is FeatureSupport.UNDECLARED
    assert has_feature(fixture, "export") is FeatureSupport.UNDECLARED


def test_list_shorthand_marks_every_tag_supported():
    fixture = make_fixture(["export", "graph"])
    assert has_feature(fixture, "export") is FeatureSupport.SUPPORTED
    assert has_feature(fixture, "graph") is FeatureSupport.SUPPORTED
    assert has_feature(fixture, "mockData") is FeatureSupport.UNDECLARED


def test_undeclared_defaults_differ_per_feature():
    fixture = make_fixture({})
    # Opt-in features stay off until declared.
    assert feature_enabled(fixture, "graph") is False
    assert feature_enabled(fixture, "mockData") is False
    assert feature_enabled(fixture, "scratchpad") is False
    assert feature_enabled(fixture, "crud") is True
    assert feature_enabled(fixture, "typeCasting") is True


def test_declared_value_overrides_default():
    fixture = make_fixture({"graph": True, "crud": False})
    assert feature_enabled(fixture, "graph") is True
    assert feature_enabled(fixture, "crud") is False


def test_supports_all_requires_explicit_support():
    fixture = make_fixture({"export": True, "graph": False})
    assert supports_all(fixture, ["export"])
    assert not supports_all(fixture, ["export", "graph"])
    assert not supports_all(fixture, ["export", "scratchpad"])
    assert supports_all(fixture, [])


def test_check_feature_names_rejects_unknown_tags():
    check_feature_names(["export", "graph"])
    with pytest.raises(UnknownFeatureError) as excinfo:
        check_feature_names(["export", "telepathy"])
    assert "telepathy" in str(excinfo.value)


def test_resolve_maps_each_state():
    assert FeatureSupport.SUPPORTED.resolve(False) is True
    assert FeatureSupport.UNSUPPORTED.resolve(True) is False
    assert FeatureSupport.UNDECLARED.resolve(True) is True
    assert FeatureSupport.UNDECLARED.resolve(False) is False
    assert not FeatureSupport.UNDECLARED.is_declared


@given(
    name=st.sampled_from(VALID_FEATURES),
    value=st.sampled_from([True, False, None, "missing"]),
)
def test_absence_is_never_conflated_with_disablement(name, value):
    features = {} if value == "missing" else {name: value}
    fixture = make_fixture(features)
    support = has_feature(fixture, name)
    if value is True:
        assert support is FeatureSupport.SUPPORTED
    elif value is False:
        assert support is FeatureSupport.UNSUPPORTED
        assert feature_enabled(fixture, name) is False
    else:
        assert support is FeatureSupport.UNDECLARED
        assert feature_enabled(fixture, name) is (name not in OPT_IN_FEATURES)
        assert feature_enabled(fixture, name) is feature_default(name)
