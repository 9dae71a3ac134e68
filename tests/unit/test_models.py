"""Unit tests for core models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from IntentForge.core.exceptions import ValidationError
from IntentForge.models.component import Component, ComponentKind
from IntentForge.models.intent import (
    ExtractedParameter,
    InferenceResult,
    IntentFlag,
    IntentParameter,
    ParamType,
    shell_token,
)
from IntentForge.models.permission import (
    PermissionCategory,
    highest_protection_level,
    protection_level,
)


class TestComponent:
    """Tests for the Component entity."""

    def test_simple_and_source_class_name(self, make_component):
        """Test class name accessors.

        Verifies that nested classes resolve to the outer class, since that is
        the file declaring them.
        """
        component = make_component("com.app.ui.Outer$Inner")
        assert component.simple_name == "Outer$Inner"
        assert component.source_class_name == "Outer"

    def test_rejects_shorthand_name(self):
        """Test that unqualified names are refused.

        Shorthand must be expanded by the registry before a Component exists.
        """
        with pytest.raises(PydanticValidationError):
            Component(package="com.app", qualified_name=".Main", kind=ComponentKind.ACTIVITY)

    def test_facets_deduplicated_in_order(self, make_component):
        component = make_component(actions=["b", "a", "b"], categories=["x", "x"])
        assert component.actions == ["b", "a"]
        assert component.categories == ["x"]

    def test_all_permissions_merges_sources(self, make_component):
        component = make_component(
            permissions=["p.ONE"],
            intent_filter_permissions=["p.TWO", "p.ONE"],
        )
        assert component.all_permissions == ["p.ONE", "p.TWO"]

    def test_component_is_immutable(self, make_component):
        component = make_component()
        with pytest.raises(PydanticValidationError):
            component.exported = False

    def test_shared_user_id_backfill_once(self, make_component):
        """Test sharedUserId backfill.

        Verifies the value can be set once, re-set to the same value, and that
        a conflicting value is rejected.
        """
        component = make_component()
        shared = component.with_shared_user_id("com.app.shared")
        assert shared.shared_user_id == "com.app.shared"
        assert component.shared_user_id is None
        assert shared.with_shared_user_id("com.app.shared") is shared

        with pytest.raises(ValidationError):
            shared.with_shared_user_id("com.other")


class TestIntentModels:
    """Tests for intent parameter models."""

    @pytest.mark.parametrize("raw", ["-a", "-c", "-d", "-t", "-e", "-f", " -a "])
    def test_flag_parse_accepts_closed_set(self, raw):
        assert IntentFlag.parse(raw) is not None

    @pytest.mark.parametrize("raw", ["-x", "--es", "", "a"])
    def test_flag_parse_rejects_unknown(self, raw):
        assert IntentFlag.parse(raw) is None

    def test_param_type_aliases(self):
        """Test free-form type name mapping.

        Verifies Java, LLM and extractor spellings all land on the same type.
        """
        assert ParamType.parse("String") is ParamType.STRING
        assert ParamType.parse("string") is ParamType.STRING
        assert ParamType.parse("Integer") is ParamType.INT
        assert ParamType.parse("long") is ParamType.INT
        assert ParamType.parse("bool") is ParamType.BOOLEAN
        assert ParamType.parse("Uri") is ParamType.URI
        assert ParamType.parse("Parcelable") is ParamType.UNKNOWN
        assert ParamType.parse(None) is ParamType.UNKNOWN

    def test_shell_token_quoting(self):
        assert shell_token("simple") == "simple"
        assert shell_token("") == "''"
        assert shell_token("two words") == "'two words'"
        assert shell_token("line\nbreak") == "'line break'"

    def test_render(self):
        param = IntentParameter(name="action", value="android.intent.action.VIEW", flag=IntentFlag.ACTION)
        assert param.render() == "-a android.intent.action.VIEW"
        assert str(param) == param.render()

    def test_render_quotes_unsafe_value(self):
        param = IntentParameter(name="data", value="app://open?x=1&y=2", flag=IntentFlag.DATA)
        assert param.render() == "-d 'app://open?x=1&y=2'"

    def test_extracted_dedup_key(self):
        param = ExtractedParameter(key="id", param_type="string", value="string", method_name="getStringExtra")
        assert param.dedup_key == ("id", "string", "getStringExtra")

    def test_inference_result_confidence_bounds(self):
        with pytest.raises(PydanticValidationError):
            InferenceResult(params=[], confidence=1.5)


class TestPermissions:
    """Tests for permission protection levels."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("normal", PermissionCategory.NORMAL),
            ("dangerous", PermissionCategory.DANGEROUS),
            ("signature", PermissionCategory.SIGNATURE),
            ("signature|privileged", PermissionCategory.PRIVILEGED),
            ("signatureOrSystem", PermissionCategory.PRIVILEGED),
            ("0x2", PermissionCategory.SIGNATURE),
            ("0x12", PermissionCategory.SIGNATURE),
            ("garbage", PermissionCategory.NORMAL),
        ],
    )
    def test_from_protection_level(self, raw, expected):
        assert PermissionCategory.from_protection_level(raw) is expected

    def test_ranks_are_ordered(self):
        ranks = [c.rank for c in PermissionCategory]
        assert ranks == sorted(ranks)

    def test_declared_overrides_framework_table(self):
        declared = {"android.permission.CAMERA": PermissionCategory.SIGNATURE}
        assert protection_level("android.permission.CAMERA") is PermissionCategory.DANGEROUS
        assert protection_level("android.permission.CAMERA", declared) is PermissionCategory.SIGNATURE

    def test_unknown_permission_is_normal(self):
        assert protection_level("com.example.UNKNOWN") is PermissionCategory.NORMAL

    def test_highest_level(self):
        permissions = ["android.permission.INTERNET", "android.permission.BIND_JOB_SERVICE"]
        assert highest_protection_level(permissions) is PermissionCategory.SIGNATURE
        assert highest_protection_level([]) is PermissionCategory.NORMAL
