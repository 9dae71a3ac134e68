"""Unit tests for syntax-tree based parameter extraction."""

import re

import pytest

from IntentForge.core.exceptions import ParseFailureError
from IntentForge.services.structural_extraction import (
    EXTRA_ACCESSOR,
    NodePattern,
    StructuralExtractor,
    infer_extra_type,
    query,
)
from IntentForge.services.structural_extraction.service import JAVA_LANGUAGE


def _wrap(body: str) -> bytes:
    return f"class A {{ void f(android.content.Intent intent) {{ {body} }} }}".encode()


@pytest.fixture(scope="module")
def extractor():
    return StructuralExtractor()


class TestTypeInference:
    """Tests for accessor name to type mapping."""

    @pytest.mark.parametrize(
        "method, expected",
        [
            ("getStringExtra", "string"),
            ("getStringArrayListExtra", "string"),
            ("getIntExtra", "int"),
            ("getFloatExtra", "float"),
            ("getDoubleExtra", "float"),
            ("getBooleanExtra", "boolean"),
            ("getLongExtra", "unknown"),
            ("getParcelableExtra", "unknown"),
        ],
    )
    def test_infer(self, method, expected):
        assert infer_extra_type(method) == expected


class TestStructuralExtractor:
    """Tests for the structural extractor."""

    def test_string_extra_without_default(self, extractor):
        """Test a single-argument accessor.

        The value falls back to the type name as a placeholder.
        """
        params = extractor.extract_source(_wrap('String id = intent.getStringExtra("user_id");'))
        assert len(params) == 1
        param = params[0]
        assert param.key == "user_id"
        assert param.param_type == "string"
        assert param.value == "string"
        assert param.method_name == "getStringExtra"

    def test_default_argument_captured(self, extractor):
        params = extractor.extract_source(_wrap('int page = intent.getIntExtra("page", 3);'))
        assert [(p.key, p.param_type, p.value) for p in params] == [("page", "int", "3")]

    def test_constant_key_kept_verbatim(self, extractor):
        params = extractor.extract_source(_wrap("boolean b = intent.getBooleanExtra(KEY_ADMIN, false);"))
        assert params[0].key == "KEY_ADMIN"
        assert params[0].value == "false"

    def test_get_data_yields_synthetic_uri(self, extractor):
        params = extractor.extract_source(_wrap("android.net.Uri u = intent.getData();"))
        assert [(p.key, p.param_type, p.value, p.method_name) for p in params] == [
            ("data", "uri", "uri", "getData")
        ]

    def test_get_data_with_arguments_ignored(self, extractor):
        assert extractor.extract_source(_wrap("Object o = repo.getData(42);")) == []

    def test_duplicates_removed_in_document_order(self, extractor):
        """Test (key, type, method) deduplication.

        The first occurrence wins and order follows the source.
        """
        source = _wrap(
            'String a = intent.getStringExtra("k");'
            'int n = getIntent().getIntExtra("n", 1);'
            'String b = intent.getStringExtra("k");'
            'String c = intent.getStringExtra("k", "fallback");'
        )
        params = extractor.extract_source(source)
        assert [p.dedup_key for p in params] == [
            ("k", "string", "getStringExtra"),
            ("n", "int", "getIntExtra"),
        ]
        assert len({p.dedup_key for p in params}) == len(params)

    def test_comments_are_not_matched(self, extractor):
        source = _wrap('// intent.getStringExtra("hidden");\n String s = "x";')
        assert extractor.extract_source(source) == []

    def test_broken_method_keeps_valid_accessors(self, extractor):
        """Test extraction from a source with a syntax error.

        The recovered tree still yields the accessor in the intact method.
        """
        source = (
            b"class A {"
            b' void ok() { String id = getIntent().getStringExtra("user_id"); }'
            b" void broken() { int x = ; }"
            b" }"
        )
        params = extractor.extract_source(source)
        assert ("user_id", "string", "string") in [(p.key, p.param_type, p.value) for p in params]

    def test_extract_file(self, extractor, project_dir):
        source = project_dir / "app" / "src" / "main" / "java" / "com" / "app" / "ProfileActivity.java"
        params = extractor.extract_file(source)
        assert [(p.key, p.param_type, p.value) for p in params] == [
            ("user_id", "string", "string"),
            ("page", "int", "0"),
            ("admin", "boolean", "false"),
            ("data", "uri", "uri"),
        ]

    def test_kotlin_source_is_parse_failure(self, extractor, project_dir):
        source = project_dir / "app" / "src" / "main" / "java" / "com" / "app" / "BootReceiver.kt"
        with pytest.raises(ParseFailureError):
            extractor.extract_file(source)

    def test_missing_file_is_parse_failure(self, extractor, tmp_path):
        with pytest.raises(ParseFailureError):
            extractor.extract_file(tmp_path / "Missing.java")


class TestNodePattern:
    """Tests for the declarative pattern matcher."""

    def _root(self, source: bytes):
        from tree_sitter import Parser

        return Parser(JAVA_LANGUAGE).parse(source).root_node

    def test_captures_named_fields(self):
        source = _wrap('intent.getStringExtra("k");')
        matches = list(query(self._root(source), [EXTRA_ACCESSOR], source))
        assert len(matches) == 1
        index, captures = matches[0]
        assert index == 0
        assert set(captures) == {"method", "args"}

    def test_custom_pattern(self):
        """Test a pattern written from scratch.

        Matches method invocations named `startActivity` and captures the
        receiver object.
        """
        pattern = NodePattern(
            kind="method_invocation",
            fields={
                "name": NodePattern(kind="identifier", text=re.compile(r"startActivity")),
                "object": NodePattern(kind="identifier", capture="receiver"),
            },
        )
        source = _wrap("ctx.startActivity(intent); startActivity(intent);")
        matches = list(query(self._root(source), [pattern], source))
        assert len(matches) == 1
        receiver = matches[0][1]["receiver"]
        assert source[receiver.start_byte:receiver.end_byte] == b"ctx"
