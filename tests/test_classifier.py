"""Tests for the dependency classification engine."""

import pytest

from flexbuild.dependencies.classifier import PathSet, classify
from flexbuild.dependencies.model import BuildMode, Dependency


@pytest.fixture
def twelve_dependencies(make_dependency):
    """2 external, 2 internal, 2 compile, 2 merged, 2 en_US bundles, 2 test."""
    return [
        make_dependency("ext-a", scope="external"),
        make_dependency("ext-b", scope="external"),
        make_dependency("int-a", scope="internal"),
        make_dependency("int-b", scope="internal"),
        make_dependency("compile-a"),
        make_dependency("compile-b", scope="compile"),
        make_dependency("merged-a", scope="merged"),
        make_dependency("merged-b", scope="merged"),
        make_dependency("strings-a", type="rb.swc", classifier="en_US"),
        make_dependency("strings-b", type="rb.swc", classifier="en_US"),
        make_dependency("test-a", scope="test"),
        make_dependency("test-b", scope="test"),
    ]


class TestClassifyScenario:

    def test_set_sizes(self, twelve_dependencies):
        result = classify(twelve_dependencies, BuildMode.NORMAL, "en_US")

        assert len(result.external_libraries) == 2
        assert len(result.merged_libraries) == 6
        assert len(result.include_libraries) == 2

    def test_test_scope_absent_everywhere(self, twelve_dependencies):
        result = classify(twelve_dependencies, BuildMode.NORMAL, "en_US")
        test_paths = {d.path for d in twelve_dependencies if d.scope.value == "test"}

        for paths in (result.external_libraries, result.merged_libraries, result.include_libraries):
            assert not test_paths.intersection(paths)

    def test_each_dependency_in_exactly_one_set(self, twelve_dependencies):
        result = classify(twelve_dependencies, BuildMode.NORMAL, "en_US")
        kept = [d for d in twelve_dependencies if d.scope.value != "test"]

        for dependency in kept:
            memberships = sum(
                dependency.path in paths
                for paths in (result.external_libraries, result.merged_libraries, result.include_libraries)
            )
            assert memberships == 1

    def test_test_mode_includes_test_scope(self, twelve_dependencies):
        result = classify(twelve_dependencies, BuildMode.TEST, "en_US")
        test_paths = [d.path for d in twelve_dependencies if d.scope.value == "test"]

        assert all(p in result.include_libraries for p in test_paths)
        assert len(result.include_libraries) == 4
        assert not any(p in result.merged_libraries for p in test_paths)

    def test_order_follows_input(self, twelve_dependencies):
        result = classify(twelve_dependencies, BuildMode.NORMAL, "en_US")

        assert [p.name for p in result.external_libraries] == ["ext-a-1.0.swc", "ext-b-1.0.swc"]


class TestRouting:

    def test_provided_is_dropped(self, make_dependency):
        provided = make_dependency("framework", scope="provided")

        result = classify([provided])

        assert result.dropped == [provided]
        assert not result.library_path

    def test_library_mode_keeps_compile_scope_external(self, make_dependency):
        compile_dep = make_dependency("lib")

        result = classify([compile_dep], BuildMode.LIBRARY)

        assert compile_dep.path in result.external_libraries

    def test_unresolved_dependency_is_dropped(self):
        unresolved = Dependency("com.example", "ghost", "1.0")

        result = classify([unresolved])

        assert result.dropped == [unresolved]
        assert not result.merged_libraries


class TestResourceBundles:

    def test_wrong_locale_is_silently_dropped(self, make_dependency):
        french = make_dependency("strings", type="rb.swc", classifier="fr_FR")

        result = classify([french], BuildMode.NORMAL, "en_US")

        assert not result.merged_libraries
        assert result.dropped == [french]

    def test_matching_locale_is_merged(self, make_dependency):
        english = make_dependency("strings", type="rb.swc", classifier="en_US")

        result = classify([english], BuildMode.NORMAL, "en_US")

        assert list(result.merged_libraries) == [english.path]

    def test_bundle_scope_is_ignored(self, make_dependency):
        english = make_dependency("strings", scope="external", type="rb.swc", classifier="en_US")

        result = classify([english], BuildMode.NORMAL, "en_US")

        assert english.path in result.merged_libraries
        assert not result.external_libraries

    def test_no_locale_drops_bundles(self, make_dependency):
        english = make_dependency("strings", type="rb.swc", classifier="en_US")

        result = classify([english], BuildMode.NORMAL, None)

        assert not result.merged_libraries

    def test_locale_variant_resolved_for_neutral_bundle(self, resolver):
        path = resolver.add("com.example:strings:1.0:rb.swc:en_US")
        neutral = Dependency("com.example", "strings", "1.0", type="rb.swc")

        result = classify([neutral], BuildMode.NORMAL, "en_US", resolver=resolver)

        assert list(result.merged_libraries) == [path]

    def test_missing_locale_variant_is_skipped(self, resolver):
        neutral = Dependency("com.example", "strings", "1.0", type="rb.swc")

        result = classify([neutral], BuildMode.NORMAL, "ja_JP", resolver=resolver)

        assert not result.merged_libraries
        assert result.dropped == [neutral]


class TestClassificationResult:

    def test_library_path_appends_module_libraries(self, make_dependency, tmp_path):
        merged = make_dependency("merged", scope="merged")
        result = classify([merged])
        result.module_libraries.add(tmp_path / "module.swc")

        assert list(result.library_path) == [merged.path, tmp_path / "module.swc"]

    def test_compiler_options(self, make_dependency):
        external = make_dependency("ext", scope="external")
        internal = make_dependency("int", scope="internal")

        options = classify([external, internal]).to_compiler_options()

        assert options == {
            "external-library-path": [str(external.path)],
            "library-path": [],
            "include-libraries": [str(internal.path)],
        }


class TestPathSet:

    def test_deduplicates_preserving_order(self, tmp_path):
        paths = PathSet([tmp_path / "b", tmp_path / "a", tmp_path / "b"])

        assert list(paths) == [tmp_path / "b", tmp_path / "a"]

    def test_equality_is_order_sensitive(self, tmp_path):
        assert PathSet([tmp_path / "a", tmp_path / "b"]) == PathSet([tmp_path / "a", tmp_path / "b"])
        assert PathSet([tmp_path / "a", tmp_path / "b"]) != PathSet([tmp_path / "b", tmp_path / "a"])
