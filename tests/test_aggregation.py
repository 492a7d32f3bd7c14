"""Tests for the aggregation resolver."""

import pytest

from flexbuild.dependencies.aggregation import Module, aggregate, aggregate_source_dirs, default_filter
from flexbuild.dependencies.global_artifact import FRAMEWORK_GROUP_ID
from flexbuild.dependencies.model import Coordinates, Dependency
from flexbuild.errors import AggregationError


def module(coordinates: str, **kwargs) -> Module:
    return Module(artifact=Coordinates.parse(coordinates), **kwargs)


class TestAggregate:

    def test_includes_module_artifacts(self, resolver):
        core = resolver.add("com.example:core:1.0")
        ui = resolver.add("com.example:ui:1.0")

        paths = aggregate([module("com.example:core:1.0"), module("com.example:ui:1.0")], resolver)

        assert paths == [core.resolve(), ui.resolve()]

    def test_overlapping_dependencies_are_deduplicated(self, resolver):
        shared = resolver.add("com.example:shared:1.0")
        resolver.add("com.example:core:1.0", ["com.example:shared:1.0"])
        resolver.add("com.example:ui:1.0", ["com.example:shared:1.0", "com.example:core:1.0"])

        paths = aggregate([module("com.example:core:1.0"), module("com.example:ui:1.0")], resolver)

        assert len(paths) == len(set(paths)) == 3
        assert paths.count(shared.resolve()) == 1

    def test_transitive_dependencies_are_followed(self, resolver):
        deep = resolver.add("com.example:deep:1.0")
        resolver.add("com.example:middle:1.0", ["com.example:deep:1.0"])
        resolver.add("com.example:app:1.0", ["com.example:middle:1.0"])

        paths = aggregate([module("com.example:app:1.0")], resolver)

        assert deep.resolve() in paths

    def test_default_filter_skips_test_scope_and_globals(self, resolver):
        resolver.add(f"{FRAMEWORK_GROUP_ID}:playerglobal:4.6")
        resolver.add("com.example:flexunit:4.0")
        resolver.add(
            "com.example:core:1.0",
            [(f"{FRAMEWORK_GROUP_ID}:playerglobal:4.6", "external"), ("com.example:flexunit:4.0", "test")],
        )

        paths = aggregate([module("com.example:core:1.0")], resolver)

        assert [p.name for p in paths] == ["core-1.0.swc"]

    def test_managed_versions_pin_transitive_versions(self, resolver):
        resolver.add("com.example:shared:2.0")
        resolver.add("com.example:core:1.0", ["com.example:shared:1.0"])

        paths = aggregate(
            [module("com.example:core:1.0", managed_versions={"com.example:shared": "2.0"})],
            resolver,
        )

        assert [p.name for p in paths] == ["core-1.0.swc", "shared-2.0.swc"]

    def test_failure_is_fatal_and_names_module(self, resolver):
        resolver.add("com.example:core:1.0", ["com.example:missing:1.0"])

        with pytest.raises(AggregationError) as excinfo:
            aggregate([module("com.example:core:1.0")], resolver)

        assert str(excinfo.value.module) == "com.example:core:1.0:swc"

    def test_custom_filter(self, resolver):
        resolver.add("com.example:core:1.0")

        paths = aggregate([module("com.example:core:1.0")], resolver, dependency_filter=lambda d: False)

        assert paths == []


class TestDefaultFilter:

    def test_resource_bundles_are_not_primary_artifacts(self):
        assert not default_filter(Dependency("g", "strings", "1", type="rb.swc"))

    def test_compile_swc_passes(self):
        assert default_filter(Dependency("g", "lib", "1"))


class TestAggregateSourceDirs:

    def test_missing_dirs_skipped_and_duplicates_removed(self, tmp_path):
        src = tmp_path / "core" / "src"
        src.mkdir(parents=True)

        dirs = aggregate_source_dirs([
            module("g:core:1", source_dirs=[src, tmp_path / "nope"]),
            module("g:ui:1", source_dirs=[src]),
        ])

        assert dirs == [src]
