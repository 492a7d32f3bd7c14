"""Tests for global artifact resolution."""

import pytest

from flexbuild.dependencies.global_artifact import (
    FRAMEWORK_GROUP_ID,
    global_coordinates,
    is_global,
    resolve_global,
    resolve_global_for,
)
from flexbuild.dependencies.model import Dependency, Scope, TargetKind
from flexbuild.errors import UnresolvedGlobalArtifactError


class TestGlobalCoordinates:

    def test_player_uses_playerglobal(self):
        coords = global_coordinates(TargetKind.PLAYER, "4.6")

        assert (coords.group_id, coords.artifact_id) == (FRAMEWORK_GROUP_ID, "playerglobal")

    def test_air_uses_airglobal(self):
        assert global_coordinates(TargetKind.AIR, "4.6").artifact_id == "airglobal"

    def test_is_global(self):
        assert is_global(Dependency(FRAMEWORK_GROUP_ID, "airglobal", "4.6"))
        assert not is_global(Dependency(FRAMEWORK_GROUP_ID, "framework", "4.6"))


class TestResolveGlobal:

    def test_resolves_to_provided_dependency(self, resolver):
        path = resolver.add(f"{FRAMEWORK_GROUP_ID}:playerglobal:4.6")

        dependency = resolve_global(TargetKind.PLAYER, "4.6", resolver)

        assert dependency.path == path
        assert dependency.scope is Scope.PROVIDED

    def test_missing_artifact_is_fatal(self, resolver):
        with pytest.raises(UnresolvedGlobalArtifactError, match="playerglobal") as excinfo:
            resolve_global(TargetKind.PLAYER, "4.6", resolver)

        assert excinfo.value.target_kind == "player"

    def test_missing_version_is_fatal(self, resolver):
        with pytest.raises(UnresolvedGlobalArtifactError, match="no framework version"):
            resolve_global(TargetKind.AIR, None, resolver)

    def test_fatal_even_when_everything_else_resolves(self, resolver):
        resolver.add("com.example:lib:1.0")
        declared = [
            Dependency("com.example", "lib", "1.0"),
            Dependency(FRAMEWORK_GROUP_ID, "airglobal", "2.6", scope="provided"),
        ]

        with pytest.raises(UnresolvedGlobalArtifactError):
            resolve_global_for(declared, TargetKind.AIR, resolver)


class TestResolveGlobalFor:

    def test_takes_version_and_classifier_from_declared(self, resolver):
        path = resolver.add(f"{FRAMEWORK_GROUP_ID}:playerglobal:10.2:swc:fp10")
        declared = [Dependency(FRAMEWORK_GROUP_ID, "playerglobal", "10.2", classifier="fp10", scope="provided")]

        dependency = resolve_global_for(declared, TargetKind.PLAYER, resolver)

        assert dependency.path == path

    def test_explicit_version_wins(self, resolver):
        resolver.add(f"{FRAMEWORK_GROUP_ID}:playerglobal:11.1")
        declared = [Dependency(FRAMEWORK_GROUP_ID, "playerglobal", "10.2", scope="provided")]

        dependency = resolve_global_for(declared, TargetKind.PLAYER, resolver, version="11.1")

        assert dependency.version == "11.1"

    def test_declared_global_of_other_target_is_ignored(self, resolver):
        declared = [Dependency(FRAMEWORK_GROUP_ID, "airglobal", "2.6", scope="provided")]

        with pytest.raises(UnresolvedGlobalArtifactError, match="playerglobal"):
            resolve_global_for(declared, TargetKind.PLAYER, resolver)
