from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

import leaderboard


def test_load_source_tree_reads_apis_in_document_order(
    fixture_tree: leaderboard.SourceTree,
) -> None:
    assert [api.name for api in fixture_tree.apis] == ["OpenGL", "OpenGL ES", "Vulkan"]


def test_load_source_tree_reads_vendors_and_drivers(
    fixture_tree: leaderboard.SourceTree,
) -> None:
    opengl = fixture_tree.find_api("OpenGL")
    assert opengl is not None

    assert [vendor.name for vendor in opengl.vendors] == ["AMD", "Intel"]
    assert opengl.vendors[0].drivers == ("radeonsi", "r600")
    assert opengl.vendors[1].drivers == ("iris",)


def test_load_source_tree_reads_versions_extensions_and_subextensions(
    fixture_tree: leaderboard.SourceTree,
) -> None:
    opengl = fixture_tree.find_api("OpenGL")
    assert opengl is not None

    gl45 = opengl.versions[0]
    assert (gl45.name, gl45.version) == ("OpenGL", "4.5")
    assert [ext.name for ext in gl45.extensions] == [
        "GL_ARB_clip_control",
        "GL_ARB_direct_state_access",
    ]

    clip_control = gl45.extensions[0]
    assert clip_control.status == leaderboard.STATUS_DONE
    assert clip_control.supported_drivers == frozenset({"radeonsi", "iris"})
    assert len(clip_control.subextensions) == 1
    assert clip_control.subextensions[0].supported_drivers == frozenset({"radeonsi"})

    assert gl45.extensions[1].status == leaderboard.STATUS_IN_PROGRESS


def test_load_source_tree_empty_containers_load_as_empty(
    make_features_root: Callable[[str], ET.Element],
) -> None:
    root = make_features_root(
        """
        <api name="Vulkan">
            <versions>
                <version name="Vulkan" version="1.0">
                    <extensions>
                        <extension name="VK_KHR_bare"/>
                    </extensions>
                </version>
                <version name="Vulkan" version="1.1"/>
            </versions>
        </api>
        """
    )

    tree = leaderboard.load_source_tree(root)
    vulkan = tree.apis[0]

    assert vulkan.vendors == ()
    bare = vulkan.versions[0].extensions[0]
    assert bare.status == ""
    assert bare.subextensions == ()
    assert bare.supported_drivers == frozenset()
    assert vulkan.versions[1].extensions == ()


def test_load_source_tree_skips_unnamed_driver_markers(
    make_features_root: Callable[[str], ET.Element],
) -> None:
    root = make_features_root(
        """
        <api name="OpenGL">
            <vendors>
                <vendor name="AMD"><drivers><driver/><driver name="r600"/></drivers></vendor>
            </vendors>
            <versions>
                <version name="OpenGL" version="3.0">
                    <extensions>
                        <extension name="GL_EXT_a">
                            <mesa status="complete"/>
                            <supported-drivers><driver name=""/><driver name="r600"/></supported-drivers>
                        </extension>
                    </extensions>
                </version>
            </versions>
        </api>
        """
    )

    tree = leaderboard.load_source_tree(root)

    assert tree.apis[0].vendors[0].drivers == ("r600",)
    assert tree.apis[0].versions[0].extensions[0].supported_drivers == frozenset(
        {"r600"}
    )


def test_load_source_tree_without_apis_returns_empty_tree() -> None:
    tree = leaderboard.load_source_tree(ET.fromstring("<mesamatrix/>"))

    assert tree.apis == ()
    assert tree.find_api("OpenGL") is None


def test_find_api_returns_first_match(
    make_api: Callable[..., leaderboard.ApiNode],
) -> None:
    first = make_api("OpenGL", drivers=("a",))
    second = make_api("OpenGL", drivers=("b",))
    tree = leaderboard.SourceTree(apis=(first, second))

    assert tree.find_api("OpenGL") is first
    assert tree.find_api("Metal") is None


def test_load_source_tree_file_propagates_parse_error(tmp_path: Path) -> None:
    broken = tmp_path / "broken.xml"
    broken.write_text("<mesamatrix><apis>", encoding="utf-8")

    with pytest.raises(ET.ParseError):
        leaderboard.load_source_tree_file(broken)
