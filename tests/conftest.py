import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

TOOL_DIR = Path(__file__).resolve().parent.parent
if str(TOOL_DIR) not in sys.path:
    sys.path.insert(0, str(TOOL_DIR))

import leaderboard  # noqa: E402

FIXTURE_XML = TOOL_DIR / "tests" / "fixtures" / "features_minimal.xml"


@pytest.fixture
def fixture_xml() -> Path:
    return FIXTURE_XML


@pytest.fixture
def fixture_tree() -> leaderboard.SourceTree:
    return leaderboard.load_source_tree_file(FIXTURE_XML)


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing.xml"


@pytest.fixture
def make_args(fixture_xml: Path) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "xml": fixture_xml,
            "api": None,
            "driver": None,
            "versions": False,
            "reference_name": "mesa",
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_features_root() -> Callable[[str], ET.Element]:
    def _make_features_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<mesamatrix><apis>{inner_xml}</apis></mesamatrix>")

    return _make_features_root


@pytest.fixture
def make_extension() -> Callable[..., leaderboard.ExtensionNode]:
    def _make_extension(
        name: str = "ext",
        *,
        status: str = leaderboard.STATUS_DONE,
        drivers: tuple[str, ...] = (),
        subextensions: tuple[leaderboard.SubExtensionNode, ...] = (),
    ) -> leaderboard.ExtensionNode:
        return leaderboard.ExtensionNode(
            name=name,
            status=status,
            subextensions=subextensions,
            supported_drivers=frozenset(drivers),
        )

    return _make_extension


@pytest.fixture
def make_version() -> Callable[..., leaderboard.VersionNode]:
    def _make_version(
        name: str,
        version: str,
        extensions: tuple[leaderboard.ExtensionNode, ...] = (),
    ) -> leaderboard.VersionNode:
        return leaderboard.VersionNode(name=name, version=version, extensions=extensions)

    return _make_version


@pytest.fixture
def make_api() -> Callable[..., leaderboard.ApiNode]:
    def _make_api(
        name: str,
        versions: tuple[leaderboard.VersionNode, ...] = (),
        drivers: tuple[str, ...] = (),
    ) -> leaderboard.ApiNode:
        vendors = (leaderboard.VendorNode(name="vendor", drivers=drivers),)
        return leaderboard.ApiNode(name=name, versions=versions, vendors=vendors)

    return _make_api


@pytest.fixture
def make_aggregate() -> Callable[..., leaderboard.VersionAggregate]:
    def _make_aggregate(
        api_name: str,
        api_version: str,
        total: int = 0,
        counts: Mapping[leaderboard.DriverKey, int] | None = None,
    ) -> leaderboard.VersionAggregate:
        return leaderboard.VersionAggregate(
            api_name=api_name,
            api_version=api_version,
            api_id=leaderboard.make_api_id(api_name, api_version),
            total_extension_count=total,
            driver_completed_count={} if counts is None else counts,
        )

    return _make_aggregate
