"""Driver completion leaderboard for OpenGL, OpenGL ES and Vulkan.

Builds a ranked scoreboard of graphics drivers from a features XML document:
one aggregate per API version (extension total plus per-driver completed
counts), ordered most-advanced first, with queries for totals, rankings and
the latest version each driver fully supports.

Usage:
    python leaderboard.py --xml features.xml
    python leaderboard.py --xml features.xml --api Vulkan --driver radv
"""

import argparse
import functools
import math
import re
import sys
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType


# ===--- CLI config contracts ---=== #


DEFAULT_APIS: tuple[str, ...] = ("OpenGL", "OpenGL ES", "Vulkan")


@dataclass(frozen=True)
class LeaderboardConfig:
    xml: Path
    apis: tuple[str, ...]
    driver: str | None
    show_versions: bool
    reference_name: str


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "DUPLICATE_API",
    "EMPTY_NAME",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/features.xml",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion
        or f"Point {flag} at an existing features XML file (a <mesamatrix> document).",
    )


def validate_name(name: str, flag: str) -> str:
    stripped = name.strip()
    if stripped:
        return stripped
    raise ConfigError(
        "EMPTY_NAME",
        f"{flag} cannot be empty.",
        f"Pass a non-empty value, for example {flag} Vulkan.",
    )


def normalize_apis(raw_apis: Sequence[str] | None) -> tuple[str, ...]:
    if not raw_apis:
        return DEFAULT_APIS

    seen: list[str] = []
    for raw in raw_apis:
        name = validate_name(raw, "--api")
        if name in seen:
            raise ConfigError(
                "DUPLICATE_API",
                f"API listed more than once: {name}",
                "Pass each --api once; the order of the flags is the report order.",
            )
        seen.append(name)
    return tuple(seen)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rank graphics drivers by completed API extensions"
    )

    parser.add_argument("--xml", type=Path, default=None)
    parser.add_argument("--api", action="append", default=None)
    parser.add_argument("--driver", type=str, default=None)
    parser.add_argument("--versions", action="store_true", default=False)
    parser.add_argument("--reference-name", type=str, default="mesa")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> LeaderboardConfig:
    xml = validate_path_exists(args.xml, "--xml")
    driver = validate_name(args.driver, "--driver") if args.driver is not None else None

    return LeaderboardConfig(
        xml=xml,
        apis=normalize_apis(args.api),
        driver=driver,
        show_versions=bool(args.versions),
        reference_name=validate_name(args.reference_name, "--reference-name"),
    )


def build_config(argv: list[str] | None = None) -> LeaderboardConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

STATUS_DONE = "complete"
STATUS_IN_PROGRESS = "started"
STATUS_NOT_STARTED = "incomplete"

# Short ids used by find_version, e.g. "GL4.5" or "GLES3.1".
API_ID_PREFIXES: dict[str, str] = {
    "OpenGL": "GL",
    "OpenGL ES": "GLES",
    "Vulkan": "VK",
}

_WHITESPACE_RE = re.compile(r"\s+")


class ReferenceDriver:
    """Key for the reference implementation's own completion counts.

    Compares equal only to itself, so a third-party driver that happens to
    share the reference implementation's display name keeps its own entry.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "REFERENCE_DRIVER"


REFERENCE_DRIVER = ReferenceDriver()

DriverKey = str | ReferenceDriver


@dataclass(frozen=True)
class RankingRules:
    """Domain data the aggregation and ordering depend on.

    Attributes:
        primary_apis: API names that sort ahead of every other API, in order.
        done_status: Reference-implementation status meaning "fully done".
        api_id_prefixes: API name to short id prefix for composed version ids.
        reference_name: Display name of the reference implementation.
    """

    primary_apis: tuple[str, ...] = ("Vulkan", "OpenGL")
    done_status: str = STATUS_DONE
    api_id_prefixes: Mapping[str, str] = field(
        default_factory=lambda: dict(API_ID_PREFIXES), hash=False
    )
    reference_name: str = "mesa"

    def __post_init__(self) -> None:
        prefixes = MappingProxyType(dict(self.api_id_prefixes))
        object.__setattr__(self, "api_id_prefixes", prefixes)


DEFAULT_RULES = RankingRules()


def make_api_id(
    api_name: str, api_version: str, rules: RankingRules = DEFAULT_RULES
) -> str:
    prefix = rules.api_id_prefixes.get(api_name)
    if prefix is None:
        prefix = _WHITESPACE_RE.sub("", api_name)
    return f"{prefix}{api_version}"


def display_driver(driver: DriverKey, rules: RankingRules = DEFAULT_RULES) -> str:
    if driver is REFERENCE_DRIVER:
        return rules.reference_name
    return str(driver)


def resolve_driver(name: str, rules: RankingRules = DEFAULT_RULES) -> DriverKey:
    """Map a user-supplied driver name to its key.

    The reference implementation's display name selects REFERENCE_DRIVER;
    anything else is taken as a third-party driver name.
    """
    if name == rules.reference_name:
        return REFERENCE_DRIVER
    return name


# ===--- Source tree ---=== #


@dataclass(frozen=True)
class SubExtensionNode:
    name: str
    status: str
    supported_drivers: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ExtensionNode:
    name: str
    status: str
    subextensions: tuple[SubExtensionNode, ...] = ()
    supported_drivers: frozenset[str] = frozenset()


@dataclass(frozen=True)
class VersionNode:
    """One numbered release of an API.

    Attributes:
        name: API name as carried by the version, e.g. "OpenGL ES".
        version: Numeric version string, e.g. "3.1".
        extensions: Extensions introduced at this version, in document order.
    """

    name: str
    version: str
    extensions: tuple[ExtensionNode, ...] = ()


@dataclass(frozen=True)
class VendorNode:
    name: str
    drivers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApiNode:
    name: str
    versions: tuple[VersionNode, ...] = ()
    vendors: tuple[VendorNode, ...] = ()


@dataclass(frozen=True)
class SourceTree:
    apis: tuple[ApiNode, ...] = ()

    def find_api(self, name: str) -> ApiNode | None:
        for api in self.apis:
            if api.name == name:
                return api
        return None


# ===--- XML ingestion ---=== #


def _driver_names(parent: ET.Element, path: str) -> Iterator[str]:
    for driver in parent.findall(path):
        name = driver.get("name", "")
        if name:
            yield name


def _reference_status(node: ET.Element) -> str:
    mesa = node.find("mesa")
    if mesa is None:
        return ""
    return mesa.get("status", "")


def load_subextension(node: ET.Element) -> SubExtensionNode:
    return SubExtensionNode(
        name=node.get("name", ""),
        status=_reference_status(node),
        supported_drivers=frozenset(_driver_names(node, "supported-drivers/driver")),
    )


def load_extension(node: ET.Element) -> ExtensionNode:
    return ExtensionNode(
        name=node.get("name", ""),
        status=_reference_status(node),
        subextensions=tuple(
            load_subextension(sub) for sub in node.findall("subextensions/subextension")
        ),
        supported_drivers=frozenset(_driver_names(node, "supported-drivers/driver")),
    )


def load_version(node: ET.Element) -> VersionNode:
    return VersionNode(
        name=node.get("name", ""),
        version=node.get("version", ""),
        extensions=tuple(
            load_extension(ext) for ext in node.findall("extensions/extension")
        ),
    )


def load_api(node: ET.Element) -> ApiNode:
    vendors = tuple(
        VendorNode(
            name=vendor.get("name", ""),
            drivers=tuple(_driver_names(vendor, "drivers/driver")),
        )
        for vendor in node.findall("vendors/vendor")
    )
    return ApiNode(
        name=node.get("name", ""),
        versions=tuple(load_version(v) for v in node.findall("versions/version")),
        vendors=vendors,
    )


def load_source_tree(root: ET.Element) -> SourceTree:
    """Convert a parsed features document into a typed SourceTree.

    Missing containers load as empty collections and a missing reference
    status loads as "". Nothing is validated beyond that.

    Args:
        root: The document root (the element holding <apis>).

    Returns:
        SourceTree with one ApiNode per <apis>/<api>, in document order.
    """
    return SourceTree(apis=tuple(load_api(api) for api in root.findall("apis/api")))


def load_source_tree_file(path: Path) -> SourceTree:
    """Parse a features XML file. ParseError and OSError propagate."""
    return load_source_tree(ET.parse(path).getroot())


# ===--- Version aggregate ---=== #


@dataclass(frozen=True)
class VersionAggregate:
    """Extension total and per-driver completed counts for one API version.

    Invariant: 0 <= driver_completed_count[d] <= total_extension_count for
    every driver d. Enforced at construction.

    Attributes:
        api_name: API name, e.g. "OpenGL".
        api_version: Version string, e.g. "4.6".
        api_id: Composed short id, e.g. "GL4.6".
        total_extension_count: Extensions plus all of their sub-extensions.
        driver_completed_count: Driver key to completed extension count. The
            reference implementation is keyed by REFERENCE_DRIVER.
    """

    api_name: str
    api_version: str
    api_id: str
    total_extension_count: int
    driver_completed_count: Mapping[DriverKey, int] = field(
        default_factory=dict, hash=False
    )

    def __post_init__(self) -> None:
        counts = MappingProxyType(dict(self.driver_completed_count))
        object.__setattr__(self, "driver_completed_count", counts)

        assert self.total_extension_count >= 0, (
            f"{self.api_id}: negative extension total {self.total_extension_count}"
        )
        for driver, count in counts.items():
            assert 0 <= count <= self.total_extension_count, (
                f"{self.api_id}: {driver!r} completed {count} of "
                f"{self.total_extension_count}"
            )

    @property
    def drivers(self) -> tuple[DriverKey, ...]:
        return tuple(self.driver_completed_count)

    def completed_by(self, driver: DriverKey) -> int:
        return self.driver_completed_count.get(driver, 0)

    def is_fully_supported_by(self, driver: DriverKey) -> bool:
        return self.completed_by(driver) == self.total_extension_count


# ===--- Ordering ---=== #


def version_number(raw: str) -> float:
    """Numeric value of a version string.

    Unparseable and non-finite versions ("nan", "inf") count as 0.0.
    """
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _api_priority(api_name: str, rules: RankingRules) -> int:
    if api_name in rules.primary_apis:
        return rules.primary_apis.index(api_name)
    return len(rules.primary_apis)


def compare_versions(
    a: VersionAggregate,
    b: VersionAggregate,
    rules: RankingRules = DEFAULT_RULES,
    api_order: Sequence[str] = (),
) -> int:
    """Order two aggregates, most advanced first.

    Different API names: primary APIs come first, in rules.primary_apis
    order. Two distinct non-primary APIs tie unless both appear in api_order,
    in which case the earlier one comes first.

    Same API name: higher numeric version first; equal versions tie.

    Returns:
        Negative when a sorts before b, positive when after, 0 on a tie.
    """
    if a.api_name == b.api_name:
        diff = version_number(b.api_version) - version_number(a.api_version)
        if diff == 0:
            return 0
        return -1 if diff < 0 else 1

    priority_diff = _api_priority(a.api_name, rules) - _api_priority(b.api_name, rules)
    if priority_diff != 0:
        return priority_diff

    if a.api_name in api_order and b.api_name in api_order:
        return api_order.index(a.api_name) - api_order.index(b.api_name)
    return 0


def sort_versions(
    aggregates: Iterable[VersionAggregate], rules: RankingRules = DEFAULT_RULES
) -> tuple[VersionAggregate, ...]:
    """Sort aggregates with compare_versions, stable on ties.

    Non-primary APIs keep the order in which they first appear in
    aggregates, which keeps each API's versions contiguous.
    """
    items = list(aggregates)
    api_order = tuple(dict.fromkeys(item.api_name for item in items))

    def _compare(a: VersionAggregate, b: VersionAggregate) -> int:
        return compare_versions(a, b, rules, api_order)

    return tuple(sorted(items, key=functools.cmp_to_key(_compare)))


# ===--- Aggregation pass ---=== #


def iter_extension_units(
    version: VersionNode,
) -> Iterator[ExtensionNode | SubExtensionNode]:
    """Yield every extension of a version followed by its sub-extensions."""
    for ext in version.extensions:
        yield ext
        yield from ext.subextensions


def count_total_extensions(version: VersionNode) -> int:
    return sum(1 for _ in iter_extension_units(version))


def count_reference_done(version: VersionNode, done_status: str = STATUS_DONE) -> int:
    return sum(1 for unit in iter_extension_units(version) if unit.status == done_status)


def count_driver_done(version: VersionNode, driver_name: str) -> int:
    return sum(
        1 for unit in iter_extension_units(version) if driver_name in unit.supported_drivers
    )


def collect_api_drivers(api: ApiNode) -> tuple[str, ...]:
    """Driver names across all vendors of an API, first occurrence wins."""
    return tuple(
        dict.fromkeys(driver for vendor in api.vendors for driver in vendor.drivers)
    )


def aggregate_version(
    version: VersionNode,
    drivers: Sequence[str],
    rules: RankingRules = DEFAULT_RULES,
) -> VersionAggregate:
    counts: dict[DriverKey, int] = {
        REFERENCE_DRIVER: count_reference_done(version, rules.done_status)
    }
    for driver in drivers:
        counts[driver] = count_driver_done(version, driver)

    return VersionAggregate(
        api_name=version.name,
        api_version=version.version,
        api_id=make_api_id(version.name, version.version, rules),
        total_extension_count=count_total_extensions(version),
        driver_completed_count=counts,
    )


class LeaderboardBuilder:
    """Walks the source tree for an ordered list of API names.

    Each build() call returns a new Leaderboard; the tree is only read.
    APIs listed but absent from the tree contribute nothing, and a name
    listed twice is aggregated once.
    """

    def __init__(
        self,
        tree: SourceTree,
        apis: Sequence[str],
        rules: RankingRules = DEFAULT_RULES,
    ):
        self.tree = tree
        self.apis = tuple(dict.fromkeys(apis))
        self.rules = rules

    def aggregate_api(self, api: ApiNode) -> list[VersionAggregate]:
        drivers = collect_api_drivers(api)
        return [aggregate_version(v, drivers, self.rules) for v in api.versions]

    def build(self) -> "Leaderboard":
        aggregates: list[VersionAggregate] = []
        for api_name in self.apis:
            for api in self.tree.apis:
                if api.name == api_name:
                    aggregates.extend(self.aggregate_api(api))

        return Leaderboard(versions=sort_versions(aggregates, self.rules))


def build_leaderboard(
    tree: SourceTree,
    apis: Sequence[str] = DEFAULT_APIS,
    rules: RankingRules = DEFAULT_RULES,
) -> "Leaderboard":
    return LeaderboardBuilder(tree, apis, rules).build()


# ===--- Leaderboard queries ---=== #


@dataclass(frozen=True)
class Leaderboard:
    """Sorted version aggregates and the read-only queries over them.

    versions is in compare_versions order: primary APIs first, each API's
    versions from highest to lowest.
    """

    versions: tuple[VersionAggregate, ...] = ()

    def find_version(self, api_id: str) -> VersionAggregate | None:
        for aggregate in self.versions:
            if aggregate.api_id == api_id:
                return aggregate
        return None

    def total_completed_by_driver(self, driver: DriverKey) -> int:
        return sum(aggregate.completed_by(driver) for aggregate in self.versions)

    def total_extensions(self) -> int:
        return sum(aggregate.total_extension_count for aggregate in self.versions)

    def completion_ratio(self, driver: DriverKey) -> float:
        total = self.total_extensions()
        if total == 0:
            return 0.0
        return self.total_completed_by_driver(driver) / total

    def drivers_ranked_by_completion(self) -> list[tuple[DriverKey, int]]:
        """Every driver with its summed completed count, highest first.

        Ties keep the order in which drivers are first met walking versions.
        """
        totals: dict[DriverKey, int] = {}
        for aggregate in self.versions:
            for driver, count in aggregate.driver_completed_count.items():
                totals[driver] = totals.get(driver, 0) + count

        return sorted(totals.items(), key=lambda item: item[1], reverse=True)

    def latest_fully_supported_version(
        self, api_name: str, driver: DriverKey
    ) -> str | None:
        """Highest version of an unbroken run of full support from the oldest.

        Walks api_name's versions from oldest to newest and stops at the first
        one the driver has not fully completed. A version with no extensions
        counts as fully supported.

        Returns:
            The last fully supported version string, or None when the oldest
            version is already incomplete or the API has no versions.
        """
        api_version: str | None = None
        for aggregate in reversed(self.versions):
            if aggregate.api_name != api_name:
                continue
            if not aggregate.is_fully_supported_by(driver):
                break
            api_version = aggregate.api_version

        return api_version

    def api_names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(aggregate.api_name for aggregate in self.versions))

    def versions_for_api(self, api_name: str) -> tuple[VersionAggregate, ...]:
        return tuple(a for a in self.versions if a.api_name == api_name)


# ===--- Formatters ---=== #


def format_leaderboard_table(
    leaderboard: Leaderboard, rules: RankingRules = DEFAULT_RULES
) -> str:
    """Return the ranked driver table.

    Output format:

        Driver leaderboard (150 extensions):

           1. mesa        140/150   93.3%
           2. radeonsi    131/150   87.3%

    Ranks are 1-based positions in drivers_ranked_by_completion order.
    """
    total = leaderboard.total_extensions()
    ranked = leaderboard.drivers_ranked_by_completion()
    lines = [f"Driver leaderboard ({total} extensions):", ""]

    name_width = max((len(display_driver(d, rules)) for d, _ in ranked), default=0)
    for position, (driver, done) in enumerate(ranked, start=1):
        percent = 100.0 * leaderboard.completion_ratio(driver)
        name_col = display_driver(driver, rules).ljust(name_width)
        score_col = f"{done}/{total}"
        lines.append(f"  {position:>2}. {name_col}  {score_col:>9}  {percent:5.1f}%")

    lines.append("")
    return "\n".join(lines)


def format_versions_table(
    leaderboard: Leaderboard, rules: RankingRules = DEFAULT_RULES
) -> str:
    """Return one row per version in leaderboard order.

    Each row shows the short id, the API name and version, the extension
    total, then "driver done" for every driver of that version.
    """
    lines = [f"API versions ({len(leaderboard.versions)}):", ""]
    if not leaderboard.versions:
        lines.append("")
        return "\n".join(lines)

    id_width = max(len(a.api_id) for a in leaderboard.versions)
    label_width = max(len(f"{a.api_name} {a.api_version}") for a in leaderboard.versions)

    for api_name in leaderboard.api_names():
        for aggregate in leaderboard.versions_for_api(api_name):
            label = f"{aggregate.api_name} {aggregate.api_version}"
            drivers_col = "  ".join(
                f"{display_driver(d, rules)} {aggregate.completed_by(d)}"
                for d in aggregate.drivers
            )
            row = (
                f"  {aggregate.api_id.ljust(id_width)}  {label.ljust(label_width)}"
                f"  {aggregate.total_extension_count:>4} exts  {drivers_col}"
            )
            lines.append(row.rstrip())

    lines.append("")
    return "\n".join(lines)


def format_driver_api_versions(
    leaderboard: Leaderboard,
    driver: DriverKey,
    rules: RankingRules = DEFAULT_RULES,
) -> str:
    """Return the latest fully supported version of every API for one driver."""
    lines = [f"API versions fully supported by {display_driver(driver, rules)}:", ""]
    api_names = leaderboard.api_names()
    name_width = max((len(name) for name in api_names), default=0)
    for api_name in api_names:
        version = leaderboard.latest_fully_supported_version(api_name, driver)
        lines.append(f"  {api_name.ljust(name_width)}  {version or 'none'}")

    lines.append("")
    return "\n".join(lines)


# ===--- Dispatch ---=== #


def run_report(config: LeaderboardConfig) -> None:
    """Load the features XML, build the leaderboard and print the report.

    --driver prints that driver's supported API versions, --versions the
    per-version table; with neither, the ranked driver table is printed.

    Note:
        OSError and ParseError from loading the XML propagate to main().
    """
    rules = replace(DEFAULT_RULES, reference_name=config.reference_name)
    tree = load_source_tree_file(config.xml)
    leaderboard = build_leaderboard(tree, config.apis, rules)

    if config.driver is not None:
        driver = resolve_driver(config.driver, rules)
        print(format_driver_api_versions(leaderboard, driver, rules), end="")
    if config.show_versions:
        print(format_versions_table(leaderboard, rules), end="")
    if config.driver is None and not config.show_versions:
        print(format_leaderboard_table(leaderboard, rules), end="")


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        run_report(config)
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
