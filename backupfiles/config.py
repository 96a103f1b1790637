"""
Configuration management for the backup tool.

This module centralizes loading of the XML configuration file that drives
a backup run.  It defines defaults, converts the XML document into
dataclasses, and provides the small amount of write-back the tool needs
after a successful run (bumping the version and recording the run time).

The configuration decides which files end up in a backup: include paths
are scanned, include files are added explicitly, exclude patterns remove
matches, and extension rules decide which of the remaining files are
packed or only listed in the tree summary.  If no configuration file is
found next to the working directory, :func:`write_config_template` can
create a commented example to start from.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "backup.config.xml"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FILENAME_TIMESTAMP_TOKEN = "#YYYYMMDDhhmmss#"
FILENAME_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
FORCE_INCLUDE_MARKER = "!"

_VERSION_RE = re.compile(r"(<Version>)(.*?)(</Version>)", re.DOTALL)
_CREATED_RE = re.compile(r"(<Created>)(.*?)(</Created>)", re.DOTALL)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class ConfigError(Exception):
    """Raised when the configuration file is missing or cannot be parsed."""


def parse_bool(text: Optional[str], default: bool = False) -> bool:
    if text is None:
        return default
    value = text.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning("Unrecognized boolean value %r; using %s.", text, default)
    return default


@dataclass
class ConfigItem:
    """A single ``<extension>``, ``<includePath>`` or ``<includeFile>`` entry.

    Attributes
    ----------
    value: str
        The element text, e.g. ``.js`` or ``./src``.

    tree_only: bool
        When set, matching files are listed in the tree summary but their
        content is not packed.

    enable: bool
        Disabled entries are ignored (extensions only).

    recursive: bool
        Whether an include path is scanned recursively.
    """

    value: str
    tree_only: bool = False
    enable: bool = True
    recursive: bool = True

    @property
    def is_forced(self) -> bool:
        return self.value.strip().endswith(FORCE_INCLUDE_MARKER)

    @property
    def path(self) -> str:
        """The entry value without surrounding whitespace or a force marker."""
        value = self.value.strip()
        if value.endswith(FORCE_INCLUDE_MARKER):
            value = value[: -len(FORCE_INCLUDE_MARKER)].rstrip()
        return value


@dataclass
class ExtensionGroup:
    name: str
    tree_only: bool = False
    extensions: List[ConfigItem] = field(default_factory=list)


@dataclass
class ExtensionsConfig:
    """Extension declarations in document order.

    ``entries`` holds :class:`ConfigItem` (ungrouped extensions) and
    :class:`ExtensionGroup` objects exactly as they appear in the file.
    """

    entries: List[object] = field(default_factory=list)

    def all_items(self) -> Iterator[ConfigItem]:
        """Yield every extension in declaration order, folding group flags in."""
        for entry in self.entries:
            if isinstance(entry, ExtensionGroup):
                for item in entry.extensions:
                    yield ConfigItem(
                        value=item.value,
                        tree_only=item.tree_only or entry.tree_only,
                        enable=item.enable,
                    )
            else:
                yield entry  # type: ignore[misc]


@dataclass
class BackupConfig:
    """Top-level configuration for a backup run.

    Attributes
    ----------
    project_name, version: str
        Substituted into the result filename mask.  ``version`` has the
        form ``<user>.<major>.<minor>`` and is bumped after every
        successful run.

    created: str | None
        Timestamp of the last successful run (``TIMESTAMP_FORMAT``).  Used
        as the incremental cutoff and to throttle update checks.

    max_file_size_mb, max_file_age_days: float
        Size and age limits; zero disables the limit.

    incremental: bool
        Skip files that have not changed since ``created``.

    cleanup_keep_last: int
        Keep only this many result files in ``result_path`` (0 keeps all).
    """

    project_name: str = ""
    version: str = ""
    created: Optional[str] = None
    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)
    include_paths: List[ConfigItem] = field(default_factory=list)
    include_files: List[ConfigItem] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    result_path: str = "./backup"
    result_filename_mask: str = "@PROJECTNAME_@VER_#YYYYMMDDhhmmss#.bak.txt"
    max_file_size_mb: float = 0.0
    max_file_age_days: float = 0.0
    incremental: bool = False
    cleanup_keep_last: int = 0
    enable_zip: bool = False
    delete_unzipped: bool = False
    update_check_minutes: int = 1440
    update_check_timeout_seconds: int = 5
    update_check_url: Optional[str] = None
    is_example: bool = False
    config_path: Optional[Path] = None

    def validate(self) -> List[str]:
        """Return a list of problems that prevent a backup run."""
        problems: List[str] = []
        if self.is_example:
            problems.append("Config file is not set. Please update the 'IsExample' parameter to 0.")
            return problems
        if not self.project_name or not self.version:
            problems.append("ProjectName or Version is missing in the config file.")
        enabled = [item for item in self.extensions.all_items() if item.enable and item.value.strip()]
        if not enabled or not [item for item in self.include_paths if item.value.strip()]:
            problems.append("Extensions or IncludePaths are missing in the config file.")
        return problems


def _text(parent: ET.Element, tag: str) -> Optional[str]:
    element = parent.find(tag)
    if element is None or element.text is None:
        return None
    return element.text.strip()


def _number(parent: ET.Element, tag: str, default, kind=float):
    raw = _text(parent, tag)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        logger.warning("Invalid value %r for <%s>; using %s.", raw, tag, default)
        return default


def _item(element: ET.Element) -> ConfigItem:
    return ConfigItem(
        value=(element.text or "").strip(),
        tree_only=parse_bool(element.get("tree_only"), False),
        enable=parse_bool(element.get("enable"), True),
        recursive=parse_bool(element.get("recursive"), True),
    )


def _items(root: ET.Element, container: str, tag: str) -> List[ConfigItem]:
    section = root.find(container)
    if section is None:
        return []
    return [_item(element) for element in section.findall(tag)]


def _extensions(root: ET.Element) -> ExtensionsConfig:
    section = root.find("extensions")
    config = ExtensionsConfig()
    if section is None:
        return config
    for element in section:
        if element.tag == "extension":
            config.entries.append(_item(element))
        elif element.tag == "group":
            config.entries.append(
                ExtensionGroup(
                    name=element.get("name", ""),
                    tree_only=parse_bool(element.get("tree_only"), False),
                    extensions=[_item(child) for child in element.findall("extension")],
                )
            )
    return config


def load_config(path: Path) -> BackupConfig:
    """Load a :class:`BackupConfig` from an XML file.

    Raises
    ------
    ConfigError
        If the file does not exist or is not well-formed XML.
    """
    if not path.exists():
        raise ConfigError(f"Config file '{path}' not found.")
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise ConfigError(f"Error deserializing config file {path}: {exc}") from exc
    if root.tag != "configuration":
        raise ConfigError(f"Config file {path} has no <configuration> root element.")

    defaults = BackupConfig()
    exclude_section = root.find("excludePaths")
    excludes = []
    if exclude_section is not None:
        excludes = [(e.text or "").strip() for e in exclude_section.findall("excludePath")]

    return BackupConfig(
        project_name=_text(root, "ProjectName") or "",
        version=_text(root, "Version") or "",
        created=_text(root, "Created"),
        extensions=_extensions(root),
        include_paths=_items(root, "includePaths", "includePath"),
        include_files=_items(root, "includeFiles", "includeFile"),
        exclude_paths=[e for e in excludes if e],
        result_path=_text(root, "ResultPath") or defaults.result_path,
        result_filename_mask=_text(root, "ResultFilenameMask") or defaults.result_filename_mask,
        max_file_size_mb=_number(root, "MaxFileSizeMB", 0.0),
        max_file_age_days=_number(root, "MaxFileAgeDays", 0.0),
        incremental=parse_bool(_text(root, "IncrementalBackup"), False),
        cleanup_keep_last=_number(root, "CleanupKeepLast", 0, int),
        enable_zip=parse_bool(_text(root, "EnableZip"), False),
        delete_unzipped=parse_bool(_text(root, "DeleteUnziped"), False),
        update_check_minutes=_number(root, "UpdateCheckMinutes", defaults.update_check_minutes, int),
        update_check_timeout_seconds=_number(
            root, "UpdateCheckTimeoutSeconds", defaults.update_check_timeout_seconds, int
        ),
        update_check_url=_text(root, "UpdateCheckUrl") or None,
        is_example=_number(root, "IsExample", 0, int) == 1,
        config_path=path,
    )


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def last_run_cutoff(config: BackupConfig) -> Optional[datetime]:
    """Return the incremental cutoff, or None when there is no usable timestamp."""
    cutoff = parse_timestamp(config.created)
    if cutoff is None and config.incremental:
        logger.info("No valid last-run timestamp (Created=%r); performing a full scan.", config.created)
    return cutoff


def result_file_path(config: BackupConfig, root: Path, now: Optional[datetime] = None) -> Path:
    """Apply the result filename mask and return the absolute result path."""
    now = now or datetime.now()
    filename = (
        config.result_filename_mask.replace("@PROJECTNAME", config.project_name)
        .replace("@VER", config.version)
        .replace(FILENAME_TIMESTAMP_TOKEN, now.strftime(FILENAME_TIMESTAMP_FORMAT))
    )
    return root / config.result_path / filename


def bump_version(version: str) -> Optional[str]:
    """Increment ``<user>.<major>.<minor>``; minor rolls over after 99."""
    parts = version.split(".")
    if len(parts) != 3:
        return None
    user, major, minor = parts
    try:
        major_num, minor_num = int(major), int(minor)
    except ValueError:
        return None
    if minor_num < 99:
        minor_num += 1
    else:
        minor_num = 0
        major_num += 1
    return f"{user}.{major_num}.{minor_num}"


def record_successful_run(path: Path, now: Optional[datetime] = None) -> Optional[str]:
    """Bump ``Version`` and set ``Created`` in the configuration file.

    The rest of the file, comments included, is left untouched.  Returns the new version, or None
    if the file could not be updated (the reason is logged).
    """
    now = now or datetime.now()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Error updating version: %s", exc)
        return None
    version_match = _VERSION_RE.search(text)
    if version_match is None:
        logger.error("Version element not found in %s", path)
        return None
    new_version = bump_version(version_match.group(2).strip())
    if new_version is None:
        logger.error("Invalid version format: %r", version_match.group(2))
        return None
    text = text[: version_match.start(2)] + new_version + text[version_match.end(2) :]

    created = now.strftime(TIMESTAMP_FORMAT)
    if _CREATED_RE.search(text):
        text = _CREATED_RE.sub(lambda m: f"{m.group(1)}{created}{m.group(3)}", text, count=1)
    else:
        version_match = _VERSION_RE.search(text)
        line_start = text.rfind("\n", 0, version_match.start()) + 1
        indent = text[line_start : version_match.start()]
        insert_at = version_match.end()
        text = text[:insert_at] + f"\n{indent}<Created>{created}</Created>" + text[insert_at:]

    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        logger.error("Error updating version: %s", exc)
        return None
    logger.info("Version updated to %s", new_version)
    return new_version


CONFIG_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!--HOW TO USE THIS FILE
1. This file defines which files and folders will be included in your backup.
2. includePaths - folders scanned recursively (recursive="false" scans one level).
3. includeFiles - specific files added manually.
   - If a file ends with "!", it ignores excludePaths and will ALWAYS be included.
4. excludePaths - wildcard patterns for files/folders to exclude:
    * *.min.js
    * */node_modules/*
    * backup.*.config.xml
5. extensions - allowed file formats; tree_only="true" lists files without packing them.
6. ResultPath - folder where backups will be saved.
7. ResultFilenameMask - pattern used to build the backup filename.
8. Created - last backup timestamp (updated automatically).
9. MaxFileSizeMB / MaxFileAgeDays - skip larger / older files (0 disables).
10. IncrementalBackup - only pack files modified after Created.
11. CleanupKeepLast - keep only the newest N backups (0 keeps all).
12. UpdateCheckMinutes - update check interval in minutes (0 disables).
13. IsExample=1 disables work. Set it to 0 before using.
END OF INSTRUCTIONS-->
<configuration>
  <ProjectName>MyProject</ProjectName>
  <Version>1.0.0</Version>
  <Created>{created}</Created>
  <UpdateCheckMinutes>1440</UpdateCheckMinutes>
  <UpdateCheckTimeoutSeconds>5</UpdateCheckTimeoutSeconds>
  <extensions>
    <group name="Web and Frontend">
      <extension>.html</extension>
      <extension>.js</extension>
      <extension>.ts</extension>
      <extension>.tsx</extension>
      <extension>.css</extension>
      <extension>.scss</extension>
    </group>
    <group name="Programming Languages">
      <extension>.py</extension>
      <extension>.cs</extension>
      <extension>.go</extension>
      <extension>.rs</extension>
      <extension>.java</extension>
    </group>
    <group name="Config and Automation">
      <extension>.yaml</extension>
      <extension>.yml</extension>
      <extension>.json</extension>
      <extension>.xml</extension>
      <extension>.toml</extension>
      <extension>.ini</extension>
      <extension>.sh</extension>
    </group>
    <group name="Data and Databases">
      <extension>.sql</extension>
      <extension>.csv</extension>
      <extension tree_only="true">.db</extension>
      <extension tree_only="true">.sqlite</extension>
    </group>
    <group name="Docs">
      <extension>.md</extension>
      <extension>.txt</extension>
      <extension>.rst</extension>
    </group>
    <group name="Media Assets" tree_only="true">
      <extension>.jpg</extension>
      <extension>.jpeg</extension>
      <extension>.png</extension>
      <extension>.gif</extension>
      <extension>.ico</extension>
      <extension>.svg</extension>
    </group>
    <group name="Binary and Archives" tree_only="true">
      <extension>.dll</extension>
      <extension>.exe</extension>
      <extension>.zip</extension>
      <extension>.gz</extension>
    </group>
    <group name="Security" tree_only="true">
      <extension>.env</extension>
      <extension>.pem</extension>
      <extension>.key</extension>
    </group>
    <group name="Design and System" tree_only="true">
      <extension>.pdf</extension>
      <extension>.DS_Store</extension>
      <extension enable="false">Thumbs.db</extension>
      <extension>.log</extension>
    </group>
  </extensions>
  <includePaths>
    <includePath>./src</includePath>
    <includePath>./lib</includePath>
    <includePath tree_only="true">*/img</includePath>
  </includePaths>
  <includeFiles>
    <includeFile>./backup.config.xml</includeFile>
  </includeFiles>
  <excludePaths>
    <excludePath>./backup</excludePath>
    <excludePath>*/node_modules</excludePath>
    <excludePath>*/__pycache__</excludePath>
    <excludePath>./backup.*.config.xml</excludePath>
    <excludePath>*.min.js</excludePath>
  </excludePaths>
  <ResultPath>./backup</ResultPath>
  <ResultFilenameMask>@PROJECTNAME_@VER_#YYYYMMDDhhmmss#.bak.txt</ResultFilenameMask>
  <MaxFileSizeMB>0</MaxFileSizeMB>
  <MaxFileAgeDays>0</MaxFileAgeDays>
  <IncrementalBackup>false</IncrementalBackup>
  <CleanupKeepLast>0</CleanupKeepLast>
  <EnableZip>false</EnableZip>
  <DeleteUnziped>false</DeleteUnziped>
  <IsExample>1</IsExample>
</configuration>
"""


def write_config_template(path: Path, now: Optional[datetime] = None) -> bool:
    """Write a commented example configuration to ``path``."""
    now = now or datetime.now()
    try:
        path.write_text(CONFIG_TEMPLATE.format(created=now.strftime(TIMESTAMP_FORMAT)), encoding="utf-8")
    except OSError as exc:
        logger.error("Error creating config template: %s", exc)
        return False
    logger.info("Config template created with instructions: %s", path)
    return True
