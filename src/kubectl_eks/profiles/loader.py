"""AWS profile inventory.

Parses the AWS CLI config file into profiles.  A comment line of the form::

    [profile prod]
    region = eu-west-1
    # kubectl-eks-regions=eu-west-1,us-east-1

attaches hint regions to the enclosing profile section.  Profiles without
hint regions are invisible to every multi-cluster command, since listing
every region for every profile would be slow and noisy.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kubectl_eks.config import DEFAULT_HINT_MARKER
from kubectl_eks.errors import ConfigLoadError
from kubectl_eks.models import AWSProfile

logger = logging.getLogger(__name__)


class ProfileInventory:
    """Lazily parsed view of the AWS config file.

    The file is read on first use and the parsed profiles are kept for the
    lifetime of the inventory.
    """

    def __init__(
        self,
        config_path: str | Path,
        hint_marker: str = DEFAULT_HINT_MARKER,
    ) -> None:
        self._path = Path(config_path)
        self._marker = f"# {hint_marker}="
        self._profiles: dict[str, AWSProfile] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def profiles(self) -> list[AWSProfile]:
        """Return every profile in file order, hinted or not."""
        if self._profiles is None:
            self._profiles = self._load()
        return list(self._profiles.values())

    def profiles_with_hints(self) -> list[AWSProfile]:
        """Return only the profiles annotated with at least one hint region."""
        return [p for p in self.profiles() if p.hint_regions]

    def _load(self) -> dict[str, AWSProfile]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigLoadError(f"Unable to read AWS config {self._path}: {e}") from e

        profiles = parse_aws_config(text, self._marker)
        logger.debug(
            "Loaded %d profile(s) from %s (%d with EKS hints)",
            len(profiles),
            self._path,
            sum(1 for p in profiles.values() if p.hint_regions),
        )
        return profiles


def parse_aws_config(text: str, marker: str = f"# {DEFAULT_HINT_MARKER}=") -> dict[str, AWSProfile]:
    """Parse AWS config text into profiles keyed by name.

    Non-profile sections (``[sso-session ...]``, ``[services ...]``) are
    skipped along with everything inside them.
    """
    profiles: dict[str, AWSProfile] = {}
    current: AWSProfile | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()

        if line.startswith(marker):
            if current is not None:
                _add_hints(current, line[len(marker):])
            continue

        line = line.split("#", 1)[0].strip()
        if not line:
            continue

        if line.startswith("[") and line.endswith("]"):
            current = _open_section(line[1:-1].strip(), profiles)
            continue

        if current is None:
            continue

        key, sep, value = line.partition("=")
        if sep and key.strip() == "region":
            current.default_region = value.strip()

    return profiles


def _open_section(header: str, profiles: dict[str, AWSProfile]) -> AWSProfile | None:
    if header == "default":
        name = "default"
    elif header.startswith("profile "):
        name = header[len("profile "):].strip()
    else:
        return None

    profile = profiles.get(name)
    if profile is None:
        profile = AWSProfile(name=name)
        profiles[name] = profile
    return profile


def _add_hints(profile: AWSProfile, csv: str) -> None:
    if "=" in csv:
        return
    for region in csv.split(","):
        region = region.strip()
        if region and region not in profile.hint_regions:
            profile.hint_regions.append(region)
