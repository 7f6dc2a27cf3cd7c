"""
Daemon binary service — package re-exports.

Layers (data → domain → resolver → detection → execution)::

    assets.py    L1  version specs, platform tokens, asset scoring (pure)
    resolver.py  L2  spec → executable, environment precedence
    version.py   L3  ``--version`` probing
    cache.py     L4  per-version cache directory
    install.py   L4  download, extract, install
"""

from sbenv.core.services.binary.assets import (  # noqa: F401
    conventional_asset_names,
    host_platform,
    is_version_spec,
    normalize_version,
    pick_asset,
    score_asset,
)
from sbenv.core.services.binary.cache import BinaryCache  # noqa: F401
from sbenv.core.services.binary.install import (  # noqa: F401
    BinaryResolutionError,
    InstallAttempt,
    install_version,
)
from sbenv.core.services.binary.resolver import BinaryResolver, ResolvedBinary  # noqa: F401
from sbenv.core.services.binary.version import parse_version_output, probe_binary  # noqa: F401
