"""lgpm: install platform-specific modules into a host application."""

from lgpm.errors import PackageManagerError
from lgpm.manager import PackageManager

__version__ = "0.1.0"

__all__ = ["PackageManager", "PackageManagerError", "__version__"]
