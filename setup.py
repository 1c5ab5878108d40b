import pathlib
import re
import sys

try:
    import setuptools
except ImportError:
    raise ImportError("Could not import third party module during setup. Please make sure setuptools is installed.")

# Minimum setuptools version required to parse setup.cfg metadata.
_SETUPTOOLS_MIN_VERSION = "30.3"

if setuptools.__version__ < _SETUPTOOLS_MIN_VERSION:
    print(f"Error: setuptools version {_SETUPTOOLS_MIN_VERSION} " "or greater is required")
    sys.exit(1)


def get_version():
    """Read version from fast_state/__init__.py"""
    init_file = pathlib.Path(__file__).parent.joinpath("fast_state", "__init__.py").read_text()
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", init_file, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string in fast_state/__init__.py")


setuptools.setup(
    version=get_version(),
)
