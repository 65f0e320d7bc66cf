import codecs
import os
import re
from setuptools import setup, find_namespace_packages

def read(rel_path):
    """Read file."""
    here = os.path.abspath(os.path.dirname(__file__))
    with codecs.open(os.path.join(here, rel_path), 'r', 'utf-8') as fp:
        return fp.read()

def find_version(rel_path):
    """Get version from __init__.py file."""
    init_file = read(rel_path)
    pattern = r'^__version__\s*=\s*"((?:[1-9]\d*!)?\d+(?:\.\d+)*(?:[-._]?(?:a|alpha|b|beta|rc|pre|preview)(?:[-._]?\d+)?)?(?:\.post(?:0|[1-9]\d*))?(?:\.dev(?:0|[1-9]\d*))?(?:\+[a-z0-9]+(?:[._-][a-z0-9]+)*)?)"$'
    version_match = re.search(pattern, init_file, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")

setup(
    name="whodb_e2e_matrix",
    version=find_version("src/whodb/e2e/matrix/__init__.py"),
    description="Fixture-driven database test matrix for WhoDB end-to-end tests",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=['whodb.e2e.matrix', 'whodb.e2e.matrix.*']),
    python_requires=">=3.8",
    install_requires=[
        "PyYAML>=6.0",
        "Faker>=18.0.0",
        "cryptography>=42.0.0",
        "pytest>=7.0.0",
        "tomli>=2.0.0; python_version<'3.11'",
    ],
    extras_require={
        "test": [
            "pytest-asyncio>=0.21.0",
            "hypothesis>=6.0.0",
            "coverage>=7.0.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.0.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
        "docs": [
            "sphinx>=7.0.0",
            "sphinx-rtd-theme>=1.0.0",
        ],
    },
)
