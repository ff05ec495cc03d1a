"""
SquadRelay Setup Configuration

Makes SquadRelay installable as a Python package, allowing plugins to import
from the 'core' and 'models' modules.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    requirements = [
        line.strip()
        for line in requirements_file.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="squadrelay",
    version="1.0.0",
    description="Squad server plugins for Discord scoreboards and Competification account linking",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="SquadRelay Team",
    license="MIT",

    # Package discovery
    packages=find_packages(where="src") + find_packages(include=["plugins", "plugins.*"]),
    package_dir={"": "src", "plugins": "plugins"},
    py_modules=["main"],

    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "hypothesis>=6.80.0",
        ],
    },

    # Python version requirement
    python_requires=">=3.10",

    # Entry points
    entry_points={
        "console_scripts": [
            "squadrelay=main:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Games/Entertainment",
    ],

    keywords="squad squadjs discord scoreboard plugins",
)
