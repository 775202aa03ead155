"""
Cardamom manages contacts stored in a local vdir or on a CardDAV server.
"""

from __future__ import annotations

from setuptools import Command
from setuptools import find_packages
from setuptools import setup

requirements = [
    "click>=5.0,<9.0",
    "click-log>=0.3.0, <0.5.0",
    "requests >=2.20.0",
    "atomicwrites>=0.1.7",
]


class PrintRequirements(Command):
    description = "Prints minimal requirements"
    user_options: list = []

    def initialize_options(self):
        pass

    def finalize_options(self):
        pass

    def run(self):
        for requirement in requirements:
            print(requirement.replace(">", "=").replace(" ", ""))


with open("README.rst") as f:
    long_description = f.read()


setup(
    # General metadata
    name="cardamom",
    version="0.1.0",
    url="https://github.com/soywod/cardamom",
    description="Manage contacts stored locally or on a CardDAV server",
    license="BSD",
    long_description=long_description,
    # Runtime dependencies
    install_requires=requirements,
    # Optional dependencies
    extras_require={
        "test": ["pytest", "hypothesis>=6.100.0"],
    },
    # Other
    packages=find_packages(exclude=["tests.*", "tests"]),
    include_package_data=True,
    cmdclass={"minimal_requirements": PrintRequirements},
    entry_points={"console_scripts": ["cardamom = cardamom.cli:app"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "License :: OSI Approved :: BSD License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Communications :: Email :: Address Book",
        "Topic :: Utilities",
    ],
)
