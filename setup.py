#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""The setup script."""

from setuptools import find_packages, setup

install_requirements = [
    "Click>=7.0",
    "dacite",
    "fsspec",
    "joblib",
    "pandas",
    "pyyaml",
    "toolz",
]

test_requirements = ["pytest"]

setup(
    python_requires=">=3.7",
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
    ],
    description="Read, write and cache delimited files on Google Cloud Storage "
    "through the gcloud CLI",
    install_requires=install_requirements,
    extras_require={"test": test_requirements},
    tests_require=test_requirements,
    license="MIT",
    keywords="gsfile",
    name="gsfile",
    packages=find_packages(include=["gsfile", "gsfile.*"]),
    entry_points={"console_scripts": ["gsfile=gsfile.cli:cli"]},
    version="0.1.0",
    zip_safe=False,
)
